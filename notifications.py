# notifications.py
import logging
from typing import Any, Dict, List, Optional

import httpx

import storage
from config import settings
from models import LeadRecord

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"hot": 3, "warm": 2, "nurture": 1}
STATE_KEY = "lead_notifications"


def should_notify(priority: Optional[str], min_priority: str) -> bool:
    return PRIORITY_RANK.get(priority or "nurture", 1) >= PRIORITY_RANK.get(min_priority, 2)


def build_payload(lead: LeadRecord) -> Dict[str, Any]:
    return {
        "text": f"New {lead.priority.upper()} lead: {lead.name} ({lead.company})",
        "fields": {
            "business_type": lead.business_type,
            "submission_type": lead.submission_type,
            "email": lead.email,
            "phone": lead.phone,
            "location": f"{lead.location.city}, {lead.location.state}",
            "score": lead.score,
            "recommended_follow_up": "; ".join(lead.insights.follow_up_actions),
        },
    }


def send_webhook_notification(lead: LeadRecord, webhook_url: Optional[str],
                              client: Optional[httpx.Client] = None) -> bool:
    """POST a lead alert. Returns False when skipped or when delivery failed."""
    if not webhook_url:
        return False
    http = client or httpx.Client(timeout=settings.webhook_timeout_seconds)
    try:
        resp = http.post(webhook_url, json=build_payload(lead))
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Webhook delivery failed for lead %s: %s", lead.id, e)
        return False
    finally:
        if client is None:
            http.close()
    return True


def lead_summary(lead: LeadRecord) -> Dict[str, Any]:
    return {
        "id": lead.id,
        "name": lead.name,
        "company": lead.company,
        "priority": lead.priority,
        "score": lead.score,
        "email": lead.email,
        "phone": lead.phone,
        "created_at": lead.created_at.isoformat(),
    }


def sweep_new_leads(min_priority: str = "warm", webhook_url: Optional[str] = None,
                    client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Notify about leads inserted since the last sweep and advance the cursor."""
    cursor = storage.get_state(STATE_KEY).get("cursor")
    new_leads = storage.leads_after(cursor)

    captured: List[LeadRecord] = [lead for lead in new_leads if should_notify(lead.priority, min_priority)]
    if new_leads:
        storage.set_state(STATE_KEY, {"cursor": new_leads[-1].id})

    delivered = sum(1 for lead in captured if send_webhook_notification(lead, webhook_url, client))
    logger.info("Notification sweep: seen=%d captured=%d delivered=%d",
                len(new_leads), len(captured), delivered)
    return {
        "success": True,
        "captured": len(captured),
        "delivered": delivered,
        "leads": [lead_summary(lead) for lead in captured],
    }
