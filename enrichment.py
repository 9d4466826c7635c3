# enrichment.py
# Firmographic guesses from an email domain. Rules are checked in order and the
# first whose needles appear in the domain wins; the last rule has no needles.

from typing import Any, Dict, Optional

DOMAIN_HEURISTICS = (
    {
        "needles": ("group",),
        "tier": "enterprise",
        "estimated_headcount": 500,
        "tags": ("enterprise", "abm_target"),
        "lead_source": "account_based",
        "utm_source": "account_based",
        "follow_ups": ("Route to enterprise AE", "Invite to executive briefing"),
    },
    {
        "needles": ("cafe", "dining"),
        "tier": "growth",
        "estimated_headcount": 150,
        "tags": ("hospitality", "regional_chain"),
        "lead_source": "inbound_content",
        "utm_source": "seo",
        "follow_ups": ("Share food waste case study", "Offer analytics walkthrough"),
    },
    {
        "needles": (),
        "tier": "starter",
        "estimated_headcount": 75,
        "tags": ("smb",),
        "lead_source": "organic",
        "utm_source": "direct",
        "follow_ups": ("Send personalized onboarding plan",),
    },
)

ENRICHMENT_PRODUCT_FOCUS = {"fleet": "Fleet compliance automation"}
DEFAULT_ENRICHMENT_PRODUCT_FOCUS = "Food waste + AP automation bundle"
UNKNOWN_DOMAIN = "unknown.com"


def email_domain(email: Optional[str]) -> str:
    if email and "@" in email:
        domain = email.split("@", 1)[1].strip()
        if domain:
            return domain
    return UNKNOWN_DOMAIN


def match_heuristic(domain: str) -> Dict[str, Any]:
    lower = (domain or "").lower()
    for rule in DOMAIN_HEURISTICS:
        if not rule["needles"] or any(n in lower for n in rule["needles"]):
            return rule
    return DOMAIN_HEURISTICS[-1]


def derive_enrichment(domain: str, business_type: Optional[str]) -> Dict[str, Any]:
    """Fields to set on a lead record when enriching it from its email domain."""
    rule = match_heuristic(domain)
    return {
        "headcount": rule["estimated_headcount"],
        "tags": list(rule["tags"]),
        "enrichment_status": "complete",
        "enrichment_notes": f"Enriched via domain heuristics ({domain})",
        "marketing": {
            "lead_source": rule["lead_source"],
            "utm_source": rule["utm_source"],
        },
        "insights": {
            "ideal_software_tier": rule["tier"],
            "recommended_product_focus": ENRICHMENT_PRODUCT_FOCUS.get(
                business_type, DEFAULT_ENRICHMENT_PRODUCT_FOCUS
            ),
            "follow_up_actions": list(rule["follow_ups"]),
        },
    }
