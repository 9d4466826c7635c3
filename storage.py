# storage.py
import uuid
from typing import Any, Dict, List, Optional

from models import ErrorLogRecord, LeadRecord, utcnow

# In-memory document store; insertion order is preserved per collection
leads_store: Dict[str, LeadRecord] = {}
error_logs_store: Dict[str, ErrorLogRecord] = {}
automation_state: Dict[str, Dict[str, Any]] = {}


def new_id() -> str:
    return uuid.uuid4().hex


def insert_lead(record: LeadRecord) -> str:
    leads_store[record.id] = record
    return record.id


def get_lead(lead_id: str) -> Optional[LeadRecord]:
    return leads_store.get(lead_id)


def get_leads() -> List[LeadRecord]:
    return list(leads_store.values())


def update_lead(lead_id: str, fields: Dict[str, Any]) -> Optional[LeadRecord]:
    """Set the given fields on a stored lead and refresh updated_at."""
    current = leads_store.get(lead_id)
    if current is None:
        return None
    data = current.model_dump()
    data.update(fields)
    data["updated_at"] = utcnow()
    updated = LeadRecord.model_validate(data)
    leads_store[lead_id] = updated
    return updated


def leads_after(cursor: Optional[str]) -> List[LeadRecord]:
    """Leads inserted after the lead with id `cursor` (all leads if the cursor is unknown)."""
    ids = list(leads_store)
    if cursor in leads_store:
        ids = ids[ids.index(cursor) + 1:]
    return [leads_store[i] for i in ids]


def insert_error_log(record: ErrorLogRecord) -> str:
    error_logs_store[record.id] = record
    return record.id


def get_error_logs() -> List[ErrorLogRecord]:
    return list(error_logs_store.values())


def get_state(key: str) -> Dict[str, Any]:
    return automation_state.get(key, {})


def set_state(key: str, values: Dict[str, Any]):
    automation_state[key] = {**automation_state.get(key, {}), **values, "updated_at": utcnow()}


def clear_all():
    leads_store.clear()
    error_logs_store.clear()
    automation_state.clear()
