# models.py
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

BusinessType = Literal["restaurant", "fleet", "other"]
SubmissionType = Literal["strategy", "pilot"]
LeadPriority = Literal["hot", "warm", "nurture"]
SoftwareTier = Literal["starter", "growth", "enterprise"]
EnrichmentStatus = Literal["pending", "complete", "skipped"]
ErrorType = Literal["NETWORK", "VALIDATION", "DATABASE", "AUTHENTICATION", "UNEXPECTED", "TIMEOUT"]
Severity = Literal["INFO", "WARNING", "ERROR", "CRITICAL"]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
POSTAL_CODE_RE = re.compile(r"^\d{5}(-\d{4})?$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_count(value: Any) -> Optional[int]:
    """Lenient non-negative integer parse; anything unusable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number >= 0 else None


class GeoPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: Tuple[float, float]  # (longitude, latitude)


class LeadLocation(BaseModel):
    city: str = Field(min_length=1)
    state: str
    postal_code: str
    coordinates: Optional[GeoPoint] = None

    @field_validator("city", "postal_code", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("state")
    @classmethod
    def _two_letter_state(cls, v: str) -> str:
        v = v.strip().upper()
        if not re.fullmatch(r"[A-Z]{2}", v):
            raise ValueError("state must be a 2-letter code")
        return v

    @field_validator("postal_code")
    @classmethod
    def _us_zip(cls, v: str) -> str:
        if not POSTAL_CODE_RE.match(v):
            raise ValueError("postal_code must be a 5 or 5+4 digit US ZIP")
        return v


class MarketingMeta(BaseModel):
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    lead_source: Optional[str] = None


class LeadSubmission(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: str
    company: str = Field(min_length=2, max_length=100)
    business_type: BusinessType
    phone: str = Field(min_length=1)
    message: Optional[str] = Field(default=None, max_length=1000)
    submission_type: SubmissionType
    location: LeadLocation
    estimated_locations: Optional[int] = None
    headcount: Optional[int] = None
    marketing: Optional[MarketingMeta] = None

    @field_validator("name", "company", "phone", "message", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        v = str(v or "").strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("business_type", mode="before")
    @classmethod
    def _known_business_type(cls, v):
        # Unrecognised business types are kept as leads under "other"
        if not isinstance(v, str) or not v.strip():
            return v
        v = v.strip().lower()
        return v if v in ("restaurant", "fleet") else "other"

    @field_validator("estimated_locations", "headcount", mode="before")
    @classmethod
    def _lenient_count(cls, v):
        return parse_count(v)


class LeadInsights(BaseModel):
    ideal_software_tier: SoftwareTier
    recommended_product_focus: str
    follow_up_actions: List[str] = Field(default_factory=list)


class LeadRecord(LeadSubmission):
    id: str
    created_at: datetime
    updated_at: datetime
    score: int = Field(ge=0, le=100)
    priority: LeadPriority
    insights: LeadInsights
    enrichment_status: EnrichmentStatus = "pending"
    enrichment_notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    score_reasoning: Optional[str] = None


class ErrorReport(BaseModel):
    error_type: ErrorType
    severity: Severity
    message: str
    user_message: str
    code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    user_agent: Optional[str] = None
    url: Optional[str] = None
    stack: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class ErrorLogRecord(ErrorReport):
    id: str
    created_at: datetime


class RescoreRequest(BaseModel):
    limit: Optional[int] = 50
    force: bool = False
    lead_ids: List[str] = Field(default_factory=list)


class NotificationRequest(BaseModel):
    min_priority: LeadPriority = "warm"
