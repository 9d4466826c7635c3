# search.py
# A criteria object built from query params compiles into a relevance stage
# (only when free text is given) followed by a structured filter stage.
# Pagination and facets are both computed over the filtered set.

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from geo import haversine_miles, resolve_coordinates

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

LEAD_TEXT_FIELDS = ("name", "email", "company", "message", "location.city", "location.state",
                    "insights.recommended_product_focus", "tags")
ERROR_TEXT_FIELDS = ("message", "user_message", "stack", "code")

LEAD_FACETS = {
    "business_types": "business_type",
    "submission_types": "submission_type",
    "priorities": "priority",
    "states": "location.state",
}
ERROR_FACETS = {
    "error_types": "error_type",
    "severities": "severity",
}


# --- parameter parsing ---
def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_int(value: Any) -> Optional[int]:
    text = _clean(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def parse_float(value: Any) -> Optional[float]:
    text = _clean(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_datetime(value: Any) -> Optional[datetime]:
    text = _clean(value)
    if text is None:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clamp_limit(value: Optional[int], default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    if value is None:
        value = default
    return max(1, min(value, maximum))


def clamp_offset(value: Optional[int]) -> int:
    return max(0, value or 0)


def get_path(doc: Any, path: str) -> Any:
    """Read a dotted attribute path from a model (or a dict)."""
    value = doc
    for part in path.split("."):
        if value is None:
            return None
        value = value.get(part) if isinstance(value, dict) else getattr(value, part, None)
    return value


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _in_range(value: Optional[datetime], start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is None and end is None:
        return True
    if value is None:
        return False
    value = _as_utc(value)
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def _same(value: Any, wanted: Optional[str]) -> bool:
    return wanted is None or (value is not None and str(value).lower() == wanted.lower())


# --- criteria ---
@dataclass
class LeadCriteria:
    query: Optional[str] = None
    business_type: Optional[str] = None
    submission_type: Optional[str] = None
    score_min: Optional[int] = None
    priority: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    radius_miles: Optional[float] = None
    center: Optional[Tuple[float, float]] = None  # (longitude, latitude)
    near_city: Optional[str] = None
    near_state: Optional[str] = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def geo_center(self) -> Optional[Tuple[float, float]]:
        """Center of the radius filter, or None when the geo filter does not apply."""
        if self.radius_miles is None or self.radius_miles <= 0:
            return None
        if self.center is not None:
            return self.center
        return resolve_coordinates(self.near_city, self.near_state)

    def filters(self) -> List[Callable[[Any], bool]]:
        checks: List[Callable[[Any], bool]] = [
            lambda r: _same(r.business_type, self.business_type),
            lambda r: _same(r.submission_type, self.submission_type),
            lambda r: _same(r.priority, self.priority),
            lambda r: _same(get_path(r, "location.state"), self.state),
            lambda r: _same(get_path(r, "location.city"), self.city),
            lambda r: _in_range(r.created_at, self.date_from, self.date_to),
        ]
        if self.score_min is not None:
            checks.append(lambda r: r.score is not None and r.score >= self.score_min)
        center = self.geo_center()
        if center is not None:
            checks.append(lambda r: _within_radius(r, center, self.radius_miles))
        return checks


@dataclass
class ErrorCriteria:
    query: Optional[str] = None
    error_type: Optional[str] = None
    severity: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def filters(self) -> List[Callable[[Any], bool]]:
        return [
            lambda r: _same(r.error_type, self.error_type),
            lambda r: _same(r.severity, self.severity),
            lambda r: _in_range(r.timestamp, self.date_from, self.date_to),
        ]


def _within_radius(record: Any, center: Tuple[float, float], radius_miles: float) -> bool:
    point = get_path(record, "location.coordinates.coordinates")
    if not point:
        return False
    lng, lat = point
    return haversine_miles(center[0], center[1], lng, lat) <= radius_miles


def parse_lead_params(params: Mapping[str, Any], default_limit: int = DEFAULT_LIMIT,
                      max_limit: int = MAX_LIMIT) -> LeadCriteria:
    lng = parse_float(params.get("lng"))
    lat = parse_float(params.get("lat"))
    return LeadCriteria(
        query=_clean(params.get("q")),
        business_type=_clean(params.get("business_type")),
        submission_type=_clean(params.get("submission_type")),
        score_min=parse_int(params.get("score_min")),
        priority=_clean(params.get("priority")),
        state=_clean(params.get("state")),
        city=_clean(params.get("city")),
        date_from=parse_datetime(params.get("date_from")),
        date_to=parse_datetime(params.get("date_to")),
        radius_miles=parse_float(params.get("radius")),
        center=(lng, lat) if lng is not None and lat is not None else None,
        near_city=_clean(params.get("near_city")),
        near_state=_clean(params.get("near_state")),
        limit=clamp_limit(parse_int(params.get("limit")), default_limit, max_limit),
        offset=clamp_offset(parse_int(params.get("offset"))),
    )


def parse_error_params(params: Mapping[str, Any], default_limit: int = DEFAULT_LIMIT,
                       max_limit: int = MAX_LIMIT) -> ErrorCriteria:
    return ErrorCriteria(
        query=_clean(params.get("q")),
        error_type=_clean(params.get("error_type")),
        severity=_clean(params.get("severity")),
        date_from=parse_datetime(params.get("date_from")),
        date_to=parse_datetime(params.get("date_to")),
        limit=clamp_limit(parse_int(params.get("limit")), default_limit, max_limit),
        offset=clamp_offset(parse_int(params.get("offset"))),
    )


# --- pipeline ---
def relevance(record: Any, terms: Sequence[str], fields: Sequence[str]) -> int:
    """Number of (term, field) pairs where the term occurs in the field text."""
    texts = []
    for path in fields:
        value = get_path(record, path)
        if isinstance(value, (list, tuple)):
            texts.extend(str(v).lower() for v in value)
        elif value is not None:
            texts.append(str(value).lower())
    return sum(1 for term in terms for text in texts if term in text)


def build_facets(records: Iterable[Any], dimensions: Mapping[str, str]) -> Dict[str, List[Dict[str, Any]]]:
    records = list(records)
    facets = {}
    for name, path in dimensions.items():
        counts = Counter(get_path(r, path) for r in records)
        facets[name] = [
            {"value": value, "count": count}
            for value, count in sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
            if value not in (None, "")
        ]
    return facets


def _run(records: Iterable[Any], criteria, text_fields, facet_dims, time_field: str) -> Dict[str, Any]:
    candidates = sorted(records, key=lambda r: _as_utc(getattr(r, time_field)), reverse=True)

    if criteria.query:
        terms = [t for t in criteria.query.lower().split() if t]
        ranked = [(relevance(r, terms, text_fields), r) for r in candidates]
        # stable sort keeps newest-first among equally relevant records
        ranked = sorted((pair for pair in ranked if pair[0] > 0), key=lambda pair: -pair[0])
        candidates = [r for _, r in ranked]

    checks = criteria.filters()
    filtered = [r for r in candidates if all(check(r) for check in checks)]

    envelope = {
        "results": filtered[criteria.offset:criteria.offset + criteria.limit],
        "total": len(filtered),
        "limit": criteria.limit,
        "offset": criteria.offset,
        "facets": build_facets(filtered, facet_dims),
    }
    if criteria.query:
        envelope["query"] = criteria.query
    return envelope


def search_leads(records: Iterable[Any], criteria: LeadCriteria) -> Dict[str, Any]:
    return _run(records, criteria, LEAD_TEXT_FIELDS, LEAD_FACETS, "created_at")


def search_errors(records: Iterable[Any], criteria: ErrorCriteria) -> Dict[str, Any]:
    return _run(records, criteria, ERROR_TEXT_FIELDS, ERROR_FACETS, "timestamp")
