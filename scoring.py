# scoring.py
from typing import Any, Dict, List, Optional, Tuple

from models import LeadInsights, LeadSubmission

MAX_SCORE = 100

BUSINESS_TYPE_POINTS = {"restaurant": 35, "fleet": 25, "other": 15}
SUBMISSION_TYPE_POINTS = {"strategy": 25, "pilot": 18}
DEFAULT_SUBMISSION_TYPE = "pilot"

# (minimum, points), highest tier first; only the first qualifying tier applies
LOCATION_TIERS = ((10, 20), (5, 12), (2, 5))
HEADCOUNT_TIERS = ((200, 15), (100, 10))

# utm_source substring -> points, first match wins
CHANNEL_BONUSES = (("paid", 10), ("event", 8), ("referral", 6))

REGIONAL_STATES = ("nj", "pa", "de")
REGIONAL_BONUS = 10
HYPER_LOCAL = ("toms river", "nj")
HYPER_LOCAL_BONUS = 5

# Priority and software tier share cut points today but are tuned separately.
PRIORITY_THRESHOLDS = (("hot", 80), ("warm", 55), ("nurture", 0))
SOFTWARE_TIER_THRESHOLDS = (("enterprise", 80), ("growth", 55), ("starter", 0))

PRODUCT_FOCUS = {
    "restaurant": "Food waste tracking & AP automation",
    "fleet": "Fleet compliance dashboards & maintenance scheduling",
}
DEFAULT_PRODUCT_FOCUS = "Operational intelligence starter package"

MULTI_LOCATION_ACTION_MIN = 10
MULTI_LOCATION_TAG_MIN = 2
ENTERPRISE_HEADCOUNT_TAG_MIN = 200


def _tier_points(value: Optional[int], tiers) -> int:
    for minimum, points in tiers:
        if value is not None and value >= minimum:
            return points
    return 0


def _location_key(submission: LeadSubmission) -> Tuple[str, str]:
    location = submission.location
    return (location.city or "").strip().lower(), (location.state or "").strip().lower()


# --- Rule layer ---
def rule_score(submission: LeadSubmission) -> Tuple[int, str]:
    """Return (raw_points, short_reasoning). Points are not clamped here."""
    points = 0
    reasons = []

    business_type = submission.business_type if submission.business_type in BUSINESS_TYPE_POINTS else "other"
    bt_points = BUSINESS_TYPE_POINTS[business_type]
    points += bt_points
    reasons.append(f"Business type {business_type} (+{bt_points})")

    submission_type = submission.submission_type
    if submission_type not in SUBMISSION_TYPE_POINTS:
        submission_type = DEFAULT_SUBMISSION_TYPE
    st_points = SUBMISSION_TYPE_POINTS[submission_type]
    points += st_points
    reasons.append(f"{submission_type.capitalize()} request (+{st_points})")

    loc_points = _tier_points(submission.estimated_locations, LOCATION_TIERS)
    if loc_points:
        points += loc_points
        reasons.append(f"{submission.estimated_locations} locations (+{loc_points})")

    hc_points = _tier_points(submission.headcount, HEADCOUNT_TIERS)
    if hc_points:
        points += hc_points
        reasons.append(f"Headcount {submission.headcount} (+{hc_points})")

    utm_source = ((submission.marketing and submission.marketing.utm_source) or "").lower()
    for needle, bonus in CHANNEL_BONUSES:
        if utm_source and needle in utm_source:
            points += bonus
            reasons.append(f"Channel {needle} (+{bonus})")
            break

    city, state = _location_key(submission)
    if state in REGIONAL_STATES:
        points += REGIONAL_BONUS
        reasons.append(f"Regional state {state.upper()} (+{REGIONAL_BONUS})")
    if (city, state) == HYPER_LOCAL:
        points += HYPER_LOCAL_BONUS
        reasons.append(f"Hyper-local (+{HYPER_LOCAL_BONUS})")

    return points, "; ".join(reasons)


def score_lead(submission: LeadSubmission) -> int:
    points, _ = rule_score(submission)
    return max(0, min(points, MAX_SCORE))


def _classify(score: int, thresholds) -> str:
    for label, minimum in thresholds:
        if score >= minimum:
            return label
    return thresholds[-1][0]


def determine_priority(score: int) -> str:
    return _classify(score, PRIORITY_THRESHOLDS)


def ideal_software_tier(score: int) -> str:
    return _classify(score, SOFTWARE_TIER_THRESHOLDS)


# --- Insight layer ---
def build_lead_insights(submission: LeadSubmission, score: int) -> LeadInsights:
    """Recommended product focus and ordered follow-up actions for a scored lead."""
    actions: List[str] = []
    if submission.submission_type == "strategy":
        actions.append("Schedule strategy workshop within 24h")
    else:
        actions.append("Offer pilot kickoff within 72h")

    if (submission.estimated_locations or 0) >= MULTI_LOCATION_ACTION_MIN:
        actions.append("Share multi-location ROI benchmarks")

    _, state = _location_key(submission)
    if state == "nj":
        actions.append("Highlight local NJ support team availability")

    return LeadInsights(
        ideal_software_tier=ideal_software_tier(score),
        recommended_product_focus=PRODUCT_FOCUS.get(submission.business_type, DEFAULT_PRODUCT_FOCUS),
        follow_up_actions=actions,
    )


def merge_tags(*groups) -> List[str]:
    """Concatenate tag lists, keeping the first occurrence of each tag."""
    tags: List[str] = []
    for group in groups:
        for tag in group or []:
            if tag and tag not in tags:
                tags.append(tag)
    return tags


def derive_tags(submission: LeadSubmission, priority: str) -> List[str]:
    submission_type = submission.submission_type
    if submission_type not in SUBMISSION_TYPE_POINTS:
        submission_type = DEFAULT_SUBMISSION_TYPE
    tags = [submission.business_type, f"{submission_type}_request", f"{priority}_priority"]
    if (submission.estimated_locations or 0) >= MULTI_LOCATION_TAG_MIN:
        tags.append("multi_location")
    if (submission.headcount or 0) >= ENTERPRISE_HEADCOUNT_TAG_MIN:
        tags.append("enterprise_headcount")
    _, state = _location_key(submission)
    if state in REGIONAL_STATES:
        tags.append(f"local_{state}")
    return merge_tags(tags)


# --- full pipeline per lead ---
def evaluate_lead(submission: LeadSubmission) -> Dict[str, Any]:
    """Score, priority, insights and tags derived together from one submission."""
    points, reasoning = rule_score(submission)
    score = max(0, min(points, MAX_SCORE))
    priority = determine_priority(score)
    return {
        "score": score,
        "priority": priority,
        "insights": build_lead_insights(submission, score),
        "tags": derive_tags(submission, priority),
        "score_reasoning": reasoning,
    }
