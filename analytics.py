# analytics.py
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from models import utcnow

GRANULARITY_FORMAT = {
    "daily": "%Y-%m-%d",
    "weekly": "%G-W%V",
    "monthly": "%Y-%m",
}

LEAD_COLUMNS = ["created_at", "submission_type", "business_type", "score", "priority"]
ERROR_COLUMNS = ["timestamp", "error_type", "severity"]


def clamp_days(value: Optional[int], default: int, low: int, high: int) -> int:
    if value is None:
        value = default
    return max(low, min(value, high))


def _frame(records, columns: List[str], time_column: str) -> pd.DataFrame:
    df = pd.DataFrame([r.model_dump(include=set(columns)) for r in records], columns=columns)
    df[time_column] = pd.to_datetime(df[time_column], utc=True)
    return df


def leads_frame(leads) -> pd.DataFrame:
    return _frame(leads, LEAD_COLUMNS, "created_at")


def errors_frame(errors) -> pd.DataFrame:
    return _frame(errors, ERROR_COLUMNS, "timestamp")


def _counts(series: pd.Series) -> Dict[str, int]:
    return {str(k): int(v) for k, v in series.dropna().value_counts().items()}


def _buckets(series: pd.Series, fmt: str) -> pd.Series:
    return series.map(lambda ts: ts.strftime(fmt))


def _daily_trend(df: pd.DataFrame, time_column: str) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    days = _buckets(df[time_column], GRANULARITY_FORMAT["daily"])
    return [{"date": day, "count": int(n)} for day, n in days.value_counts().sort_index().items()]


def summarize(leads, errors, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Totals and per-dimension counts for the trailing `days` window."""
    now = now or utcnow()
    since = now - timedelta(days=days)

    ldf = leads_frame(leads)
    edf = errors_frame(errors)
    period_leads = ldf[ldf["created_at"] >= since]
    period_errors = edf[edf["timestamp"] >= since]

    return {
        "period": {"days": days, "from": since.isoformat(), "to": now.isoformat()},
        "leads": {
            "total": len(ldf),
            "period_total": len(period_leads),
            "by_type": _counts(period_leads["submission_type"]),
            "by_business_type": _counts(period_leads["business_type"]),
            "daily_trend": _daily_trend(period_leads, "created_at"),
        },
        "errors": {
            "total": len(edf),
            "period_total": len(period_errors),
            "by_severity": _counts(period_errors["severity"]),
            "by_type": _counts(period_errors["error_type"]),
            "daily_trend": _daily_trend(period_errors, "timestamp"),
        },
    }


def time_series(leads, errors, days: int = 90, granularity: str = "daily",
                now: Optional[datetime] = None) -> Dict[str, Any]:
    if granularity not in GRANULARITY_FORMAT:
        granularity = "daily"
    fmt = GRANULARITY_FORMAT[granularity]
    now = now or utcnow()
    since = now - timedelta(days=days)

    ldf = leads_frame(leads)
    ldf = ldf[ldf["created_at"] >= since]
    lead_series = []
    if not ldf.empty:
        ldf = ldf.assign(interval=_buckets(ldf["created_at"], fmt))
        for interval, group in ldf.groupby("interval", sort=True):
            avg = group["score"].mean()
            lead_series.append({
                "interval": interval,
                "count": len(group),
                "avg_score": None if pd.isna(avg) else round(float(avg), 2),
                "hot_leads": int((group["priority"] == "hot").sum()),
                "by_submission": [
                    {"type": t, "count": c} for t, c in _counts(group["submission_type"]).items()
                ],
            })

    edf = errors_frame(errors)
    edf = edf[edf["timestamp"] >= since]
    error_series = []
    if not edf.empty:
        edf = edf.assign(interval=_buckets(edf["timestamp"], fmt))
        for interval, group in edf.groupby("interval", sort=True):
            error_series.append({
                "interval": interval,
                "count": len(group),
                "by_severity": [
                    {"severity": s, "count": c} for s, c in _counts(group["severity"]).items()
                ],
            })

    return {"granularity": granularity, "days": days, "leads": lead_series, "errors": error_series}
