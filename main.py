# main.py
import io
import logging
from typing import Any, Dict, Optional

import pandas as pd
import uvicorn
from fastapi import BackgroundTasks, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

import analytics
import notifications
import storage
from config import settings
from enrichment import derive_enrichment, email_domain
from geo import resolve_coordinates
from models import (
    ErrorLogRecord,
    ErrorReport,
    GeoPoint,
    LeadRecord,
    LeadSubmission,
    NotificationRequest,
    RescoreRequest,
    utcnow,
)
from scoring import evaluate_lead, merge_tags
from search import parse_error_params, parse_int, parse_lead_params, search_errors, search_leads

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.2")

LOCATION_COLUMNS = ("city", "state", "postal_code")
MARKETING_COLUMNS = ("utm_source", "utm_medium", "utm_campaign", "lead_source")


def create_lead(submission: LeadSubmission) -> LeadRecord:
    """Resolve coordinates, score and persist a validated submission."""
    location = submission.location
    coordinates = resolve_coordinates(location.city, location.state)
    # Only the lookup table may set coordinates; client-supplied points are dropped
    point = GeoPoint(coordinates=coordinates) if coordinates is not None else None
    location = location.model_copy(update={"coordinates": point})
    submission = submission.model_copy(update={"location": location})

    now = utcnow()
    record = LeadRecord(
        **submission.model_dump(exclude={"location"}),
        location=location,
        id=storage.new_id(),
        created_at=now,
        updated_at=now,
        enrichment_status="pending",
        **evaluate_lead(submission),
    )
    storage.insert_lead(record)
    logger.info("Stored lead %s score=%d priority=%s", record.id, record.score, record.priority)
    return record


def _row_to_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    values = {k: (v if v != "" else None) for k, v in row.items()}
    payload = {k: v for k, v in values.items() if k not in LOCATION_COLUMNS + MARKETING_COLUMNS}
    payload["location"] = {k: values.get(k) or "" for k in LOCATION_COLUMNS}
    marketing = {k: values.get(k) for k in MARKETING_COLUMNS if values.get(k)}
    if marketing:
        payload["marketing"] = marketing
    return payload


@app.get("/")
async def root():
    return {"message": "Lead Capture API is running! Visit /docs for interactive API docs."}


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "leads": len(storage.get_leads()),
        "error_logs": len(storage.get_error_logs()),
    }


@app.post("/leads")
async def submit_lead(submission: LeadSubmission, background_tasks: BackgroundTasks):
    record = create_lead(submission)
    if record.priority == "hot" and settings.lead_alert_webhook_url:
        background_tasks.add_task(
            notifications.send_webhook_notification, record, settings.lead_alert_webhook_url
        )
    return {"success": True, "id": record.id, "score": record.score, "priority": record.priority}


@app.post("/leads/upload")
async def upload_leads(file: UploadFile = File(...)):
    if not (file.filename or "").endswith((".csv", ".txt")):
        raise HTTPException(status_code=400, detail="Only CSV files supported.")
    contents = await file.read()
    try:
        df = pd.read_csv(io.BytesIO(contents), dtype=str, keep_default_na=False)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not parse CSV: {e}")
    df.columns = [c.strip().lower() for c in df.columns]
    if df.empty:
        raise HTTPException(status_code=400, detail="CSV has no rows.")

    imported = []
    rejected = []
    for index, row in df.iterrows():
        try:
            submission = LeadSubmission.model_validate(_row_to_payload(row.to_dict()))
        except ValidationError as e:
            # Header is line 1
            rejected.append({"row": int(index) + 2, "errors": e.error_count()})
            continue
        imported.append(create_lead(submission).id)

    logger.info("CSV import: imported=%d rejected=%d", len(imported), len(rejected))
    return {"status": "ok", "imported": len(imported), "ids": imported, "rejected": rejected}


@app.get("/leads/search")
async def search_leads_endpoint(request: Request):
    criteria = parse_lead_params(
        request.query_params, settings.default_search_limit, settings.max_search_limit
    )
    return {"success": True, **search_leads(storage.get_leads(), criteria)}


@app.get("/leads/export")
async def export_csv():
    leads = storage.get_leads()
    if not leads:
        return JSONResponse({"detail": "No leads yet."}, status_code=404)
    rows = []
    for lead in leads:
        data = lead.model_dump(mode="json")
        data["tags"] = "; ".join(data["tags"])
        data["insights"]["follow_up_actions"] = "; ".join(data["insights"]["follow_up_actions"])
        rows.append(data)
    df = pd.json_normalize(rows)
    stream = io.StringIO()
    df.to_csv(stream, index=False)
    stream.seek(0)
    return StreamingResponse(io.BytesIO(stream.getvalue().encode()), media_type="text/csv", headers={"Content-Disposition": "attachment; filename=leads.csv"})


@app.post("/leads/score")
async def rescore_leads(body: Optional[RescoreRequest] = None):
    body = body or RescoreRequest()
    limit = max(1, min(50 if body.limit is None else body.limit, settings.max_rescore_limit))
    leads = storage.get_leads()
    if body.lead_ids:
        wanted = set(body.lead_ids)
        leads = [lead for lead in leads if lead.id in wanted]

    results = []
    for lead in leads:
        if len(results) >= limit:
            break
        evaluation = evaluate_lead(lead)
        if not body.force and (evaluation["score"], evaluation["priority"]) == (lead.score, lead.priority):
            continue
        # Enrichment tags survive; a stale priority tag does not
        kept = [t for t in lead.tags if not t.endswith("_priority")]
        storage.update_lead(lead.id, {**evaluation, "tags": merge_tags(evaluation["tags"], kept)})
        results.append({"id": lead.id, "score": evaluation["score"], "priority": evaluation["priority"]})

    logger.info("Rescored %d leads (force=%s)", len(results), body.force)
    return {"success": True, "processed": len(results), "results": results}


@app.post("/leads/{lead_id}/enrich")
async def enrich_lead(lead_id: str):
    lead = storage.get_lead(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")

    domain = email_domain(lead.email)
    enrichment = derive_enrichment(domain, lead.business_type)
    marketing = {**(lead.marketing.model_dump() if lead.marketing else {}), **enrichment["marketing"]}
    fields = {
        **enrichment,
        "marketing": marketing,
        "tags": merge_tags(lead.tags, enrichment["tags"]),
    }
    storage.update_lead(lead.id, fields)
    logger.info("Enriched lead %s via %s", lead.id, domain)
    return {"success": True, "lead_id": lead.id, "enrichment": enrichment}


@app.post("/errors")
async def report_error(report: ErrorReport):
    record = ErrorLogRecord(**report.model_dump(), id=storage.new_id(), created_at=utcnow())
    storage.insert_error_log(record)
    return {"success": True, "id": record.id}


@app.get("/errors/search")
async def search_errors_endpoint(request: Request):
    criteria = parse_error_params(
        request.query_params, settings.default_search_limit, settings.max_search_limit
    )
    return {"success": True, **search_errors(storage.get_error_logs(), criteria)}


@app.get("/analytics")
async def get_analytics(days: Optional[str] = None):
    window = analytics.clamp_days(parse_int(days), 30, 1, 365)
    summary = analytics.summarize(storage.get_leads(), storage.get_error_logs(), days=window)
    return {"success": True, **summary}


@app.get("/analytics/timeseries")
async def get_time_series(days: Optional[str] = None, granularity: str = "daily"):
    window = analytics.clamp_days(parse_int(days), 90, 7, 365)
    series = analytics.time_series(
        storage.get_leads(), storage.get_error_logs(), days=window, granularity=granularity
    )
    return {"success": True, **series}


@app.post("/notifications/leads")
def notify_new_leads(body: Optional[NotificationRequest] = None):
    body = body or NotificationRequest()
    return notifications.sweep_new_leads(body.min_priority, settings.lead_alert_webhook_url)


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
