import asyncio
import inspect
import io

import pytest
from fastapi import HTTPException, UploadFile
from fastapi.testclient import TestClient

import main
import storage
from main import app

from conftest import submission_payload


@pytest.fixture
def client():
    return TestClient(app)


def test_root(client):
    assert client.get("/").status_code == 200


def test_submit_lead_end_to_end(client):
    resp = client.post("/leads", json=submission_payload(email="  Dana@ShoreFoods.com "))
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["score"] == 100
    assert body["priority"] == "hot"

    lead = storage.get_lead(body["id"])
    assert lead.email == "dana@shorefoods.com"
    assert lead.insights.ideal_software_tier == "enterprise"
    assert lead.location.coordinates.coordinates == (-74.1979, 39.9537)
    assert lead.enrichment_status == "pending"
    assert lead.created_at == lead.updated_at
    assert lead.tags == ["restaurant", "strategy_request", "hot_priority", "multi_location",
                         "enterprise_headcount", "local_nj"]


def test_submit_unknown_city_has_no_coordinates(client):
    payload = submission_payload(location={"city": "Nowhere", "state": "ZZ", "postal_code": "12345-6789"})
    resp = client.post("/leads", json=payload)
    assert resp.status_code == 200
    assert storage.get_lead(resp.json()["id"]).location.coordinates is None


def test_client_coordinates_are_dropped_for_unknown_places(client):
    location = {"city": "Nowhere", "state": "ZZ", "postal_code": "12345",
                "coordinates": {"type": "Point", "coordinates": [-75.1652, 39.9526]}}
    lead_id = client.post("/leads", json=submission_payload(location=location)).json()["id"]
    assert storage.get_lead(lead_id).location.coordinates is None

    body = client.get("/leads/search", params={"radius": "1", "lng": "-75.1652", "lat": "39.9526"}).json()
    assert body["total"] == 0


def test_client_coordinates_are_replaced_for_known_places(client):
    location = {"city": "Trenton", "state": "NJ", "postal_code": "08608",
                "coordinates": {"type": "Point", "coordinates": [0.0, 0.0]}}
    lead_id = client.post("/leads", json=submission_payload(location=location)).json()["id"]
    assert storage.get_lead(lead_id).location.coordinates.coordinates == (-74.7439, 40.2171)


def test_submit_treats_malformed_counts_as_absent(client):
    payload = submission_payload(estimated_locations="lots", headcount="-4", marketing=None,
                                 location={"city": "Austin", "state": "TX", "postal_code": "73301"})
    resp = client.post("/leads", json=payload)
    assert resp.status_code == 200
    lead = storage.get_lead(resp.json()["id"])
    assert lead.estimated_locations is None
    assert lead.headcount is None
    assert lead.score == 35 + 25


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"submission_type": "demo"},
        {"location": {"city": "Trenton", "state": "New Jersey", "postal_code": "08608"}},
        {"location": {"city": "Trenton", "state": "NJ", "postal_code": "8608"}},
        {"name": ""},
    ],
)
def test_submit_rejects_invalid_payloads(client, overrides):
    assert client.post("/leads", json=submission_payload(**overrides)).status_code == 422


def test_search_endpoint(client):
    client.post("/leads", json=submission_payload())
    client.post("/leads", json=submission_payload(business_type="fleet", company="Camden Freight",
                                                  location={"city": "Camden", "state": "NJ", "postal_code": "08102"}))
    resp = client.get("/leads/search", params={"business_type": "fleet", "limit": "oops", "radius": "x"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["limit"] == 50
    assert body["results"][0]["company"] == "Camden Freight"
    assert body["facets"]["business_types"] == [{"value": "fleet", "count": 1}]


def test_rescore_only_touches_stale_leads(client):
    lead_id = client.post("/leads", json=submission_payload(
        headcount=None, estimated_locations=None, marketing=None, email="ops@harborgroup.com",
        location={"city": "Newark", "state": "NJ", "postal_code": "07102"})).json()["id"]
    assert storage.get_lead(lead_id).score == 70

    assert client.post("/leads/score", json={}).json()["processed"] == 0

    client.post(f"/leads/{lead_id}/enrich")
    resp = client.post("/leads/score", json={"lead_ids": [lead_id]}).json()
    assert resp["processed"] == 1
    assert resp["results"][0] == {"id": lead_id, "score": 85, "priority": "hot"}

    lead = storage.get_lead(lead_id)
    assert lead.priority == "hot"
    assert "hot_priority" in lead.tags
    assert "warm_priority" not in lead.tags
    assert "abm_target" in lead.tags

    forced = client.post("/leads/score", json={"force": True, "limit": 0}).json()
    assert forced["processed"] == 1


def test_enrich_lead(client):
    lead_id = client.post("/leads", json=submission_payload(email="chef@baycafe.com")).json()["id"]
    resp = client.post(f"/leads/{lead_id}/enrich")
    assert resp.status_code == 200
    assert resp.json()["enrichment"]["insights"]["ideal_software_tier"] == "growth"

    lead = storage.get_lead(lead_id)
    assert lead.enrichment_status == "complete"
    assert lead.headcount == 150
    assert lead.marketing.utm_source == "seo"
    assert lead.marketing.lead_source == "inbound_content"
    assert lead.tags[:3] == ["restaurant", "strategy_request", "hot_priority"]
    assert lead.tags[-2:] == ["hospitality", "regional_chain"]
    assert lead.priority == "hot"
    assert lead.updated_at >= lead.created_at


def test_enrich_unknown_lead(client):
    assert client.post("/leads/missing/enrich").status_code == 404


def test_csv_upload_and_export(client):
    csv = (
        "name,email,company,business_type,phone,submission_type,city,state,postal_code,estimated_locations,utm_source\n"
        "Ann Lee,ann@shore.com,Shore Co,restaurant,555,strategy,Trenton,NJ,08608,4,event_expo\n"
        "Bad Row,nope,Bad Co,fleet,555,pilot,Trenton,NJ,08608,,\n"
    )
    resp = client.post("/leads/upload", files={"file": ("leads.csv", io.BytesIO(csv.encode()), "text/csv")})
    assert resp.status_code == 200
    body = resp.json()
    assert body["imported"] == 1
    assert body["rejected"][0]["row"] == 3

    lead = storage.get_lead(body["ids"][0])
    assert lead.location.postal_code == "08608"
    assert lead.score == 35 + 25 + 5 + 8 + 10

    export = client.get("/leads/export")
    assert export.status_code == 200
    assert "Shore Co" in export.text
    assert "location.city" in export.text.splitlines()[0]


def test_upload_rejects_non_csv(client):
    resp = client.post("/leads/upload", files={"file": ("leads.xlsx", io.BytesIO(b"x"), "application/octet-stream")})
    assert resp.status_code == 400


def test_upload_rejects_header_only_csv(client):
    csv = "name,email,company,business_type,phone,submission_type,city,state,postal_code\n"
    resp = client.post("/leads/upload", files={"file": ("leads.csv", io.BytesIO(csv.encode()), "text/csv")})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "CSV has no rows."


def test_upload_without_filename_is_rejected():
    upload = UploadFile(file=io.BytesIO(b"name\nAnn\n"), filename=None)
    with pytest.raises(HTTPException) as exc:
        asyncio.run(main.upload_leads(upload))
    assert exc.value.status_code == 400


def test_export_empty(client):
    assert client.get("/leads/export").status_code == 404


def test_error_reporting_and_search(client):
    report = {"error_type": "NETWORK", "severity": "ERROR", "message": "fetch failed",
              "user_message": "Connection Issue", "url": "/contact"}
    assert client.post("/errors", json=report).json()["success"] is True
    assert client.post("/errors", json={**report, "error_type": "BOGUS"}).status_code == 422

    body = client.get("/errors/search", params={"q": "fetch"}).json()
    assert body["total"] == 1
    assert body["results"][0]["url"] == "/contact"


def test_analytics_endpoints(client):
    client.post("/leads", json=submission_payload())
    summary = client.get("/analytics", params={"days": "abc"}).json()
    assert summary["period"]["days"] == 30
    assert summary["leads"]["period_total"] == 1

    series = client.get("/analytics/timeseries", params={"days": "3", "granularity": "weekly"}).json()
    assert series["days"] == 7
    assert series["leads"][0]["count"] == 1


def test_notification_sweep_endpoint(client):
    client.post("/leads", json=submission_payload())
    body = client.post("/notifications/leads", json={"min_priority": "hot"}).json()
    assert body["captured"] == 1
    assert client.post("/notifications/leads").json()["captured"] == 0


def test_notification_sweep_runs_off_the_event_loop():
    # Webhook delivery uses a blocking client, so the route must be a sync function
    assert not inspect.iscoroutinefunction(main.notify_new_leads)


def test_health(client):
    client.post("/leads", json=submission_payload())
    assert client.get("/health").json()["leads"] == 1
