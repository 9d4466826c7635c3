import json

import httpx
import pytest

import notifications
import storage
from main import create_lead
from models import LeadSubmission

from conftest import submission_payload

WEBHOOK = "https://hooks.example.com/leads"


def add_lead(**overrides):
    return create_lead(LeadSubmission.model_validate(submission_payload(**overrides)))


def nurture_overrides():
    return dict(business_type="other", submission_type="pilot", estimated_locations=None,
                headcount=None, marketing=None,
                location={"city": "Austin", "state": "TX", "postal_code": "73301"})


class Recorder:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status_code)

    def client(self):
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.mark.parametrize(
    "priority,minimum,expected",
    [("hot", "warm", True), ("warm", "warm", True), ("nurture", "warm", False),
     ("nurture", "nurture", True), ("warm", "hot", False), (None, "nurture", True), (None, "warm", False)],
)
def test_should_notify(priority, minimum, expected):
    assert notifications.should_notify(priority, minimum) is expected


def test_webhook_payload():
    lead = add_lead()
    recorder = Recorder()
    assert notifications.send_webhook_notification(lead, WEBHOOK, recorder.client()) is True
    body = json.loads(recorder.requests[0].content)
    assert body["text"] == "New HOT lead: Dana Reyes (Shore Foods)"
    assert body["fields"]["location"] == "Toms River, NJ"
    assert body["fields"]["score"] == 100


def test_webhook_skipped_without_url():
    lead = add_lead()
    assert notifications.send_webhook_notification(lead, None) is False


def test_webhook_failure_is_not_raised():
    lead = add_lead()
    recorder = Recorder(status_code=500)
    assert notifications.send_webhook_notification(lead, WEBHOOK, recorder.client()) is False


def test_sweep_advances_cursor():
    hot = add_lead()
    add_lead(**nurture_overrides())
    recorder = Recorder()

    result = notifications.sweep_new_leads("warm", WEBHOOK, recorder.client())
    assert result["captured"] == 1
    assert result["delivered"] == 1
    assert result["leads"][0]["id"] == hot.id

    again = notifications.sweep_new_leads("warm", WEBHOOK, recorder.client())
    assert again["captured"] == 0
    assert len(recorder.requests) == 1

    later = add_lead(company="Later Foods")
    result = notifications.sweep_new_leads("nurture", None)
    assert [l["id"] for l in result["leads"]] == [later.id]
    assert result["delivered"] == 0
