import pytest

import storage
from models import LeadSubmission


def submission_payload(**overrides):
    payload = {
        "name": "Dana Reyes",
        "email": "dana@shorefoods.com",
        "company": "Shore Foods",
        "business_type": "restaurant",
        "phone": "732-555-0100",
        "submission_type": "strategy",
        "location": {"city": "Toms River", "state": "NJ", "postal_code": "08753"},
        "estimated_locations": 12,
        "headcount": 250,
        "marketing": {"utm_source": "paid_search"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_submission():
    def _make(**overrides):
        return LeadSubmission.model_validate(submission_payload(**overrides))
    return _make


@pytest.fixture(autouse=True)
def clean_store():
    storage.clear_all()
    yield
    storage.clear_all()
