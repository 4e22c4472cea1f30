from datetime import timezone

import pytest
from fastapi.testclient import TestClient

from altura_dashboard import config
from altura_dashboard.api import app, get_client
from fakes import FakeClient, appointment, patient, practitioner


@pytest.fixture
def fhir():
    fake = FakeClient(
        patients=[patient("1", ("John",), "Doe"), patient("2", ("Jane",), "Smith", "female")],
        practitioners=[practitioner("1", ("Sarah",), "Wilson")],
        appointments=[appointment("A1", "Patient/1", "Practitioner/1")],
    )
    app.dependency_overrides[get_client] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def api(fhir, monkeypatch):
    monkeypatch.setattr(config, "local_timezone", lambda: timezone.utc)
    with TestClient(app) as client:
        yield client


def test_health_needs_no_profile(api, fhir):
    fhir.profile = None
    assert api.get("/health").json()["status"] == "healthy"


def test_signed_out_requests_are_rejected(api, fhir):
    fhir.profile = None
    resp = api.get("/appointments")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"
    assert fhir.searches == []


def test_dashboard(api):
    body = api.get("/dashboard").json()
    assert body["stats"]["total_patients"] == 2
    assert body["stats"]["total_appointments"] == 1
    assert body["is_empty"] is False
    assert body["recent_patients"][0] == {"id": "1", "name": "John Doe", "gender": "male", "birthDate": None}


def test_list_appointments(api):
    body = api.get("/appointments").json()
    assert body["appointments"][0]["participants"] == "John Doe, Sarah Wilson"
    assert body["patients"] == [
        {"value": "Patient/1", "label": "John Doe"},
        {"value": "Patient/2", "label": "Jane Smith"},
    ]
    assert body["practitioners"] == [{"value": "Practitioner/1", "label": "Sarah Wilson"}]


def test_load_failure_is_reported_once(api, fhir):
    fhir.fail.add("Practitioner")
    resp = api.get("/appointments")
    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("Failed to fetch appointments")


def test_create_appointment(api, fhir):
    resp = api.post("/appointments", json={
        "patient_ref": "Patient/1",
        "practitioner_ref": "Practitioner/1",
        "start": "2025-01-01T09:00",
        "end": "2025-01-01T09:30",
    })
    assert resp.status_code == 201
    body = resp.json()
    assert body["appointment"]["id"] == "new-1"
    assert body["appointment"]["start"] == "2025-01-01T09:00:00.000Z"
    assert body["notifications"][-1]["title"] == "Success"
    assert fhir.created[0]["status"] == "booked"


def test_create_requires_every_field(api, fhir):
    resp = api.post("/appointments", json={"patient_ref": "Patient/1", "start": "2025-01-01T09:00"})
    assert resp.status_code == 422
    assert fhir.created == []


def test_create_failure(api, fhir):
    fhir.fail.add("create")
    resp = api.post("/appointments", json={
        "patient_ref": "Patient/1",
        "practitioner_ref": "Practitioner/1",
        "start": "2025-01-01T09:00",
        "end": "2025-01-01T09:30",
    })
    assert resp.status_code == 502
    assert "try again" in resp.json()["detail"]


def test_update_status(api, fhir):
    resp = api.patch("/appointments/A1/status", json={"status": "cancelled"})
    assert resp.status_code == 200
    assert fhir.patches == [("Appointment", "A1", [{"op": "replace", "path": "/status", "value": "cancelled"}])]
    assert resp.json()["appointments"][0]["status"] == "cancelled"
    assert resp.json()["reloaded"] is True


def test_update_status_rejects_unknown_values(api, fhir):
    resp = api.patch("/appointments/A1/status", json={"status": "teleported"})
    assert resp.status_code == 422
    assert fhir.patches == []


def test_update_status_with_failed_reload_omits_the_list(api, fhir):
    fhir.fail.add("Practitioner")
    resp = api.patch("/appointments/A1/status", json={"status": "cancelled"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["reloaded"] is False
    assert "appointments" not in body
    assert [n["title"] for n in body["notifications"]] == ["Status updated", "Error loading data"]


def test_create_with_failed_reload_is_flagged(api, fhir):
    fhir.fail.add("Patient")
    resp = api.post("/appointments", json={
        "patient_ref": "Patient/1",
        "practitioner_ref": "Practitioner/1",
        "start": "2025-01-01T09:00",
        "end": "2025-01-01T09:30",
    })
    assert resp.status_code == 201
    assert resp.json()["reloaded"] is False


def test_calendar(api):
    [event] = api.get("/appointments/calendar").json()
    assert event["title"] == "John Doe with Sarah Wilson"
    assert event["color"] == "#2563eb"
    assert event["resource"]["id"] == "A1"


def test_calendar_event_details(api):
    body = api.get("/appointments/calendar/A1").json()
    assert body["message"] == "John Doe with Sarah Wilson - Status: booked"
    assert api.get("/appointments/calendar/zzz").status_code == 404


def test_patients_filter(api):
    body = api.get("/patients", params={"search": "jane", "gender": "female"}).json()
    assert body["total"] == 2
    assert [p["id"] for p in body["patients"]] == ["2"]


def test_patient_detail(api, fhir):
    body = api.get("/patients/1").json()
    assert body["name"] == "John Doe"
    assert [a["id"] for a in body["appointments"]] == ["A1"]
    assert api.get("/patients/404").status_code == 404


def test_patient_detail_is_looked_up_by_id(api, fhir):
    fhir.store["Patient"] = [patient(str(i)) for i in range(1, 31)]
    assert api.get("/patients/25").json()["id"] == "25"
    assert ("Patient", {"_id": "25"}) in fhir.searches
    assert not any(params.get("_count") for kind, params in fhir.searches if kind == "Patient")


def test_patient_detail_failure(api, fhir):
    fhir.fail.add("Patient")
    resp = api.get("/patients/1")
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Failed to fetch patient data. Please try again."


def test_seed(api, fhir):
    assert api.get("/seed").json() == {"needs_seed": False}
    resp = api.post("/seed")
    assert resp.status_code == 201
    assert len(fhir.batches) == 2
