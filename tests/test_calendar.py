from datetime import datetime, timedelta, timezone

import pytest

from altura_dashboard.calendar import (
    DEFAULT_COLOR,
    event_details,
    format_instant,
    parse_instant,
    status_color,
    to_calendar_events,
)
from altura_dashboard.models import AppointmentRecord, AppointmentStatus
from fakes import appointment, patient, practitioner

NOW = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
PATIENTS = [patient("p1", ("John",), "Doe")]
PRACTITIONERS = [practitioner("d1", ("Sarah",), "Wilson")]


def test_events_mirror_appointments():
    appts = [appointment("A1"), appointment("A2", status="cancelled")]
    events = to_calendar_events(appts, PATIENTS, PRACTITIONERS, now=NOW)

    assert [e.id for e in events] == ["A1", "A2"]
    assert events[0].title == "John Doe with Sarah Wilson"
    assert events[0].start == datetime(2025, 1, 1, 14, 0, tzinfo=timezone.utc)
    assert events[0].end == datetime(2025, 1, 1, 14, 30, tzinfo=timezone.utc)
    assert events[0].resource is appts[0]
    assert events[1].color == "#dc2626"


def test_unknown_participants_get_placeholders():
    appts = [appointment("A1", "Patient/ghost", None)]
    [event] = to_calendar_events(appts, PATIENTS, PRACTITIONERS, now=NOW)
    assert event.title == "Unknown Patient with Unknown Practitioner"


def test_missing_timestamps_default_to_now():
    appts = [AppointmentRecord(id="A3", status="pending")]
    [event] = to_calendar_events(appts, PATIENTS, PRACTITIONERS, now=NOW)
    assert event.start == NOW
    assert event.end == NOW
    assert event.id == "A3"


def test_missing_id_becomes_empty_string():
    [event] = to_calendar_events([AppointmentRecord()], PATIENTS, PRACTITIONERS, now=NOW)
    assert event.id == ""


def test_projection_is_idempotent():
    appts = [appointment("A1"), appointment("A2", start=None, end=None, status="noshow")]
    first = to_calendar_events(appts, PATIENTS, PRACTITIONERS, now=NOW)
    second = to_calendar_events(appts, PATIENTS, PRACTITIONERS, now=NOW)
    assert [e.model_dump() for e in first] == [e.model_dump() for e in second]


@pytest.mark.parametrize("status", [s.value for s in AppointmentStatus])
def test_every_status_has_a_color(status):
    assert status_color(status).startswith("#")


@pytest.mark.parametrize("status", [None, "", "entered-in-error", "whatever"])
def test_unrecognized_status_uses_default_color(status):
    assert status_color(status) == DEFAULT_COLOR


def test_parse_instant_keeps_offsets():
    parsed = parse_instant("2025-01-01T09:00:00-05:00", NOW)
    assert parsed.astimezone(timezone.utc) == datetime(2025, 1, 1, 14, 0, tzinfo=timezone.utc)


def test_parse_instant_falls_back_on_garbage():
    assert parse_instant("not a date", NOW) == NOW


def test_format_instant():
    value = datetime(2025, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert format_instant(value) == "2025-01-01T14:00:00.000Z"


def test_event_details():
    [event] = to_calendar_events([appointment("A1", status="arrived")], PATIENTS, PRACTITIONERS, now=NOW)
    details = event_details(event)
    assert details == {
        "id": "A1",
        "title": "John Doe with Sarah Wilson",
        "status": "arrived",
        "message": "John Doe with Sarah Wilson - Status: arrived",
    }
