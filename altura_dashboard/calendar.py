"""Projection of appointments onto calendar events."""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Sequence
from .models import AppointmentRecord, CalendarEvent, PatientRecord, PractitionerRecord
from .participants import participant_name

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    "booked": "#2563eb",  # blue
    "arrived": "#059669",  # green
    "checked-in": "#059669",
    "fulfilled": "#10b981",  # emerald
    "cancelled": "#dc2626",  # red
    "noshow": "#9ca3af",  # gray
    "pending": "#d97706",  # orange
}
DEFAULT_COLOR = "#6b7280"


def status_color(status: str | None) -> str:
    return STATUS_COLORS.get(status or "", DEFAULT_COLOR)


def format_instant(value: datetime) -> str:
    """UTC FHIR instant with millisecond precision, e.g. 2025-01-01T14:00:00.000Z."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str | None, default: datetime) -> datetime:
    """Parse a FHIR instant/dateTime; missing values become ``default``."""
    if not value:
        return default
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable appointment timestamp %r", value)
        return default
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def to_calendar_event(
    appointment: AppointmentRecord,
    patients: Sequence[PatientRecord],
    practitioners: Sequence[PractitionerRecord],
    now: datetime,
) -> CalendarEvent:
    patient = participant_name(appointment, "Patient", patients, practitioners) or "Unknown Patient"
    practitioner = participant_name(appointment, "Practitioner", patients, practitioners) or "Unknown Practitioner"
    return CalendarEvent(
        id=appointment.id or "",
        title=f"{patient} with {practitioner}",
        start=parse_instant(appointment.start, now),
        end=parse_instant(appointment.end, now),
        color=status_color(appointment.status),
        resource=appointment,
    )


def to_calendar_events(
    appointments: Sequence[AppointmentRecord],
    patients: Sequence[PatientRecord],
    practitioners: Sequence[PractitionerRecord],
    now: datetime | None = None,
) -> list[CalendarEvent]:
    """Map every appointment to an event.

    Appointments without start or end are placed at ``now`` (the current
    instant unless given).
    """
    now = now or datetime.now(timezone.utc)
    return [to_calendar_event(a, patients, practitioners, now) for a in appointments]


def event_details(event: CalendarEvent) -> dict[str, Any]:
    """Payload shown when an event is clicked."""
    status = event.resource.status
    return {
        "id": event.id,
        "title": event.title,
        "status": status,
        "message": f"{event.title} - Status: {status}",
    }
