"""Appointments page: list, calendar, create and status updates.

Every mutation is followed by a full reload from the server; the page never
patches its own copy of the data.
"""
from __future__ import annotations
import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Any, Sequence
from . import config
from .calendar import format_instant, to_calendar_events
from .client import FhirClientError, ResourceClient
from .models import (
    AppointmentParticipant,
    AppointmentRecord,
    AppointmentStatus,
    CalendarEvent,
    PatchOperation,
    PatientRecord,
    PractitionerRecord,
    Reference,
)
from .notifications import Notifier
from .participants import participant_names

logger = logging.getLogger(__name__)


def to_instant(local_value: str, tz: tzinfo | None = None) -> str:
    """Convert a form datetime (``2025-01-01T09:00``) to a UTC FHIR instant.

    Naive values are read in ``tz``, or in the host's local zone when None.
    """
    value = datetime.fromisoformat(local_value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz) if tz else value.astimezone()
    return format_instant(value)


def build_appointment(
    patient_ref: str,
    practitioner_ref: str,
    start: str,
    end: str,
    tz: tzinfo | None = None,
) -> AppointmentRecord:
    return AppointmentRecord(
        status=AppointmentStatus.BOOKED.value,
        start=to_instant(start, tz),
        end=to_instant(end, tz),
        participant=[
            AppointmentParticipant(actor=Reference(reference=patient_ref), status="accepted"),
            AppointmentParticipant(actor=Reference(reference=practitioner_ref), status="accepted"),
        ],
    )


def status_patch(status: AppointmentStatus | str) -> list[PatchOperation]:
    return [PatchOperation(op="replace", path="/status", value=AppointmentStatus(status).value)]


class AppointmentBoard:
    """State behind the appointments page.

    ``events`` is recomputed whenever appointments or either roster is
    replaced, as long as all three are non-empty.
    """

    def __init__(self, client: ResourceClient, *, tz: tzinfo | None = None, notifier: Notifier | None = None):
        self.client = client
        self.tz = tz if tz is not None else config.local_timezone()
        self.notifier = notifier or Notifier()
        self._appointments: list[AppointmentRecord] = []
        self._patients: list[PatientRecord] = []
        self._practitioners: list[PractitionerRecord] = []
        self.events: list[CalendarEvent] = []
        self.loading = True
        self.saving = False
        self.closed = False
        self.reloaded = False
        self.clear_form()

    # rosters ---------------------------------------------------------------

    @property
    def appointments(self) -> list[AppointmentRecord]:
        return self._appointments

    @appointments.setter
    def appointments(self, value: Sequence[AppointmentRecord]) -> None:
        self._appointments = list(value)
        self._recompute_events()

    @property
    def patients(self) -> list[PatientRecord]:
        return self._patients

    @patients.setter
    def patients(self, value: Sequence[PatientRecord]) -> None:
        self._patients = list(value)
        self._recompute_events()

    @property
    def practitioners(self) -> list[PractitionerRecord]:
        return self._practitioners

    @practitioners.setter
    def practitioners(self, value: Sequence[PractitionerRecord]) -> None:
        self._practitioners = list(value)
        self._recompute_events()

    def _recompute_events(self) -> None:
        if self._appointments and self._patients and self._practitioners:
            self.events = to_calendar_events(self._appointments, self._patients, self._practitioners)

    def close(self) -> None:
        """Stop accepting results; requests still in flight are discarded."""
        self.closed = True

    # loading ---------------------------------------------------------------

    async def refresh(self) -> bool:
        """Load the page if someone is signed in. Returns whether data was loaded."""
        try:
            profile = await self.client.get_profile()
        except FhirClientError:
            logger.exception("Auth check failed")
            self.notifier.error(
                "Authentication Error", "Failed to verify authentication. Please sign in again."
            )
            self.loading = False
            return False
        if not profile:
            logger.info("No profile; appointments page not loaded")
            self.loading = False
            return False
        return await self.load()

    async def load(self) -> bool:
        self.loading = True
        try:
            appointments, patients, practitioners = await asyncio.gather(
                self.client.search_resources("Appointment", {"_count": config.APPOINTMENT_PAGE_SIZE}),
                self.client.search_resources("Patient", {"_count": config.ROSTER_PAGE_SIZE}),
                self.client.search_resources("Practitioner", {"_count": config.ROSTER_PAGE_SIZE}),
            )
        except FhirClientError:
            logger.exception("Failed to load appointments page")
            if not self.closed:
                self.notifier.error(
                    "Error loading data",
                    "Failed to fetch appointments, patients, or practitioners. Please try again.",
                )
            return False
        finally:
            self.loading = False

        if self.closed:
            return False
        self._appointments = list(appointments)
        self._patients = list(patients)
        self._practitioners = list(practitioners)
        self._recompute_events()
        logger.info(
            "Loaded %d appointments, %d patients, %d practitioners",
            len(self._appointments), len(self._patients), len(self._practitioners),
        )
        return True

    # create ----------------------------------------------------------------

    def clear_form(self) -> None:
        self.patient_ref = ""
        self.practitioner_ref = ""
        self.start = ""
        self.end = ""

    @property
    def can_create(self) -> bool:
        return bool(self.patient_ref and self.practitioner_ref and self.start and self.end) and not self.saving

    async def create(self) -> AppointmentRecord | None:
        """Submit the form. Returns the created appointment, or None on failure.

        ``reloaded`` tells whether the page data was refreshed afterwards.
        """
        if not self.can_create:
            return None
        self.saving = True
        self.reloaded = False
        try:
            appointment = build_appointment(
                self.patient_ref, self.practitioner_ref, self.start, self.end, tz=self.tz
            )
            created = await self.client.create_resource(appointment)
        except (FhirClientError, ValueError):
            logger.exception("Failed to create appointment")
            if not self.closed:
                self.notifier.error(
                    "Error creating appointment",
                    "Failed to create the appointment. Please check the details and try again.",
                )
            return None
        finally:
            self.saving = False

        if self.closed:
            return created
        self.reloaded = await self.load()
        self.clear_form()
        self.notifier.success("Success", "Appointment created successfully!")
        return created

    # status ----------------------------------------------------------------

    async def update_status(self, appointment_id: str, status: AppointmentStatus | str) -> bool:
        self.reloaded = False
        try:
            operations = status_patch(status)
            await self.client.patch_resource("Appointment", appointment_id, operations)
        except (FhirClientError, ValueError):
            logger.exception("Failed to update status of appointment %s", appointment_id)
            if not self.closed:
                self.notifier.error(
                    "Error updating status", "Failed to update appointment status. Please try again."
                )
            return False
        if self.closed:
            return True
        self.notifier.success("Status updated", "Appointment status updated successfully!")
        self.reloaded = await self.load()
        return True

    # views -----------------------------------------------------------------

    def rows(self) -> list[dict[str, Any]]:
        """Appointment list rows with participants rendered as names."""
        return [
            {
                "id": a.id,
                "start": a.start,
                "end": a.end,
                "status": a.status or AppointmentStatus.BOOKED.value,
                "participants": participant_names(a, self._patients, self._practitioners),
            }
            for a in self._appointments
        ]

    def find_event(self, appointment_id: str) -> CalendarEvent | None:
        return next((e for e in self.events if e.id == appointment_id), None)
