from __future__ import annotations
import logging
from . import config
from .client import FhirClientError, ResourceClient
from .display import display_name
from .models import Address, AppointmentRecord, PatientRecord
from .notifications import Notifier

logger = logging.getLogger(__name__)


def format_address(address: Address) -> str:
    """One-line rendering: "12 Main St, Springfield, IL 62701, US"."""
    region = " ".join(part for part in (address.state, address.postal_code) if part)
    parts = [", ".join(address.line), address.city, region, address.country]
    return ", ".join(part for part in parts if part)


class PatientDirectory:
    """Patient list with search, gender filter and per-patient history."""

    def __init__(self, client: ResourceClient, notifier: Notifier | None = None):
        self.client = client
        self.notifier = notifier or Notifier()
        self.patients: list[PatientRecord] = []
        self.error: str | None = None
        self.loading = True

    async def refresh(self) -> bool:
        """Load only when someone is signed in; otherwise record the error."""
        try:
            profile = await self.client.get_profile()
        except FhirClientError:
            logger.exception("Auth check failed")
            self._report_failure()
            self.loading = False
            return False
        if not profile:
            self.error = "Not authenticated"
            self.loading = False
            return False
        return await self.load()

    def _report_failure(self) -> None:
        self.error = "Failed to load patients"
        self.notifier.error("Error loading patients", "Failed to fetch patient data. Please try again.")

    async def load(self) -> bool:
        self.loading = True
        self.error = None
        try:
            self.patients = await self.client.search_resources("Patient", {"_count": config.PATIENT_PAGE_SIZE})
        except FhirClientError:
            logger.exception("Failed to load patients")
            self._report_failure()
            return False
        finally:
            self.loading = False
        return True

    async def fetch(self, patient_id: str) -> PatientRecord | None:
        """Look one patient up by id on the server, outside the listed page.

        None when no such patient exists or the lookup failed; failures also
        set ``error`` and notify.
        """
        self.error = None
        try:
            found = await self.client.search_resources("Patient", {"_id": patient_id})
        except FhirClientError:
            logger.exception("Failed to load patient %s", patient_id)
            self.error = "Failed to load patient"
            self.notifier.error("Error loading patient", "Failed to fetch patient data. Please try again.")
            return None
        return next((p for p in found if p.id == patient_id), None)

    def filtered(self, search: str = "", gender: str = "all") -> list[PatientRecord]:
        term = search.lower()
        return [
            p for p in self.patients
            if term in display_name(p).lower() and (gender == "all" or p.gender == gender)
        ]

    async def appointment_history(self, patient_id: str) -> list[AppointmentRecord]:
        """Latest appointments for one patient, newest first. Empty on failure."""
        try:
            return await self.client.search_resources(
                "Appointment",
                {
                    "participant": f"Patient/{patient_id}",
                    "_count": config.HISTORY_PAGE_SIZE,
                    "_sort": "-start",
                },
            )
        except FhirClientError:
            logger.exception("Failed to load appointments for patient %s", patient_id)
            return []
