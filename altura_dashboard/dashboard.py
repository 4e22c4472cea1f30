"""Home page summary: counts and the most recent records."""
from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from typing import Sequence
from . import config
from .calendar import parse_instant
from .client import FhirClientError, ResourceClient
from .models import AppointmentRecord, DashboardStats, PatientRecord
from .notifications import Notifier

logger = logging.getLogger(__name__)

RECENT_ITEMS = 5


def summarize(
    patients: Sequence[PatientRecord],
    practitioners: Sequence,
    appointments: Sequence[AppointmentRecord],
    now: datetime | None = None,
) -> DashboardStats:
    """Totals plus appointments starting today (local date) and in the future."""
    now = now or datetime.now(timezone.utc)
    today = now.astimezone().date()
    starts = [parse_instant(a.start, now) for a in appointments if a.start]
    return DashboardStats(
        total_patients=len(patients),
        total_practitioners=len(practitioners),
        total_appointments=len(appointments),
        today_appointments=sum(1 for s in starts if s.astimezone().date() == today),
        upcoming_appointments=sum(1 for s in starts if s > now),
    )


class DashboardSummary:
    def __init__(self, client: ResourceClient, notifier: Notifier | None = None):
        self.client = client
        self.notifier = notifier or Notifier()
        self.stats = DashboardStats()
        self.recent_appointments: list[AppointmentRecord] = []
        self.recent_patients: list[PatientRecord] = []
        self.loading = True

    @property
    def is_empty(self) -> bool:
        return not (self.stats.total_patients or self.stats.total_practitioners or self.stats.total_appointments)

    def _report_failure(self) -> None:
        self.notifier.error(
            "Error loading dashboard",
            "Failed to load dashboard data. Please refresh the page or try signing in again.",
        )

    async def refresh(self, now: datetime | None = None) -> bool:
        """Load only when someone is signed in."""
        try:
            profile = await self.client.get_profile()
        except FhirClientError:
            logger.exception("Dashboard auth check failed")
            self._report_failure()
            self.loading = False
            return False
        if not profile:
            logger.info("Dashboard: no profile found, user not authenticated")
            self.loading = False
            return False
        return await self.load(now)

    async def load(self, now: datetime | None = None) -> bool:
        self.loading = True
        try:
            patients, practitioners, appointments = await asyncio.gather(
                self.client.search_resources("Patient", {"_count": config.ROSTER_PAGE_SIZE}),
                self.client.search_resources("Practitioner", {"_count": config.ROSTER_PAGE_SIZE}),
                self.client.search_resources("Appointment", {"_count": config.ROSTER_PAGE_SIZE}),
            )
        except FhirClientError:
            logger.exception("Failed to load dashboard data")
            self._report_failure()
            return False
        finally:
            self.loading = False

        self.stats = summarize(patients, practitioners, appointments, now)
        self.recent_appointments = list(appointments[:RECENT_ITEMS])
        self.recent_patients = list(patients[:RECENT_ITEMS])
        logger.info("Dashboard data loaded: %s", self.stats.model_dump())
        return True
