"""Demo data for an empty server: 3 patients, 1 practitioner, 1 appointment."""
from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from .calendar import format_instant
from .client import FhirClientError, ResourceClient, to_payload
from .models import (
    AppointmentParticipant,
    AppointmentRecord,
    FhirModel,
    HumanName,
    PatientRecord,
    PractitionerRecord,
    Reference,
)
from .notifications import Notifier

logger = logging.getLogger(__name__)

DEMO_PATIENTS = [
    PatientRecord(name=[HumanName(given=["John"], family="Doe")], gender="male", birthDate="1985-06-15"),
    PatientRecord(name=[HumanName(given=["Jane"], family="Smith")], gender="female", birthDate="1990-03-22"),
    PatientRecord(name=[HumanName(given=["Robert"], family="Johnson")], gender="male", birthDate="1978-11-08"),
]
DEMO_PRACTITIONER = PractitionerRecord(
    name=[HumanName(given=["Dr. Sarah"], family="Wilson")],
    qualification=[{"code": {"text": "MD"}}],
)


def batch_bundle(resources: list[FhirModel]) -> dict[str, Any]:
    """Wrap resources in a batch Bundle of POST requests."""
    return {
        "resourceType": "Bundle",
        "type": "batch",
        "entry": [
            {"request": {"method": "POST", "url": r.resource_type}, "resource": to_payload(r)}
            for r in resources
        ],
    }


def _location(results: list[dict[str, Any]], index: int, fallback: str) -> str:
    location = results[index].get("location") if index < len(results) else None
    if not location:
        return fallback
    # Medplum answers with "Patient/<id>/_history/<version>"
    return location.split("/_history")[0]


async def needs_seed(client: ResourceClient) -> bool:
    """True when the server holds no patients, practitioners or appointments."""
    try:
        found = await asyncio.gather(
            client.search_resources("Patient", {"_count": 1}),
            client.search_resources("Practitioner", {"_count": 1}),
            client.search_resources("Appointment", {"_count": 1}),
        )
    except FhirClientError:
        logger.exception("Failed to check demo data")
        return True
    return not any(found)


async def seed_demo_data(client: ResourceClient, notifier: Notifier, now: datetime | None = None) -> bool:
    logger.info("Seeding demo data")
    now = now or datetime.now(timezone.utc)
    try:
        results = await client.execute_batch(batch_bundle([*DEMO_PATIENTS, DEMO_PRACTITIONER]))
        patient_ref = _location(results, 0, "Patient/demo1")
        practitioner_ref = _location(results, 3, "Practitioner/demo1")

        start = now + timedelta(days=1)
        appointment = AppointmentRecord(
            status="booked",
            start=format_instant(start),
            end=format_instant(start + timedelta(minutes=30)),
            participant=[
                AppointmentParticipant(actor=Reference(reference=patient_ref), status="accepted"),
                AppointmentParticipant(actor=Reference(reference=practitioner_ref), status="accepted"),
            ],
        )
        await client.execute_batch(batch_bundle([appointment]))
    except FhirClientError:
        logger.exception("Failed to seed demo data")
        notifier.error("Error seeding data", "Failed to create demo data. Please try again.")
        return False

    notifier.success("Demo data created", "Successfully created 3 patients, 1 practitioner, and 1 appointment!")
    return True
