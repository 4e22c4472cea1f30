"""Human-readable labels for Patient and Practitioner records."""
from __future__ import annotations
from .models import PatientRecord, PractitionerRecord


def display_name(record: PatientRecord | PractitionerRecord) -> str:
    """Return "Given Names Family" from the first name entry.

    Falls back to "<ResourceType>/<id>" when the record has no usable name.
    """
    fallback = f"{record.resource_type}/{record.id}"
    if not record.name:
        return fallback
    name = record.name[0]
    parts = [" ".join(name.given), name.family or ""]
    full = " ".join(part for part in parts if part)
    return full or fallback
