from __future__ import annotations
from typing import Literal, Sequence
from .display import display_name
from .models import AppointmentRecord, PatientRecord, PractitionerRecord

ActorType = Literal["Patient", "Practitioner"]


def _find(roster: Sequence[PatientRecord | PractitionerRecord], resource_id: str):
    return next((record for record in roster if record.id == resource_id), None)


def participant_name(
    appointment: AppointmentRecord,
    resource_type: ActorType,
    patients: Sequence[PatientRecord],
    practitioners: Sequence[PractitionerRecord],
) -> str:
    """Display name of the first participant of the given type, or "" if unresolved."""
    prefix = f"{resource_type}/"
    reference = next(
        (
            p.actor.reference
            for p in appointment.participant
            if p.actor and p.actor.reference and p.actor.reference.startswith(prefix)
        ),
        None,
    )
    if not reference:
        return ""
    roster = patients if resource_type == "Patient" else practitioners
    record = _find(roster, reference[len(prefix):])
    return display_name(record) if record else ""


def participant_names(
    appointment: AppointmentRecord,
    patients: Sequence[PatientRecord],
    practitioners: Sequence[PractitionerRecord],
) -> str:
    """Comma separated participants for the appointment list."""
    if not appointment.participant:
        return "—"

    names = []
    for participant in appointment.participant:
        reference = participant.actor.reference if participant.actor else None
        if not reference:
            names.append("Unknown")
            continue
        kind, _, resource_id = reference.partition("/")
        roster = {"Patient": patients, "Practitioner": practitioners}.get(kind)
        record = _find(roster, resource_id) if roster is not None else None
        names.append(display_name(record) if record else reference)
    return ", ".join(names)
