from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AppointmentStatus(str, Enum):
    BOOKED = "booked"
    PENDING = "pending"
    CHECKED_IN = "checked-in"
    ARRIVED = "arrived"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    NOSHOW = "noshow"


class FhirModel(BaseModel):
    """Base for FHIR snapshots. Unknown fields from the server are kept."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)


class HumanName(FhirModel):
    given: list[str] = Field(default_factory=list)
    family: str | None = None


class ContactPoint(FhirModel):
    system: str | None = None
    value: str | None = None
    use: str | None = None


class Address(FhirModel):
    line: list[str] = Field(default_factory=list)
    city: str | None = None
    state: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    country: str | None = None


class PatientRecord(FhirModel):
    resource_type: str = Field(default="Patient", alias="resourceType")
    id: str | None = None
    name: list[HumanName] = Field(default_factory=list)
    gender: str | None = None
    birth_date: str | None = Field(default=None, alias="birthDate")
    telecom: list[ContactPoint] = Field(default_factory=list)
    address: list[Address] = Field(default_factory=list)


class PractitionerRecord(FhirModel):
    resource_type: str = Field(default="Practitioner", alias="resourceType")
    id: str | None = None
    name: list[HumanName] = Field(default_factory=list)
    qualification: list[dict[str, Any]] = Field(default_factory=list)


class Reference(FhirModel):
    reference: str | None = None
    display: str | None = None


class AppointmentParticipant(FhirModel):
    actor: Reference | None = None
    status: str | None = None


class AppointmentRecord(FhirModel):
    resource_type: str = Field(default="Appointment", alias="resourceType")
    id: str | None = None
    status: str | None = None
    start: str | None = None  # FHIR instant
    end: str | None = None
    participant: list[AppointmentParticipant] = Field(default_factory=list)


class PatchOperation(BaseModel):
    op: str = "replace"
    path: str
    value: Any = None


class CalendarEvent(BaseModel):
    """Calendar-ready projection of one appointment."""
    id: str
    title: str
    start: datetime
    end: datetime
    color: str
    resource: AppointmentRecord


RESOURCE_MODELS: dict[str, type[FhirModel]] = {
    "Patient": PatientRecord,
    "Practitioner": PractitionerRecord,
    "Appointment": AppointmentRecord,
}

# Request/response bodies for the HTTP layer ---------------------------------

class CreateAppointmentRequest(BaseModel):
    patient_ref: str = ""
    practitioner_ref: str = ""
    start: str = ""  # local datetime, e.g. 2025-01-01T09:00
    end: str = ""


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class DashboardStats(BaseModel):
    total_patients: int = 0
    total_practitioners: int = 0
    total_appointments: int = 0
    today_appointments: int = 0
    upcoming_appointments: int = 0
