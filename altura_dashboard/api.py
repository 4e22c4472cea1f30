import logging
import time
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from . import config
from .appointments import AppointmentBoard
from .calendar import event_details
from .client import FhirClient, FhirClientError, ResourceClient
from .dashboard import DashboardSummary
from .display import display_name
from .models import CreateAppointmentRequest, StatusUpdateRequest
from .notifications import Notifier
from .patients import PatientDirectory, format_address
from .seeding import needs_seed, seed_demo_data

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Altura Dashboard")


@lru_cache
def get_client() -> ResourceClient:
    return FhirClient()


async def require_profile(client: ResourceClient = Depends(get_client)) -> dict:
    """Gate every page on a live profile lookup."""
    try:
        profile = await client.get_profile()
    except FhirClientError:
        raise HTTPException(status_code=502, detail="Failed to verify authentication. Please sign in again.")
    if not profile:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return profile


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    logger.info(
        "%s %s - Status: %s - Time: %.4fs",
        request.method, request.url.path, response.status_code, time.time() - start_time,
    )
    return response


def _failed(notifier: Notifier) -> HTTPException:
    note = notifier.last
    return HTTPException(status_code=502, detail=note.message if note else "FHIR server request failed")


def _dump(records) -> list[dict[str, Any]]:
    return [r.model_dump(by_alias=True, exclude_none=True, mode="json") for r in records]


def _option(record) -> dict[str, str]:
    return {"value": f"{record.resource_type}/{record.id}", "label": display_name(record)}


async def _loaded_board(client: ResourceClient) -> AppointmentBoard:
    board = AppointmentBoard(client)
    if not await board.load():
        raise _failed(board.notifier)
    return board


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": time.time()}

# Home ----------------------------------------------------------------------

@app.get("/dashboard", dependencies=[Depends(require_profile)])
async def dashboard(client: ResourceClient = Depends(get_client)):
    """Counts plus the five most recent appointments and patients."""
    summary = DashboardSummary(client)
    if not await summary.load():
        raise _failed(summary.notifier)
    return {
        "stats": summary.stats.model_dump(),
        "is_empty": summary.is_empty,
        "recent_appointments": _dump(summary.recent_appointments),
        "recent_patients": [
            {"id": p.id, "name": display_name(p), "gender": p.gender or "Unknown", "birthDate": p.birth_date}
            for p in summary.recent_patients
        ],
    }

# Patients ------------------------------------------------------------------

@app.get("/patients", dependencies=[Depends(require_profile)])
async def list_patients(
    client: ResourceClient = Depends(get_client),
    search: str = Query("", description="Case-insensitive name filter"),
    gender: str = Query("all"),
):
    directory = PatientDirectory(client)
    if not await directory.load():
        raise _failed(directory.notifier)
    matches = directory.filtered(search, gender)
    return {
        "total": len(directory.patients),
        "patients": [
            {"id": p.id, "name": display_name(p), "gender": p.gender or "Unknown", "birthDate": p.birth_date}
            for p in matches
        ],
    }


@app.get("/patients/{patient_id}", dependencies=[Depends(require_profile)])
async def get_patient(patient_id: str, client: ResourceClient = Depends(get_client)):
    """Patient detail with contacts, addresses and appointment history."""
    directory = PatientDirectory(client)
    patient = await directory.fetch(patient_id)
    if directory.error:
        raise _failed(directory.notifier)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    history = await directory.appointment_history(patient_id)
    return {
        "id": patient.id,
        "name": display_name(patient),
        "gender": patient.gender or "Unknown",
        "birthDate": patient.birth_date,
        "telecom": _dump(patient.telecom),
        "address": [format_address(a) for a in patient.address],
        "appointments": _dump(history),
    }


@app.get("/patients/{patient_id}/appointments", dependencies=[Depends(require_profile)])
async def patient_appointments(patient_id: str, client: ResourceClient = Depends(get_client)):
    return _dump(await PatientDirectory(client).appointment_history(patient_id))

# Appointments --------------------------------------------------------------

@app.get("/appointments", dependencies=[Depends(require_profile)])
async def list_appointments(client: ResourceClient = Depends(get_client)):
    board = await _loaded_board(client)
    return {
        "appointments": board.rows(),
        "patients": [_option(p) for p in board.patients],
        "practitioners": [_option(p) for p in board.practitioners],
    }


@app.post("/appointments", dependencies=[Depends(require_profile)], status_code=201)
async def create_appointment(req: CreateAppointmentRequest, client: ResourceClient = Depends(get_client)):
    board = AppointmentBoard(client)
    board.patient_ref = req.patient_ref
    board.practitioner_ref = req.practitioner_ref
    board.start = req.start
    board.end = req.end
    if not board.can_create:
        raise HTTPException(status_code=422, detail="patient_ref, practitioner_ref, start and end are required")
    created = await board.create()
    if created is None:
        raise _failed(board.notifier)
    body = created.model_dump(by_alias=True, exclude_none=True, mode="json")
    return {"appointment": body, "reloaded": board.reloaded, "notifications": _dump(board.notifier.drain())}


@app.patch("/appointments/{appointment_id}/status", dependencies=[Depends(require_profile)])
async def update_status(
    appointment_id: str, req: StatusUpdateRequest, client: ResourceClient = Depends(get_client)
):
    board = AppointmentBoard(client)
    if not await board.update_status(appointment_id, req.status):
        raise _failed(board.notifier)
    # A failed reload leaves nothing to list; omit rather than send an empty list.
    body: dict[str, Any] = {"reloaded": board.reloaded, "notifications": _dump(board.notifier.drain())}
    if board.reloaded:
        body["appointments"] = board.rows()
    return body


@app.get("/appointments/calendar", dependencies=[Depends(require_profile)])
async def calendar_events(client: ResourceClient = Depends(get_client)):
    board = await _loaded_board(client)
    return [event.model_dump(mode="json", by_alias=True) for event in board.events]


@app.get("/appointments/calendar/{appointment_id}", dependencies=[Depends(require_profile)])
async def calendar_event(appointment_id: str, client: ResourceClient = Depends(get_client)):
    """What the calendar shows when an event is clicked."""
    board = await _loaded_board(client)
    event = board.find_event(appointment_id)
    if not event:
        raise HTTPException(status_code=404, detail="No appointment found")
    return event_details(event)

# Demo data -----------------------------------------------------------------

@app.get("/seed", dependencies=[Depends(require_profile)])
async def seed_status(client: ResourceClient = Depends(get_client)):
    return {"needs_seed": await needs_seed(client)}


@app.post("/seed", dependencies=[Depends(require_profile)], status_code=201)
async def seed(client: ResourceClient = Depends(get_client)):
    notifier = Notifier()
    if not await seed_demo_data(client, notifier):
        raise _failed(notifier)
    return {"notifications": _dump(notifier.drain())}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("altura_dashboard.api:app", host="0.0.0.0", port=8000, log_level=config.LOG_LEVEL.lower())
