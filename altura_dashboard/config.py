"""Runtime settings read from the environment (and a local .env file)."""
from __future__ import annotations
import os
from datetime import tzinfo
from zoneinfo import ZoneInfo
from dotenv import load_dotenv

load_dotenv()

BASE_URL = os.getenv("MEDPLUM_BASE_URL", "http://localhost:8103").rstrip("/")
FHIR_PATH = os.getenv("MEDPLUM_FHIR_PATH", "fhir/R4").strip("/")
TOKEN_URL = os.getenv("MEDPLUM_TOKEN_URL", f"{BASE_URL}/oauth2/token")
CLIENT_ID = os.getenv("MEDPLUM_CLIENT_ID")
CLIENT_SECRET = os.getenv("MEDPLUM_CLIENT_SECRET")
TIMEOUT = float(os.getenv("MEDPLUM_TIMEOUT", "15"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# page sizes used by the dashboard pages
APPOINTMENT_PAGE_SIZE = 20
ROSTER_PAGE_SIZE = 100
PATIENT_PAGE_SIZE = 20
HISTORY_PAGE_SIZE = 10


def local_timezone() -> tzinfo | None:
    """Zone used to read form datetimes; None means the host's local zone."""
    name = os.getenv("DASHBOARD_TIMEZONE")
    return ZoneInfo(name) if name else None
