"""Async FHIR client for the Medplum server backing the dashboard.
Assumes OAuth2 client-credentials flow.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Protocol, Sequence
import httpx
from . import config
from .models import RESOURCE_MODELS, FhirModel, PatchOperation

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class FhirClientError(RuntimeError):
    """Base exception for FHIR client errors."""


class FhirAuthError(FhirClientError):
    """Raised when an access token cannot be obtained."""


class FhirAPIError(FhirClientError):
    """Raised when the FHIR server fails or answers with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResourceClient(Protocol):
    """What the dashboard pages need from a FHIR client."""

    async def search_resources(self, resource_type: str, params: dict[str, Any] | None = None) -> list[Any]: ...

    async def create_resource(self, resource: FhirModel | dict[str, Any]) -> Any: ...

    async def execute_batch(self, bundle: dict[str, Any]) -> list[dict[str, Any]]: ...

    async def patch_resource(self, resource_type: str, resource_id: str, operations: Sequence[PatchOperation]) -> Any: ...

    async def get_profile(self) -> dict[str, Any] | None: ...


def parse_resource(payload: dict[str, Any]) -> Any:
    """Turn a FHIR JSON resource into its record model, or leave it as a dict."""
    model = RESOURCE_MODELS.get(payload.get("resourceType", ""))
    return model.model_validate(payload) if model else payload


def to_payload(resource: FhirModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(resource, FhirModel):
        return resource.model_dump(by_alias=True, exclude_none=True)
    return dict(resource)


class FhirClient:
    def __init__(
        self,
        base_url: str = config.BASE_URL,
        *,
        fhir_path: str = config.FHIR_PATH,
        token_url: str = config.TOKEN_URL,
        client_id: str | None = config.CLIENT_ID,
        client_secret: str | None = config.CLIENT_SECRET,
        timeout: float = config.TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.fhir_url = f"{self.base_url}/{fhir_path.strip('/')}"
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._token_cache: dict[str, float | str | None] = {"token": None, "exp": 0.0}

    async def _get_token(self) -> str | None:
        """Fetch and cache bearer token until five minutes before it expires."""
        if not self.client_id or not self.client_secret:
            return None
        now = time.time()
        if self._token_cache["token"] and now < self._token_cache["exp"]:  # type: ignore[operator]
            return self._token_cache["token"]  # type: ignore[return-value]

        logger.debug("Requesting Medplum access token")
        try:
            async with httpx.AsyncClient(http2=True, timeout=self.timeout) as client:
                resp = await client.post(
                    self.token_url,
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.client_secret),
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("Failed to obtain Medplum token: %s", exc)
            raise FhirAuthError("Failed to obtain access token") from exc

        token = data.get("access_token")
        if not token:
            raise FhirAuthError("Token response missing access_token")
        # default expires_in 3600 seconds = 1 hour
        self._token_cache.update(token=token, exp=now + data.get("expires_in", 3600) - 300)
        return token

    async def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers = {"Accept": FHIR_JSON}
        token = await self._get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content_type: str | None = None,
    ) -> httpx.Response:
        headers = await self._headers(content_type)
        try:
            async with httpx.AsyncClient(http2=True, timeout=self.timeout) as client:
                resp = await client.request(method, url, params=params, json=json, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("%s %s failed with status %s: %s", method, url, exc.response.status_code, exc.response.text[:2048])
            raise FhirAPIError(
                f"FHIR server responded with status {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise FhirAPIError("Failed to reach FHIR server") from exc
        return resp

    async def search_resources(self, resource_type: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Search one resource type and return the matching records in server order."""
        resp = await self._request("GET", f"{self.fhir_url}/{resource_type}", params=params)
        bundle = resp.json()
        return [
            parse_resource(entry["resource"])
            for entry in bundle.get("entry", [])
            if entry.get("resource", {}).get("resourceType") == resource_type
        ]

    async def create_resource(self, resource: FhirModel | dict[str, Any]) -> Any:
        """Create a resource; the returned record carries the server-assigned id."""
        payload = to_payload(resource)
        resource_type = payload.get("resourceType")
        if not resource_type:
            raise ValueError("resource must have a resourceType")
        resp = await self._request("POST", f"{self.fhir_url}/{resource_type}", json=payload, content_type=FHIR_JSON)
        return parse_resource(resp.json())

    async def execute_batch(self, bundle: dict[str, Any]) -> list[dict[str, Any]]:
        """Post a batch Bundle; return the per-entry ``response`` blocks in request order."""
        resp = await self._request("POST", self.fhir_url, json=bundle, content_type=FHIR_JSON)
        return [entry.get("response", {}) for entry in resp.json().get("entry", [])]

    async def patch_resource(self, resource_type: str, resource_id: str, operations: Sequence[PatchOperation]) -> Any:
        """Apply a JSON Patch to one resource."""
        body = [op.model_dump() for op in operations]
        resp = await self._request(
            "PATCH",
            f"{self.fhir_url}/{resource_type}/{resource_id}",
            json=body,
            content_type="application/json-patch+json",
        )
        return parse_resource(resp.json())

    async def get_profile(self) -> dict[str, Any] | None:
        """Return the signed-in profile resource, or None when not authenticated."""
        try:
            resp = await self._request("GET", f"{self.base_url}/auth/me")
        except FhirAuthError:
            logger.info("No access token available; treating session as signed out")
            return None
        except FhirAPIError as exc:
            if exc.status_code in (401, 403):
                return None
            raise
        return resp.json().get("profile") or None
