from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from clinicsync.core.config import settings
from clinicsync.schemas.appointment import Appointment, AppointmentCreate, AppointmentUpdate
from clinicsync.schemas.common import Pagination
from clinicsync.schemas.query import QuerySignature
from clinicsync.services.credentials import CredentialProvider, get_credential_provider
from clinicsync.services.transformers import (
    appointment_from_record,
    build_create_payload,
    build_update_payload,
    extract_record,
    normalize_page,
)

logger = logging.getLogger(__name__)

CONSULTATIONS_PATH = "/admin/consultations"


class ApiError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ApiNetworkError(ApiError):
    def __init__(self, message: str = "Network error occurred") -> None:
        super().__init__(message)


class ApiHttpError(ApiError):
    def __init__(self, status_code: int, message: Optional[str] = None, *, payload: Any = None) -> None:
        super().__init__(message or f"API Error: {status_code}")
        self.status_code = status_code
        self.payload = payload


class MissingCredentialsError(ApiError):
    def __init__(self) -> None:
        super().__init__("No authentication token found")


def _error_message(response: httpx.Response, payload: Any) -> str:
    if response.status_code == 401:
        return "Unauthorized"
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return f"API Error: {response.status_code}"


class ConsultationApiClient:
    """Async client for the admin consultations endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        credentials: Optional[CredentialProvider] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "ConsultationApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> Dict[str, str]:
        provider = self._credentials or get_credential_provider()
        token = provider.get_access_token()
        if not token:
            raise MissingCredentialsError()
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = self._auth_headers()
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiNetworkError() from exc

        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = None

        if response.is_error:
            message = _error_message(response, payload)
            logger.warning("%s %s returned %s: %s", method, path, response.status_code, message)
            raise ApiHttpError(response.status_code, message, payload=payload)
        return payload if payload is not None else {}

    async def list_consultations(self, signature: QuerySignature) -> Pagination[Appointment]:
        payload = await self._request("GET", CONSULTATIONS_PATH, params=signature.to_params())
        return normalize_page(payload, requested_page=signature.page, page_size=signature.page_size)

    async def create_consultation(self, data: AppointmentCreate) -> Appointment:
        payload = await self._request("POST", CONSULTATIONS_PATH, json=build_create_payload(data))
        record = extract_record(payload)
        if record is None or record.get("id") is None:
            raise ApiError("Create response did not include a consultation id")
        merged = {
            "patient_name": data.patient_name,
            "patient_phone": data.mobile_number,
            "treatment_type": data.diseases,
            "slot_date": data.scheduled_date.isoformat(),
            "slot_time": data.scheduled_time,
            "patient_id": data.patient_id,
        }
        merged.update({key: value for key, value in record.items() if value not in (None, "")})
        appointment = appointment_from_record(merged)
        if appointment is None:
            raise ApiError("Create response could not be read")
        return appointment

    async def update_consultation(
        self,
        appointment_id: int,
        changes: AppointmentUpdate,
        *,
        current: Optional[Appointment] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            f"{CONSULTATIONS_PATH}/{appointment_id}",
            json=build_update_payload(changes, current),
        )

    async def delete_consultation(self, appointment_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"{CONSULTATIONS_PATH}/{appointment_id}")
