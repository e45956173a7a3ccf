"""Normalization of backend consultation payloads.

Everything that tolerates the backend's alternative field names and
response shapes lives here; the rest of the package only sees
:class:`~clinicsync.schemas.Appointment` and :class:`~clinicsync.schemas.Pagination`.
"""
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from clinicsync.schemas.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentUpdate,
    BookedSlot,
)
from clinicsync.schemas.common import Pagination
from clinicsync.services.status_mapper import to_external, to_internal

logger = logging.getLogger(__name__)


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped:
                return stripped
    return None


def _capitalize(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value[:1].upper() + value[1:].lower()


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _parse_slots(raw_slots: Any) -> List[BookedSlot]:
    slots: List[BookedSlot] = []
    if not isinstance(raw_slots, list):
        return slots
    for raw in raw_slots:
        if not isinstance(raw, Mapping):
            continue
        try:
            slots.append(
                BookedSlot(
                    id=raw.get("id"),
                    slot_date=raw.get("slot_date"),
                    slot_time=str(raw.get("slot_time") or ""),
                )
            )
        except ValidationError:
            logger.debug("Skipping malformed booked slot %r", raw)
    return slots


def _patient_name(record: Mapping[str, Any], patient: Mapping[str, Any]) -> Optional[str]:
    direct = _first_text(record.get("patient_name"))
    if direct:
        return direct
    first = (patient.get("first_name") or "").strip()
    last = (patient.get("last_name") or "").strip()
    return f"{first} {last}".strip() or None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def appointment_from_record(record: Mapping[str, Any]) -> Optional[Appointment]:
    """Build an :class:`Appointment` from one consultation record.

    Returns ``None`` for records that carry no usable scheduled date, since
    those cannot be placed in any partition.
    """
    patient = record.get("patient") or {}
    if not isinstance(patient, Mapping):
        patient = {}
    raw_slots = record.get("booked_slots") or []
    first_slot = raw_slots[0] if isinstance(raw_slots, list) and raw_slots and isinstance(raw_slots[0], Mapping) else {}

    scheduled_date = _parse_date(record.get("slot_date")) or _parse_date(first_slot.get("slot_date"))
    if scheduled_date is None:
        logger.warning("Dropping consultation %s without a scheduled date", record.get("id"))
        return None

    values: Dict[str, Any] = {
        "id": record.get("id"),
        "scheduled_date": scheduled_date,
        "scheduled_time": _first_text(record.get("slot_time"), first_slot.get("slot_time")) or "",
        "status": to_internal(_first_text(record.get("appointment_status"), record.get("status"))),
        "patient_id": record.get("patient_id") or patient.get("id"),
        "gender": _capitalize(_first_text(patient.get("gender"), record.get("patient_gender"))),
        "age": _optional_int(patient.get("age")),
        "meet_link": _first_text(record.get("meet_link"), record.get("meeting_link")),
        "is_already_registered": record.get("is_already_registered"),
        "booked_slots": _parse_slots(raw_slots),
    }
    name = _patient_name(record, patient)
    if name:
        values["patient_name"] = name
    phone = _first_text(record.get("patient_phone"), patient.get("phone_number"))
    if phone:
        values["mobile_number"] = phone
    diseases = _first_text(record.get("treatment_type"), record.get("treatment_history"))
    if diseases:
        values["diseases"] = diseases

    try:
        return Appointment(**values)
    except ValidationError as exc:
        logger.warning("Dropping malformed consultation %s: %s", record.get("id"), exc)
        return None


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_page(payload: Any, *, requested_page: int, page_size: int) -> Pagination[Appointment]:
    """Map either response shape onto a single :class:`Pagination`.

    Accepts ``{"data": [...], "meta": {"total", "current_page", "total_pages"}}``
    and the legacy flat ``total_count``/``current_page``/``total_pages`` form.
    """
    if isinstance(payload, list):
        payload = {"data": payload}
    if not isinstance(payload, Mapping):
        payload = {}
    records = payload.get("data") or []
    if not isinstance(records, list):
        records = []
    meta = payload.get("meta") if isinstance(payload.get("meta"), Mapping) else {}

    items = [
        appointment
        for appointment in (appointment_from_record(record) for record in records if isinstance(record, Mapping))
        if appointment is not None
    ]

    total = _as_int(meta.get("total", payload.get("total_count")), len(items))
    current_page = _as_int(meta.get("current_page", payload.get("current_page")), requested_page)
    default_pages = max(1, math.ceil(total / page_size)) if page_size else 1
    total_pages = _as_int(meta.get("total_pages", payload.get("total_pages")), default_pages)

    return Pagination[Appointment](
        items=items,
        page=max(1, current_page),
        page_size=page_size,
        total=max(0, total),
        total_pages=max(1, total_pages),
    )


def extract_record(payload: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        return None
    for key in ("consultation", "data", "booked_slot"):
        nested = payload.get(key)
        if isinstance(nested, Mapping):
            return nested
    if "id" in payload:
        return payload
    return None


def _contact_note(patient_name: Optional[str], mobile_number: Optional[str]) -> str:
    return f"Patient: {patient_name or ''}, Phone: {mobile_number or ''}"


def build_create_payload(data: AppointmentCreate) -> Dict[str, Any]:
    return {
        "patient_id": data.patient_id,
        "slot_date": data.scheduled_date.isoformat(),
        "slot_time": data.scheduled_time,
        "treatment_type": data.diseases,
        "notes": data.notes or _contact_note(data.patient_name, data.mobile_number),
    }


def build_update_payload(
    changes: AppointmentUpdate, current: Optional[Appointment] = None
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if changes.scheduled_date is not None:
        payload["slot_date"] = changes.scheduled_date.isoformat()
    if changes.scheduled_time:
        payload["slot_time"] = changes.scheduled_time
    if changes.diseases:
        payload["treatment_type"] = changes.diseases
    if changes.status is not None:
        payload["status"] = to_external(changes.status)
    if changes.meet_link is not None:
        payload["meet_link"] = changes.meet_link
    if changes.notes is not None:
        payload["notes"] = changes.notes
    elif changes.patient_name or changes.mobile_number:
        payload["notes"] = _contact_note(
            changes.patient_name or (current.patient_name if current else None),
            changes.mobile_number or (current.mobile_number if current else None),
        )
    return payload
