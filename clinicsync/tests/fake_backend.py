from __future__ import annotations

import math
from datetime import date
from itertools import count
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

API_PREFIX = "/api/v1/admin/consultations"
TEST_TOKEN = "test-token"

_SORT_COLUMNS = {
    "treatment_history": "treatment_type",
    "patient_gender": "gender",
}


class FakeConsultationBackend:
    """In-memory stand-in for the admin consultations endpoints."""

    def __init__(self, today: Optional[date] = None, *, legacy_shape: bool = False) -> None:
        self.today = today or date.today()
        self.legacy_shape = legacy_shape
        self.records: Dict[int, Dict[str, Any]] = {}
        self.requests: List[Dict[str, Any]] = []
        self.failures: List[Tuple[int, Dict[str, Any]]] = []
        self._ids = count(1)
        self.app = self._build_app()

    def add(
        self,
        patient_name: str,
        slot_date: date,
        *,
        slot_time: str = "09:00",
        status: str = "scheduled",
        phone: str = "+1 234-567-8900",
        treatment: str = "General Consultation",
    ) -> Dict[str, Any]:
        record_id = next(self._ids)
        record = {
            "id": record_id,
            "patient_id": 100 + record_id,
            "patient_name": patient_name,
            "patient_phone": phone,
            "slot_date": slot_date.isoformat(),
            "slot_time": slot_time,
            "treatment_type": treatment,
            "appointment_status": status,
            "booked_slots": [{"id": 500 + record_id, "slot_date": slot_date.isoformat(), "slot_time": slot_time}],
        }
        self.records[record_id] = record
        return record

    def fail_next(self, status_code: int, body: Optional[Dict[str, Any]] = None) -> None:
        self.failures.append((status_code, body or {}))

    def list_requests(self, **filters: Any) -> List[Dict[str, Any]]:
        return [
            entry
            for entry in self.requests
            if entry["method"] == "GET"
            and all(entry["params"].get(key) == str(value) for key, value in filters.items())
        ]

    def _matches(self, record: Dict[str, Any], date_filter: str, search: Optional[str]) -> bool:
        slot_date = date.fromisoformat(record["slot_date"])
        if date_filter == "today" and slot_date != self.today:
            return False
        if date_filter == "future" and slot_date <= self.today:
            return False
        if date_filter == "past" and slot_date >= self.today:
            return False
        if search:
            term = search.lower()
            haystack = " ".join(
                str(record.get(key) or "") for key in ("patient_name", "patient_phone", "treatment_type")
            ).lower()
            return term in haystack
        return True

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        @app.middleware("http")
        async def record_request(request: Request, call_next):
            backend.requests.append(
                {
                    "method": request.method,
                    "path": request.url.path,
                    "params": dict(request.query_params),
                }
            )
            if request.headers.get("authorization") != f"Bearer {TEST_TOKEN}":
                return JSONResponse(status_code=401, content={"error": "Unauthorized"})
            if backend.failures:
                status_code, body = backend.failures.pop(0)
                return JSONResponse(status_code=status_code, content=body)
            return await call_next(request)

        @app.get(API_PREFIX)
        def list_consultations(
            date_filter: str = "today",
            page: int = 1,
            per_page: int = 10,
            sort_by: str = "slot_date",
            sort_dir: str = "asc",
            search: Optional[str] = None,
        ) -> Dict[str, Any]:
            matching = [
                record for record in backend.records.values() if backend._matches(record, date_filter, search)
            ]
            column = _SORT_COLUMNS.get(sort_by, sort_by)
            matching.sort(key=lambda record: str(record.get(column) or ""), reverse=sort_dir == "desc")
            total = len(matching)
            total_pages = max(1, math.ceil(total / per_page))
            start = (page - 1) * per_page
            data = matching[start:start + per_page]
            if backend.legacy_shape:
                return {
                    "data": data,
                    "total_count": total,
                    "current_page": page,
                    "total_pages": total_pages,
                }
            return {
                "data": data,
                "meta": {
                    "current_page": page,
                    "per_page": per_page,
                    "total": total,
                    "total_pages": total_pages,
                },
            }

        @app.post(API_PREFIX, status_code=201)
        async def create_consultation(request: Request) -> Dict[str, Any]:
            body = await request.json()
            name_part, _, phone_part = (body.get("notes") or "").partition(", Phone:")
            record = backend.add(
                name_part.replace("Patient:", "").strip() or "Unknown Patient",
                date.fromisoformat(body["slot_date"]),
                slot_time=body.get("slot_time") or "09:00",
                phone=phone_part.strip() or "N/A",
                treatment=body.get("treatment_type") or "General Consultation",
            )
            record["patient_id"] = body.get("patient_id")
            return {"message": "Consultation created", "consultation": record}

        @app.put(API_PREFIX + "/{consultation_id}")
        async def update_consultation(consultation_id: int, request: Request):
            record = backend.records.get(consultation_id)
            if record is None:
                return JSONResponse(status_code=404, content={"error": "Consultation not found"})
            body = await request.json()
            for field in ("slot_date", "slot_time", "treatment_type", "notes", "meet_link"):
                if field in body:
                    record[field] = body[field]
            if "status" in body:
                record["appointment_status"] = body["status"]
            return {"message": "Consultation updated", "booked_slot": record}

        @app.delete(API_PREFIX + "/{consultation_id}")
        def delete_consultation(consultation_id: int):
            if backend.records.pop(consultation_id, None) is None:
                return JSONResponse(status_code=404, content={"error": "Consultation not found"})
            return {"message": "Consultation deleted"}

        return app
