from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from clinicsync.core.config import settings
from clinicsync.schemas.appointment import Appointment
from clinicsync.schemas.common import Pagination
from clinicsync.schemas.query import Partition, QuerySignature, SortDirection
from clinicsync.services.api_client import ApiError, ConsultationApiClient
from clinicsync.services.cache import ResultCache
from clinicsync.services.store import AppointmentStore

logger = logging.getLogger(__name__)

DEFAULT_SORT_FIELD = "slot_date"

SORT_FIELD_MAP: Dict[str, str] = {
    "patient_name": "patient_name",
    "patientname": "patient_name",
    "mobile_number": "patient_phone",
    "mobilenumber": "patient_phone",
    "gender": "patient_gender",
    "diseases": "treatment_history",
    "status": "appointment_status",
    "date": "slot_date",
    "scheduled_date": "slot_date",
    "time": "slot_time",
    "scheduled_time": "slot_time",
}


def translate_sort_field(field: Optional[str]) -> str:
    """Map a UI sort key to the backend column, defaulting to the slot date."""
    if not field:
        return DEFAULT_SORT_FIELD
    return SORT_FIELD_MAP.get(field.strip().lower(), DEFAULT_SORT_FIELD)


def parse_direction(direction: Union[SortDirection, str, None]) -> SortDirection:
    if isinstance(direction, SortDirection):
        return direction
    try:
        return SortDirection((direction or "").strip().lower())
    except ValueError:
        return SortDirection.ASC


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


@dataclass
class ViewState:
    page: int = 1
    page_size: int = 10
    total: int = 0
    total_pages: int = 1
    loading: bool = False
    stale: bool = False
    has_data: bool = False
    error: Optional[str] = None


class QueryOrchestrator:
    """Keeps one partition view in step with the backend.

    Every input change yields a new :class:`QuerySignature`. A response is
    applied to the store only while its signature is still the current one,
    so a slow answer to an abandoned query never overwrites a newer result.
    """

    def __init__(
        self,
        client: ConsultationApiClient,
        store: AppointmentStore,
        partition: Partition,
        *,
        cache: Optional[ResultCache] = None,
        page_size: Optional[int] = None,
        max_page_size: Optional[int] = None,
        sort_field: Optional[str] = "date",
        sort_direction: Union[SortDirection, str] = SortDirection.ASC,
        active: bool = True,
    ) -> None:
        self.client = client
        self.store = store
        self.partition = Partition(partition)
        self.cache = cache if cache is not None else ResultCache()
        self.max_page_size = max(1, max_page_size or settings.max_page_size)
        self.search = ""
        self.sort_field = translate_sort_field(sort_field)
        self.sort_direction = parse_direction(sort_direction)
        self.active = active
        self.state = ViewState(
            page_size=clamp(page_size or settings.default_page_size, 1, self.max_page_size)
        )
        self._in_flight: Dict[QuerySignature, asyncio.Task] = {}

    @property
    def signature(self) -> QuerySignature:
        return QuerySignature(
            partition=self.partition,
            search=self.search,
            sort_field=self.sort_field,
            sort_direction=self.sort_direction,
            page=self.state.page,
            page_size=self.state.page_size,
        )

    @property
    def is_fetching(self) -> bool:
        return bool(self._in_flight)

    def set_search(self, text: str) -> None:
        if text == self.search:
            return
        self.search = text
        self.state.page = 1

    def set_sort(self, field: Optional[str], direction: Union[SortDirection, str, None] = None) -> None:
        sort_field = translate_sort_field(field)
        sort_direction = parse_direction(direction) if direction is not None else self.sort_direction
        if (sort_field, sort_direction) == (self.sort_field, self.sort_direction):
            return
        self.sort_field = sort_field
        self.sort_direction = sort_direction
        self.state.page = 1

    def set_page(self, page: int, page_size: Optional[int] = None) -> None:
        if page_size is not None:
            self.state.page_size = clamp(page_size, 1, self.max_page_size)
            self.state.page = 1
            return
        self.state.page = clamp(page, 1, max(1, self.state.total_pages))

    def set_active(self, active: bool) -> None:
        self.active = active

    def invalidate(self) -> None:
        self.cache.invalidate(self.partition)

    async def refresh(self) -> Optional[Pagination[Appointment]]:
        return await self.sync(force=True)

    async def sync(self, force: bool = False) -> Optional[Pagination[Appointment]]:
        """Bring the store up to date for the current signature.

        Returns the applied page, or ``None`` when nothing was applied
        (inactive view, superseded response or failed request).
        """
        if not self.active:
            return None

        signature = self.signature
        in_flight = self._in_flight.get(signature)
        if in_flight is not None:
            return await self._await_fetch(signature, in_flight)

        if not force:
            entry = self.cache.lookup(signature)
            if entry is not None:
                if self.cache.is_fresh(entry):
                    logger.debug("Cache hit for %s", signature)
                    self._apply(entry.page)
                    return entry.page
                logger.debug("Serving stale page for %s while refreshing", signature)
                self._apply(entry.page, stale=True)
                if signature != self.signature:
                    return await self.sync(force=force)

        task = asyncio.create_task(self._fetch(signature))
        self._in_flight[signature] = task
        task.add_done_callback(lambda _task: self._in_flight.pop(signature, None))
        return await self._await_fetch(signature, task)

    async def _fetch(self, signature: QuerySignature) -> Pagination[Appointment]:
        logger.debug("Fetching %s", signature)
        page = await self.client.list_consultations(signature)
        self.cache.store(signature, page)
        return page

    async def _await_fetch(
        self, signature: QuerySignature, task: "asyncio.Task[Pagination[Appointment]]"
    ) -> Optional[Pagination[Appointment]]:
        self.state.loading = True
        try:
            page = await task
        except ApiError as exc:
            if signature == self.signature:
                self.state.error = exc.message
            self._settle_loading()
            logger.warning("Loading %s appointments failed: %s", self.partition.value, exc.message)
            return None

        if signature != self.signature:
            logger.debug("Discarding superseded response for %s", signature)
            self._settle_loading()
            return None
        self._apply(page)
        if signature != self.signature:
            # page fell past the new last page and was clamped
            return await self.sync()
        return page

    def _settle_loading(self) -> None:
        # loading only while the current signature still has a fetch running
        current = self._in_flight.get(self.signature)
        self.state.loading = current is not None and not current.done()

    def _apply(self, page: Pagination[Appointment], *, stale: bool = False) -> None:
        self.state.total = page.total
        self.state.total_pages = max(1, page.total_pages)
        self.state.page = clamp(self.state.page, 1, self.state.total_pages)
        self.state.loading = False
        self.state.stale = stale
        self.state.has_data = True
        self.state.error = None
        self.store.replace_partition(self.partition, page.items)
