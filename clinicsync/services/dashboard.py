from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Set, Union

from clinicsync.core.config import Settings, settings as default_settings
from clinicsync.schemas.appointment import Appointment, AppointmentCreate, AppointmentUpdate
from clinicsync.schemas.common import Pagination
from clinicsync.schemas.query import Partition, SortDirection
from clinicsync.services.api_client import ConsultationApiClient
from clinicsync.services.cache import ResultCache
from clinicsync.services.debounce import DebounceController
from clinicsync.services.orchestrator import QueryOrchestrator
from clinicsync.services.store import AppointmentStore

logger = logging.getLogger(__name__)


def _sort_key(appointment: Appointment) -> tuple:
    return (appointment.scheduled_date, appointment.scheduled_time or "00:00")


def filter_appointments(appointments: Iterable[Appointment], search_term: str) -> List[Appointment]:
    """Case-insensitive match on patient name, treatment, phone and status."""
    items = list(appointments)
    term = search_term.strip().lower()
    if not term:
        return items
    return [
        appointment
        for appointment in items
        if term in appointment.patient_name.lower()
        or term in appointment.diseases.lower()
        or term in appointment.mobile_number.lower()
        or term in appointment.status.value.lower()
    ]


class AppointmentDashboard:
    """One store, one search box and a query view per partition."""

    def __init__(
        self,
        client: ConsultationApiClient,
        *,
        store: Optional[AppointmentStore] = None,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache] = None,
        active_views: Iterable[Union[Partition, str]] = tuple(Partition),
        sort_field: str = "date",
        sort_direction: Union[SortDirection, str] = SortDirection.ASC,
    ) -> None:
        self.settings = settings if settings is not None else default_settings
        self.client = client
        self.store = store if store is not None else AppointmentStore(
            client, rollback_on_failure=self.settings.rollback_failed_mutations
        )
        self.cache = cache if cache is not None else ResultCache(
            lifetime=self.settings.cache_lifetime_seconds,
            retention=self.settings.cache_retention_seconds,
        )
        active = {Partition(view) for view in active_views}
        self.views: Dict[Partition, QueryOrchestrator] = {
            partition: QueryOrchestrator(
                client,
                self.store,
                partition,
                cache=self.cache,
                page_size=self.settings.default_page_size,
                max_page_size=self.settings.max_page_size,
                sort_field=sort_field,
                sort_direction=sort_direction,
                active=partition in active,
            )
            for partition in Partition
        }
        self.debounce = DebounceController(
            self._on_search_commit,
            quiet_period_ms=self.settings.search_debounce_ms,
            min_length=self.settings.search_min_length,
        )
        self.active_tab = Partition.TODAY
        self.search_term = ""
        self._tasks: Set[asyncio.Task] = set()

    # Search and navigation

    @property
    def is_searching(self) -> bool:
        return self.debounce.is_pending

    @property
    def committed_search(self) -> str:
        return self.debounce.committed

    def set_search_term(self, term: str) -> None:
        self.search_term = term
        self.debounce.push(term)

    def set_active_tab(self, tab: Union[Partition, str]) -> None:
        self.active_tab = Partition(tab)
        if self.search_term:
            self.set_search_term("")

    def set_view_active(self, partition: Union[Partition, str], active: bool) -> None:
        self.views[Partition(partition)].set_active(active)

    def view(self, partition: Union[Partition, str]) -> QueryOrchestrator:
        return self.views[Partition(partition)]

    def set_sort(
        self,
        partition: Union[Partition, str],
        field: str,
        direction: Union[SortDirection, str, None] = None,
    ) -> None:
        self.view(partition).set_sort(field, direction)
        self._schedule(self.view(partition))

    def set_page(
        self, partition: Union[Partition, str], page: int, page_size: Optional[int] = None
    ) -> None:
        self.view(partition).set_page(page, page_size)
        self._schedule(self.view(partition))

    async def load(self) -> Dict[Partition, Optional[Pagination[Appointment]]]:
        return await self._sync_views(self.views.values())

    async def refresh(
        self, partition: Union[Partition, str, None] = None
    ) -> Dict[Partition, Optional[Pagination[Appointment]]]:
        targets = self.views.values() if partition is None else [self.view(partition)]
        return await self._sync_views(targets, force=True)

    async def _sync_views(
        self, views: Iterable[QueryOrchestrator], force: bool = False
    ) -> Dict[Partition, Optional[Pagination[Appointment]]]:
        selected = list(views)
        results = await asyncio.gather(*(view.sync(force=force) for view in selected))
        return {view.partition: result for view, result in zip(selected, results)}

    def _on_search_commit(self, committed: str) -> None:
        for view in self.views.values():
            view.set_search(committed)
            self._schedule(view)

    def _schedule(self, view: QueryOrchestrator) -> None:
        if not view.active:
            return
        task = asyncio.create_task(view.sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every scheduled view sync has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.debounce.close()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()

    # Read model

    @property
    def appointments(self) -> Dict[Partition, tuple]:
        return self.store.snapshot()

    @property
    def appointment_counts(self) -> Dict[Partition, int]:
        return self.store.counts()

    @property
    def current_appointments(self) -> List[Appointment]:
        return sorted(self.store.get_partition(self.active_tab), key=_sort_key)

    @property
    def filtered_appointments(self) -> List[Appointment]:
        return filter_appointments(self.current_appointments, self.debounce.committed)

    @property
    def error(self) -> Optional[str]:
        return self.view(self.active_tab).state.error

    def clear_error(self) -> None:
        self.view(self.active_tab).state.error = None

    # Mutations

    def _invalidate(self, *partitions: Optional[Partition]) -> None:
        for partition in {p for p in partitions if p is not None}:
            self.views[partition].invalidate()

    async def add_appointment(
        self, data: AppointmentCreate, tab: Union[Partition, str, None] = None
    ) -> Appointment:
        appointment = await self.store.create(data, Partition(tab) if tab is not None else None)
        located = self.store.find(appointment.id)
        self._invalidate(located[0] if located else None)
        return appointment

    async def update_appointment(self, appointment_id: int, changes: AppointmentUpdate) -> Optional[Appointment]:
        located = self.store.find(appointment_id)
        updated = await self.store.update(appointment_id, changes)
        self._invalidate(located[0] if located else None)
        return updated

    async def delete_appointment(self, appointment_id: int) -> None:
        located = self.store.find(appointment_id)
        await self.store.delete(appointment_id)
        self._invalidate(located[0] if located else None)

    async def move_appointment(
        self,
        appointment_id: int,
        from_tab: Union[Partition, str],
        to_tab: Union[Partition, str],
    ) -> Appointment:
        moved = await self.store.move(appointment_id, Partition(from_tab), Partition(to_tab))
        self._invalidate(Partition(from_tab), Partition(to_tab))
        return moved
