from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from clinicsync.core.config import settings
from clinicsync.schemas.appointment import Appointment, AppointmentCreate, AppointmentUpdate
from clinicsync.schemas.query import Partition
from clinicsync.services.api_client import ConsultationApiClient
from clinicsync.services.partitioner import classify
from clinicsync.services.status_mapper import status_for_partition

logger = logging.getLogger(__name__)

Snapshot = Dict[Partition, Tuple[Appointment, ...]]
Listener = Callable[[Snapshot], None]


class AppointmentNotFoundError(Exception):
    pass


@dataclass
class PendingMutation:
    appointment_id: Optional[int]
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
    source: Optional[Partition] = None
    target: Optional[Partition] = None


class AppointmentStore:
    """Local read model holding the today/future/past partitions.

    An appointment id lives in at most one partition. Updates, deletes and
    moves are applied locally before the backend call resolves; creates are
    only inserted once the backend returned the new id.
    """

    def __init__(
        self,
        client: Optional[ConsultationApiClient] = None,
        *,
        rollback_on_failure: Optional[bool] = None,
    ) -> None:
        self.client = client
        self.rollback_on_failure = (
            settings.rollback_failed_mutations if rollback_on_failure is None else rollback_on_failure
        )
        self._partitions: Dict[Partition, List[Appointment]] = {partition: [] for partition in Partition}
        self._listeners: Dict[int, Listener] = {}
        self._listener_ids = count()
        self._pending: Dict[int, PendingMutation] = {}
        self._mutation_ids = count()

    # Reads

    def snapshot(self) -> Snapshot:
        return {partition: tuple(items) for partition, items in self._partitions.items()}

    def get_partition(self, partition: Partition) -> Tuple[Appointment, ...]:
        return tuple(self._partitions[Partition(partition)])

    def counts(self) -> Dict[Partition, int]:
        return {partition: len(items) for partition, items in self._partitions.items()}

    def find(self, appointment_id: int) -> Optional[Tuple[Partition, Appointment]]:
        for partition, items in self._partitions.items():
            for appointment in items:
                if appointment.id == appointment_id:
                    return partition, appointment
        return None

    @property
    def pending(self) -> List[PendingMutation]:
        return list(self._pending.values())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners.values()):
            listener(snapshot)

    # Local state transitions

    def _remove_everywhere(self, appointment_id: int) -> None:
        for partition, items in self._partitions.items():
            self._partitions[partition] = [item for item in items if item.id != appointment_id]

    def _position(self, partition: Partition, appointment_id: int) -> Optional[int]:
        for index, item in enumerate(self._partitions[partition]):
            if item.id == appointment_id:
                return index
        return None

    def _revert(
        self,
        optimistic: Optional[Appointment],
        target: Optional[Partition],
        original: Optional[Appointment],
        source: Optional[Partition],
        index: Optional[int],
    ) -> bool:
        """Undo one optimistic step for a single id.

        Only reverts while the optimistic entry is still the one held locally;
        a newer write to the same id (fetch or mutation) wins.
        """
        appointment_id = (original or optimistic).id
        if optimistic is not None and target is not None:
            position = self._position(target, appointment_id)
            if position is None or self._partitions[target][position] is not optimistic:
                return False
            del self._partitions[target][position]
        elif self.find(appointment_id) is not None:
            return False
        if original is not None and source is not None:
            items = self._partitions[source]
            items.insert(len(items) if index is None else min(index, len(items)), original)
        self._notify()
        return True

    def replace_partition(self, partition: Partition, appointments: Sequence[Appointment]) -> None:
        """Install a fetched page; fetched objects replace local copies."""
        partition = Partition(partition)
        incoming = {appointment.id for appointment in appointments}
        for other, items in self._partitions.items():
            if other != partition:
                self._partitions[other] = [item for item in items if item.id not in incoming]
        self._partitions[partition] = list(appointments)
        self._notify()

    def clear(self) -> None:
        self._partitions = {partition: [] for partition in Partition}
        self._notify()

    def _begin(self, mutation: PendingMutation) -> int:
        token = next(self._mutation_ids)
        self._pending[token] = mutation
        return token

    def _finish(self, token: int) -> None:
        self._pending.pop(token, None)

    def _require_client(self) -> ConsultationApiClient:
        if self.client is None:
            raise RuntimeError("AppointmentStore has no API client configured")
        return self.client

    def _handle_failure(self, kind: str, appointment_id: int, undo: Callable[[], bool], exc: Exception) -> None:
        if self.rollback_on_failure:
            if undo():
                logger.warning("%s of appointment %s failed, local change reverted: %s", kind, appointment_id, exc)
            else:
                logger.warning("%s of appointment %s failed, newer local state kept: %s", kind, appointment_id, exc)
        else:
            logger.warning("%s of appointment %s failed, local state kept: %s", kind, appointment_id, exc)

    # Mutations

    async def create(self, data: AppointmentCreate, partition: Optional[Partition] = None) -> Appointment:
        client = self._require_client()
        target = Partition(partition) if partition is not None else classify(data.scheduled_date)
        token = self._begin(
            PendingMutation(appointment_id=None, kind="create", payload=data.model_dump(mode="json"), target=target)
        )
        try:
            appointment = await client.create_consultation(data)
        finally:
            self._finish(token)

        self._remove_everywhere(appointment.id)
        self._partitions[target].append(appointment)
        logger.info("Created appointment %s in %s", appointment.id, target.value)
        self._notify()
        return appointment

    async def update(self, appointment_id: int, changes: AppointmentUpdate) -> Optional[Appointment]:
        client = self._require_client()
        located = self.find(appointment_id)
        current: Optional[Appointment] = None
        updated: Optional[Appointment] = None
        source: Optional[Partition] = None
        index: Optional[int] = None

        if located is not None:
            source, current = located
            index = self._position(source, appointment_id)
            updated = current.model_copy(update=changes.local_changes())
            self._partitions[source] = [
                updated if item.id == appointment_id else item for item in self._partitions[source]
            ]
            self._notify()

        token = self._begin(
            PendingMutation(
                appointment_id=appointment_id,
                kind="update",
                payload=changes.model_dump(mode="json", exclude_unset=True),
                source=source,
                target=source,
            )
        )
        try:
            await client.update_consultation(appointment_id, changes, current=current)
        except Exception as exc:
            self._handle_failure(
                "update",
                appointment_id,
                lambda: updated is not None and self._revert(updated, source, current, source, index),
                exc,
            )
            raise
        finally:
            self._finish(token)
        return updated

    async def delete(self, appointment_id: int) -> None:
        client = self._require_client()
        located = self.find(appointment_id)
        source, current = located if located else (None, None)
        index = self._position(source, appointment_id) if source is not None else None

        self._remove_everywhere(appointment_id)
        self._notify()

        token = self._begin(PendingMutation(appointment_id=appointment_id, kind="delete", source=source))
        try:
            await client.delete_consultation(appointment_id)
        except Exception as exc:
            self._handle_failure(
                "delete",
                appointment_id,
                lambda: current is not None and self._revert(None, None, current, source, index),
                exc,
            )
            raise
        finally:
            self._finish(token)

    async def move(self, appointment_id: int, source: Partition, target: Partition) -> Appointment:
        client = self._require_client()
        source = Partition(source)
        target = Partition(target)
        current = next((item for item in self._partitions[source] if item.id == appointment_id), None)
        if current is None:
            raise AppointmentNotFoundError(appointment_id)

        index = self._position(source, appointment_id)
        status = status_for_partition(target)
        moved = current.model_copy(update={"status": status})
        self._partitions[source] = [item for item in self._partitions[source] if item.id != appointment_id]
        self._partitions[target].append(moved)
        self._notify()

        changes = AppointmentUpdate(status=status)
        token = self._begin(
            PendingMutation(
                appointment_id=appointment_id,
                kind="move",
                payload={"status": status.value},
                source=source,
                target=target,
            )
        )
        try:
            await client.update_consultation(appointment_id, changes, current=current)
        except Exception as exc:
            self._handle_failure(
                "move",
                appointment_id,
                lambda: self._revert(moved, target, current, source, index),
                exc,
            )
            raise
        finally:
            self._finish(token)
        return moved
