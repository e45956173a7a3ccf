from __future__ import annotations

from typing import Dict, Optional, Union

from clinicsync.schemas.appointment import AppointmentStatus
from clinicsync.schemas.query import Partition

DEFAULT_STATUS = AppointmentStatus.UPCOMING

_SERVER_TO_INTERNAL: Dict[str, AppointmentStatus] = {
    "scheduled": AppointmentStatus.UPCOMING,
    "upcoming": AppointmentStatus.UPCOMING,
    "in_progress": AppointmentStatus.IN_PROGRESS,
    "inprogress": AppointmentStatus.IN_PROGRESS,
    "in-progress": AppointmentStatus.IN_PROGRESS,
    "in progress": AppointmentStatus.IN_PROGRESS,
    "completed": AppointmentStatus.COMPLETED,
    "cancelled": AppointmentStatus.CANCELLED,
    "canceled": AppointmentStatus.CANCELLED,
    "no_show": AppointmentStatus.NO_SHOW,
    "noshow": AppointmentStatus.NO_SHOW,
    "no-show": AppointmentStatus.NO_SHOW,
    "no show": AppointmentStatus.NO_SHOW,
}

_INTERNAL_TO_SERVER: Dict[AppointmentStatus, str] = {
    AppointmentStatus.UPCOMING: "scheduled",
    AppointmentStatus.IN_PROGRESS: "in_progress",
    AppointmentStatus.COMPLETED: "completed",
    AppointmentStatus.CANCELLED: "cancelled",
    AppointmentStatus.NO_SHOW: "no_show",
}

PARTITION_STATUS: Dict[Partition, AppointmentStatus] = {
    Partition.TODAY: AppointmentStatus.IN_PROGRESS,
    Partition.FUTURE: AppointmentStatus.UPCOMING,
    Partition.PAST: AppointmentStatus.COMPLETED,
}


def to_internal(server_status: Optional[str]) -> AppointmentStatus:
    """Translate a backend status string; unknown values become ``Upcoming``."""
    if not server_status:
        return DEFAULT_STATUS
    return _SERVER_TO_INTERNAL.get(server_status.strip().lower(), DEFAULT_STATUS)


def to_external(status: Union[AppointmentStatus, str]) -> str:
    if isinstance(status, AppointmentStatus):
        return _INTERNAL_TO_SERVER[status]
    normalized = (status or "").strip().lower()
    for candidate in AppointmentStatus:
        if candidate.value.lower() == normalized:
            return _INTERNAL_TO_SERVER[candidate]
    return _INTERNAL_TO_SERVER[to_internal(normalized)]


def status_for_partition(partition: Partition) -> AppointmentStatus:
    return PARTITION_STATUS[Partition(partition)]
