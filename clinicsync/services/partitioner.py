from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from clinicsync.schemas.appointment import Appointment
from clinicsync.schemas.query import Partition


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def classify(appointment_date: date, reference_date: Optional[date] = None) -> Partition:
    """Place a scheduled date relative to ``reference_date`` (today by default).

    The result is evaluated on every call, so an appointment that is "today"
    becomes "past" once the calendar moves on.
    """
    scheduled = _as_date(appointment_date)
    reference = _as_date(reference_date) if reference_date is not None else date.today()
    if scheduled == reference:
        return Partition.TODAY
    if scheduled > reference:
        return Partition.FUTURE
    return Partition.PAST


def partition_appointments(
    appointments: Iterable[Appointment], reference_date: Optional[date] = None
) -> Dict[Partition, List[Appointment]]:
    reference = reference_date or date.today()
    grouped: Dict[Partition, List[Appointment]] = {partition: [] for partition in Partition}
    for appointment in appointments:
        grouped[classify(appointment.scheduled_date, reference)].append(appointment)
    return grouped
