from clinicsync.schemas.appointment import (
    Appointment,
    AppointmentBase,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    BookedSlot,
)
from clinicsync.schemas.common import MessageResponse, Pagination
from clinicsync.schemas.query import Partition, QuerySignature, SortDirection
