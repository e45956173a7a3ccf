from clinicsync.services.api_client import (
    ApiError,
    ApiHttpError,
    ApiNetworkError,
    ConsultationApiClient,
    MissingCredentialsError,
)
from clinicsync.services.cache import CacheEntry, ResultCache
from clinicsync.services.credentials import (
    CredentialProvider,
    StaticCredentialProvider,
    get_credential_provider,
    reset_credential_provider,
    set_credential_provider,
)
from clinicsync.services.dashboard import AppointmentDashboard, filter_appointments
from clinicsync.services.debounce import DebounceController
from clinicsync.services.orchestrator import QueryOrchestrator, ViewState, translate_sort_field
from clinicsync.services.partitioner import classify, partition_appointments
from clinicsync.services.retry import retry_operation
from clinicsync.services.status_mapper import PARTITION_STATUS, to_external, to_internal
from clinicsync.services.store import AppointmentNotFoundError, AppointmentStore, PendingMutation
