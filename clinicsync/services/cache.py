from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from clinicsync.core.config import settings
from clinicsync.schemas.appointment import Appointment
from clinicsync.schemas.common import Pagination
from clinicsync.schemas.query import Partition, QuerySignature

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    signature: QuerySignature
    fetched_at: float
    page: Pagination[Appointment]
    lifetime: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.lifetime


class ResultCache:
    """Last successful page per query signature.

    Entries past ``lifetime`` are still returned (marked stale) so the caller
    can show them while refreshing; entries past ``retention`` are dropped.
    """

    def __init__(
        self,
        *,
        lifetime: Optional[float] = None,
        retention: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.lifetime = settings.cache_lifetime_seconds if lifetime is None else lifetime
        self.retention = settings.cache_retention_seconds if retention is None else retention
        self.retention = max(self.retention, self.lifetime)
        self._clock = clock
        self._entries: Dict[QuerySignature, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: QuerySignature) -> bool:
        return signature in self._entries

    def lookup(self, signature: QuerySignature) -> Optional[CacheEntry]:
        self.evict_expired()
        return self._entries.get(signature)

    def get_fresh(self, signature: QuerySignature) -> Optional[Pagination[Appointment]]:
        entry = self.lookup(signature)
        if entry is not None and entry.is_fresh(self._clock()):
            return entry.page
        return None

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.is_fresh(self._clock())

    def store(self, signature: QuerySignature, page: Pagination[Appointment]) -> CacheEntry:
        entry = CacheEntry(
            signature=signature,
            fetched_at=self._clock(),
            page=page,
            lifetime=self.lifetime,
        )
        self._entries[signature] = entry
        return entry

    def invalidate(self, partition: Optional[Partition] = None) -> int:
        if partition is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        doomed = [signature for signature in self._entries if signature.partition == partition]
        for signature in doomed:
            del self._entries[signature]
        if doomed:
            logger.debug("Invalidated %s cached pages for %s", len(doomed), partition.value)
        return len(doomed)

    def evict_expired(self) -> None:
        now = self._clock()
        expired = [
            signature for signature, entry in self._entries.items() if entry.age(now) >= self.retention
        ]
        for signature in expired:
            del self._entries[signature]
