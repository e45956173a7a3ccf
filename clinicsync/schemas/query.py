from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Partition(str, Enum):
    TODAY = "today"
    FUTURE = "future"
    PAST = "past"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class QuerySignature:
    """Identity of one list request; used as cache key and staleness token."""

    partition: Partition
    search: str
    sort_field: str
    sort_direction: SortDirection
    page: int
    page_size: int

    def to_params(self) -> dict:
        params = {
            "date_filter": self.partition.value,
            "page": self.page,
            "per_page": self.page_size,
            "sort_by": self.sort_field,
            "sort_dir": self.sort_direction.value,
        }
        if self.search:
            params["search"] = self.search
        return params
