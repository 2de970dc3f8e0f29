"""
Keyed store interface for cached candidate details.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable

from ..models import CacheRecord


class CandidateDetailStore(ABC):
    """
    Persistent keyed store of CacheRecords.

    Records are keyed by (owner_id, project_id, candidate_id). ``upsert``
    replaces the whole record for its key (last write wins). Every read is
    scoped to one owner and project.
    """

    async def start(self) -> None:
        """Acquire connections."""

    async def stop(self) -> None:
        """Release connections."""

    @abstractmethod
    async def get_many(self, owner_id: str, project_id: str,
                       candidate_ids: Iterable[int]) -> Dict[int, CacheRecord]:
        """
        Return the records that exist for the given identifiers.

        Raises:
            StoreReadError: the store could not be read.
        """

    @abstractmethod
    async def upsert(self, record: CacheRecord) -> None:
        """
        Insert or replace the record for ``record.key``.

        Raises:
            StoreWriteError: the record was not written.
        """

    async def ping(self) -> bool:
        """Check the store is reachable."""
        return True
