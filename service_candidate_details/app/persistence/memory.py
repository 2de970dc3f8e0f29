"""
In-process store engine for local development and tests.
"""

import copy
import dataclasses
from typing import Dict, Iterable, Tuple

from shared.logging import get_logger

from ..models import CacheRecord
from .base import CandidateDetailStore


def _detached(record: CacheRecord) -> CacheRecord:
    """Copy of ``record`` whose payload shares no objects with the original."""
    return dataclasses.replace(record, payload=copy.deepcopy(record.payload))


class InMemoryCandidateDetailStore(CandidateDetailStore):
    """Dictionary-backed store. Not shared between processes."""

    def __init__(self):
        self.logger = get_logger("candidate_details.persistence.memory")
        self._records: Dict[Tuple[str, str, int], CacheRecord] = {}

    async def get_many(self, owner_id: str, project_id: str,
                       candidate_ids: Iterable[int]) -> Dict[int, CacheRecord]:
        found: Dict[int, CacheRecord] = {}
        for candidate_id in candidate_ids:
            record = self._records.get((owner_id, project_id, candidate_id))
            if record is not None:
                found[candidate_id] = _detached(record)
        return found

    async def upsert(self, record: CacheRecord) -> None:
        self._records[record.key] = _detached(record)

    def __len__(self) -> int:
        return len(self._records)
