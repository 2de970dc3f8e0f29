"""
Candidate detail cache: read, refresh stale entries, persist, assemble.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set

from shared.errors import ProviderUnavailable, StoreWriteError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..adapters.provider_client import ProviderClient
from ..models import BatchRequest, BatchResponse, CacheRecord, ProviderRecord
from ..persistence.base import CandidateDetailStore
from .staleness import DEFAULT_EXPIRY_WINDOW, partition_batch


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CandidateDetailCache:
    """
    Serves candidate profiles from the store, refreshing what has expired.

    All state lives in the store. Concurrent refreshes of the same record are
    resolved by the store's upsert (last write wins), so no locking is done
    here.
    """

    def __init__(
        self,
        store: CandidateDetailStore,
        provider: ProviderClient,
        *,
        expiry_window: timedelta = DEFAULT_EXPIRY_WINDOW,
        clock: Callable[[], datetime] = utc_now,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.provider = provider
        self.expiry_window = expiry_window
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("candidate_details.detail_cache")

    async def get_details(self, request: BatchRequest) -> BatchResponse:
        """
        Resolve a batch of candidate details for one owner and project.

        Only records that were fresh or were refreshed during this call are
        returned. A store read failure aborts the request (StoreReadError
        propagates). Provider failures and per-record write failures only
        shrink the returned ``details``.
        """
        owner_id, project_id = request.owner_id, request.project_id

        existing = await self.store.get_many(owner_id, project_id, request.candidate_ids)
        partition = partition_batch(request.candidate_ids, existing, self.clock(), self.expiry_window)

        self.logger.info(
            "Partitioned candidate batch",
            requested=len(request.candidate_ids),
            fresh=len(partition.fresh),
            needs_refresh=len(partition.needs_refresh)
        )
        self._count_lookups(len(partition.fresh), len(partition.needs_refresh))

        servable = set(partition.fresh)
        if partition.needs_refresh:
            fetched = await self._fetch(partition.needs_refresh)
            servable.update(await self._merge_and_persist(owner_id, project_id, fetched))

        # Stale records the provider did not refresh are never served
        final = await self.store.get_many(owner_id, project_id, request.candidate_ids)
        details = {
            candidate_id: final[candidate_id].payload
            for candidate_id in request.candidate_ids
            if candidate_id in final and candidate_id in servable
        }

        self.logger.info(
            "Assembled candidate details",
            returned=len(details),
            missing=len(request.candidate_ids) - len(details)
        )
        return BatchResponse(
            details=details,
            cached_count=len(partition.fresh),
            fetched_count=len(partition.needs_refresh),
        )

    async def get_cached(self, request: BatchRequest) -> Dict[int, Dict]:
        """Return whatever is stored for the batch, stale or not, without calling the provider."""
        records = await self.store.get_many(request.owner_id, request.project_id, request.candidate_ids)
        return {
            candidate_id: records[candidate_id].payload
            for candidate_id in request.candidate_ids
            if candidate_id in records
        }

    async def _fetch(self, candidate_ids: Iterable[int]) -> List[ProviderRecord]:
        try:
            return await self.provider.fetch_batch(tuple(candidate_ids))
        except ProviderUnavailable as e:
            self.logger.warning(
                "Provider unavailable, serving fresh entries only",
                error=e.message,
                details=e.details
            )
            return []

    async def _merge_and_persist(self, owner_id: str, project_id: str,
                                 fetched: Iterable[ProviderRecord]) -> Set[int]:
        """Upsert each fetched record independently; returns the ids written."""
        written: Set[int] = set()
        now = self.clock()
        for item in fetched:
            record = CacheRecord(
                owner_id=owner_id,
                project_id=project_id,
                candidate_id=item.id,
                payload=item.payload,
                written_at=now,
            )
            try:
                await self.store.upsert(record)
            except StoreWriteError as e:
                self.logger.error(
                    "Error persisting candidate details",
                    candidate_id=item.id,
                    error=e.message,
                    details=e.details
                )
                if self.metrics:
                    self.metrics.increment_counter("cache_upsert_failures_total")
                continue
            written.add(item.id)
        return written

    def _count_lookups(self, fresh: int, needs_refresh: int) -> None:
        if self.metrics is None:
            return
        if fresh:
            self.metrics.increment_counter("candidate_cache_lookups_total", amount=fresh, result="fresh")
        if needs_refresh:
            self.metrics.increment_counter("candidate_cache_lookups_total", amount=needs_refresh, result="refresh")
