"""
Freshness rules for cached candidate details.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Tuple

from ..models import CacheRecord

DEFAULT_EXPIRY_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class Partition:
    """Requested identifiers split by whether the cache can serve them."""
    fresh: Tuple[int, ...]
    needs_refresh: Tuple[int, ...]


def is_fresh(written_at: datetime, now: datetime, expiry_window: timedelta) -> bool:
    """A record is fresh while its age is within the expiry window, inclusive."""
    return now - written_at <= expiry_window


def partition_batch(
    requested: Iterable[int],
    existing: Mapping[int, CacheRecord],
    now: datetime,
    expiry_window: timedelta = DEFAULT_EXPIRY_WINDOW,
) -> Partition:
    """
    Split requested identifiers into fresh and needs-refresh.

    ``existing`` must already be scoped to the caller and project. Missing
    records and stale records both need a refresh. Input order is kept.
    """
    fresh = []
    needs_refresh = []
    for candidate_id in requested:
        record = existing.get(candidate_id)
        if record is not None and is_fresh(record.written_at, now, expiry_window):
            fresh.append(candidate_id)
        else:
            needs_refresh.append(candidate_id)

    return Partition(fresh=tuple(fresh), needs_refresh=tuple(needs_refresh))
