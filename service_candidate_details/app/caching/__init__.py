"""
Caching package for the Candidate Details service.

- staleness: pure freshness and partitioning rules.
- detail_cache: read, refresh, persist and assemble pipeline.
"""

from .staleness import DEFAULT_EXPIRY_WINDOW, Partition, is_fresh, partition_batch
from .detail_cache import CandidateDetailCache

__all__ = [
    "DEFAULT_EXPIRY_WINDOW",
    "Partition",
    "is_fresh",
    "partition_batch",
    "CandidateDetailCache",
]
