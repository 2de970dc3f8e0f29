"""
Persistence package for cached candidate details.
"""

from .base import CandidateDetailStore
from .memory import InMemoryCandidateDetailStore
from .postgres import PostgresCandidateDetailStore

__all__ = [
    "CandidateDetailStore",
    "InMemoryCandidateDetailStore",
    "PostgresCandidateDetailStore",
]
