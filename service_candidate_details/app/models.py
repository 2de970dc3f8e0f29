"""
Data models for the Candidate Details service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, StrictInt, StrictStr

from shared.errors import ValidationError

# Candidate ids are stored as PostgreSQL BIGINT
CANDIDATE_ID_MIN = -(2 ** 63)
CANDIDATE_ID_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class CacheRecord:
    """Cached provider payload for one (owner, project, candidate) triple."""
    owner_id: str
    project_id: str
    candidate_id: int
    payload: Dict[str, Any]
    written_at: datetime

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.owner_id, self.project_id, self.candidate_id)


@dataclass(frozen=True)
class ProviderRecord:
    """One candidate profile returned by the data provider."""
    id: int
    payload: Dict[str, Any]


@dataclass(frozen=True)
class CallerIdentity:
    """Validated principal a request executes on behalf of."""
    user_id: str
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class BatchRequest:
    """A validated batch of candidate identifiers for one owner and project."""
    owner_id: str
    project_id: str
    candidate_ids: Tuple[int, ...]

    @classmethod
    def create(cls, owner_id: str, project_id: Optional[str],
               candidate_ids: Optional[Sequence[int]]) -> "BatchRequest":
        """Validate inputs before any store or provider access."""
        if not candidate_ids:
            raise ValidationError("candidateIds must be a non-empty array of numbers")
        if any(isinstance(cid, bool) or not isinstance(cid, int) for cid in candidate_ids):
            raise ValidationError("candidateIds must be a non-empty array of numbers")
        out_of_range = [cid for cid in candidate_ids if not CANDIDATE_ID_MIN <= cid <= CANDIDATE_ID_MAX]
        if out_of_range:
            raise ValidationError(
                "candidateIds must be 64-bit signed integers",
                details={"out_of_range": out_of_range}
            )
        if len(set(candidate_ids)) != len(candidate_ids):
            raise ValidationError(
                "candidateIds must not contain duplicates",
                details={"candidate_ids": list(candidate_ids)}
            )
        if not project_id or not str(project_id).strip():
            raise ValidationError("projectId is required")
        if not owner_id:
            raise ValidationError("owner identity is required")

        return cls(owner_id=owner_id, project_id=project_id, candidate_ids=tuple(candidate_ids))


@dataclass
class BatchResponse:
    """Assembled result of a batch lookup."""
    details: Dict[int, Dict[str, Any]]
    cached_count: int
    fetched_count: int
    success: bool = True

    def to_wire(self) -> "CandidateDetailsResponse":
        return CandidateDetailsResponse(
            success=self.success,
            details={str(cid): payload for cid, payload in self.details.items()},
            cached_count=self.cached_count,
            api_fetched_count=self.fetched_count,
        )


class CandidateDetailsRequest(BaseModel):
    """Request body for POST /candidate-details."""
    candidateIds: Optional[List[StrictInt]] = Field(None, description="Distinct candidate identifiers")
    projectId: Optional[StrictStr] = Field(None, description="Project the lookup is scoped to")


class CandidateDetailsResponse(BaseModel):
    """Response body for candidate detail lookups."""
    success: bool = True
    details: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    cached_count: int = 0
    api_fetched_count: int = 0
