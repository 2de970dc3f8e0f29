"""
Mock candidate data provider serving bulk profile lookups.
"""

import asyncio
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from shared.logging import get_logger

_FIRST_NAMES = ["Ada", "Grace", "Alan", "Barbara", "Edsger", "Margaret", "Linus", "Frances"]
_ROLES = ["Backend Engineer", "Data Scientist", "Engineering Manager", "SRE", "Frontend Engineer"]
_EMPLOYERS = ["Acme Corp", "Globex", "Initech", "Umbrella", "Hooli"]
_SKILL_CLUSTERS = {
    "Backend Engineer": ["Python", "PostgreSQL", "FastAPI"],
    "Data Scientist": ["pandas", "scikit-learn", "SQL"],
    "Engineering Manager": ["Hiring", "Roadmapping", "Mentoring"],
    "SRE": ["Kubernetes", "Terraform", "Prometheus"],
    "Frontend Engineer": ["TypeScript", "React", "CSS"],
}


class CandidatesByIdsRequest(BaseModel):
    """Bulk lookup request."""
    ids: List[int] = Field(..., description="Candidate identifiers")


class MockProviderServer:
    """Mock provider holding a fixed catalogue of candidate profiles."""

    def __init__(self, catalogue_size: int = 500, latency_seconds: float = 0.0,
                 missing_ids: Optional[List[int]] = None):
        self.logger = get_logger("mock.provider")
        self.latency_seconds = latency_seconds
        self.missing_ids = set(missing_ids or [])
        self.profiles: Dict[int, Dict[str, Any]] = {
            candidate_id: self._build_profile(candidate_id)
            for candidate_id in range(1, catalogue_size + 1)
            if candidate_id not in self.missing_ids
        }
        self.request_count = 0
        self.app = FastAPI(title="Mock Candidate Provider", version="1.0.0")
        self._setup_routes()

    @staticmethod
    def _build_profile(candidate_id: int) -> Dict[str, Any]:
        role = _ROLES[candidate_id % len(_ROLES)]
        employer = _EMPLOYERS[candidate_id % len(_EMPLOYERS)]
        name = f"{_FIRST_NAMES[candidate_id % len(_FIRST_NAMES)]} Candidate{candidate_id}"
        return {
            "id": candidate_id,
            "name": name,
            "role": role,
            "employer": employer,
            "location": "Remote",
            "years_of_experience": str(2 + candidate_id % 15),
            "contacts": {
                "emails": [f"candidate{candidate_id}@example.com"],
                "phones": [],
            },
            "skills": [{"cluster": role, "skills": _SKILL_CLUSTERS[role]}],
            "employments": [
                {
                    "employer": employer,
                    "role": role,
                    "dates": {"start": "2020-01", "end": ""},
                    "responsibilities": [],
                }
            ],
            "open_to_offers": candidate_id % 2 == 0,
        }

    def _setup_routes(self):
        """Set up mock provider routes."""

        @self.app.get("/health")
        async def health():
            return {"status": "ok", "profiles": len(self.profiles)}

        @self.app.post("/api/get-candidates-by-ids")
        async def get_candidates_by_ids(request: CandidatesByIdsRequest):
            """Return profiles for the known ids in one document."""
            self.request_count += 1
            if len(request.ids) > 1000:
                raise HTTPException(status_code=413, detail="Too many ids")
            if self.latency_seconds:
                await asyncio.sleep(self.latency_seconds)

            candidates = [self.profiles[cid] for cid in request.ids if cid in self.profiles]
            self.logger.info("Bulk lookup served", requested=len(request.ids), returned=len(candidates))
            return {"candidates": candidates, "api_version": "mock-1"}


def create_app():
    """Create mock provider application."""
    server = MockProviderServer(
        catalogue_size=int(os.getenv("MOCK_PROVIDER_CATALOGUE_SIZE", "500")),
        latency_seconds=float(os.getenv("MOCK_PROVIDER_LATENCY_SECONDS", "0")),
    )
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8888)
