"""
Candidate Details service.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from fastapi import Depends, Query, Request

from shared.base_service import BaseService
from shared.circuit_breaker import CircuitBreaker
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError
from shared.logging import set_user_context
from shared.tracing import add_span_attributes

from .adapters.auth_client import AuthClient
from .adapters.provider_client import ProviderClient
from .caching.detail_cache import CandidateDetailCache, utc_now
from .domain.auth_middleware import AuthMiddleware
from .models import (
    BatchRequest,
    CallerIdentity,
    CandidateDetailsRequest,
    CandidateDetailsResponse,
)
from .persistence import (
    CandidateDetailStore,
    InMemoryCandidateDetailStore,
    PostgresCandidateDetailStore,
)

SERVICE_NAME = "candidate_details"
SERVICE_PORT = 8020


class CandidateDetailsService(BaseService):
    """Candidate Details service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[CandidateDetailStore] = None,
        provider_client: Optional[ProviderClient] = None,
        auth_client: Optional[AuthClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.store = store if store is not None else self._build_store()
        self.provider_client = provider_client if provider_client is not None else ProviderClient(
            self.config.provider_url,
            timeout=self.config.provider_timeout_seconds,
            circuit_breaker=CircuitBreaker(
                failure_threshold=self.config.provider_failure_threshold,
                recovery_timeout=self.config.provider_recovery_timeout,
                name="candidate_provider"
            ),
            metrics=self.metrics,
        )
        self.auth_client = auth_client if auth_client is not None else AuthClient(self.config.auth_service_url)
        self.auth_middleware = AuthMiddleware(self.auth_client)
        self.detail_cache = CandidateDetailCache(
            self.store,
            self.provider_client,
            expiry_window=timedelta(hours=self.config.cache_expiry_hours),
            clock=clock,
            metrics=self.metrics,
        )

        self._setup_candidate_details_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.candidate_details_service = self

    def _build_store(self) -> CandidateDetailStore:
        backend = self.config.store_backend.lower()
        if backend == "memory":
            self.logger.warning("Using in-memory candidate detail store; cache is not persistent")
            return InMemoryCandidateDetailStore()
        if backend == "postgres":
            return PostgresCandidateDetailStore(
                self.config.postgres_dsn,
                min_size=self.config.postgres_min_pool_size,
                max_size=self.config.postgres_max_pool_size,
                command_timeout=self.config.postgres_command_timeout,
            )
        raise ValueError(f"Unknown store backend: {self.config.store_backend}")

    async def on_startup(self):
        await self.store.start()
        self.logger.info("Candidate details service started", store=type(self.store).__name__)

    async def on_shutdown(self):
        await self.store.stop()
        self.logger.info("Candidate details service stopped")

    async def _check_dependencies(self):
        return {
            "store": "ok" if await self.store.ping() else "unavailable",
            "provider_circuit": self.provider_client.circuit_breaker.state.value,
        }

    def _is_healthy(self, dependencies):
        # An open provider circuit only degrades responses; a lost store fails them
        return dependencies.get("store") == "ok"

    async def _current_caller(self, request: Request) -> CallerIdentity:
        return await self.auth_middleware.authenticate_request(request)

    def _setup_candidate_details_routes(self):
        """Set up candidate-details-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Candidate Details Service",
                "version": "1.0.0",
                "capabilities": ["detail_cache", "provider_batch_lookup"]
            }

        @self.app.post("/candidate-details", response_model=CandidateDetailsResponse)
        async def get_candidate_details(
            body: CandidateDetailsRequest,
            caller: CallerIdentity = Depends(self._current_caller),
        ):
            """Return details for a batch of candidates, refreshing expired cache entries."""
            batch = BatchRequest.create(caller.user_id, body.projectId, body.candidateIds)
            set_user_context(caller.user_id, batch.project_id)
            add_span_attributes(user_id=caller.user_id, project_id=batch.project_id,
                                batch_size=len(batch.candidate_ids))

            result = await self.detail_cache.get_details(batch)
            return result.to_wire()

        @self.app.get("/candidate-details/cached", response_model=CandidateDetailsResponse)
        async def get_cached_candidate_details(
            projectId: Optional[str] = Query(None, description="Project the lookup is scoped to"),
            candidateIds: Optional[str] = Query(None, description="Comma-separated candidate ids"),
            caller: CallerIdentity = Depends(self._current_caller),
        ):
            """Return cached details only; never calls the provider."""
            batch = BatchRequest.create(caller.user_id, projectId, _parse_id_list(candidateIds))
            set_user_context(caller.user_id, batch.project_id)

            details = await self.detail_cache.get_cached(batch)
            return CandidateDetailsResponse(
                details={str(cid): payload for cid, payload in details.items()},
                cached_count=len(details),
                api_fetched_count=0,
            )


def _parse_id_list(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ValidationError("candidateIds must be a non-empty array of numbers") from e


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create candidate details service application."""
    service = CandidateDetailsService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = CandidateDetailsService()
    service.run()
