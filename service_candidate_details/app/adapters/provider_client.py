"""
Candidate data provider client.
"""

import asyncio
import time
from typing import Collection, Dict, List, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, get_circuit_breaker
from shared.errors import ProviderUnavailable
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.tracing import trace_operation

from ..models import ProviderRecord

BATCH_LOOKUP_PATH = "/get-candidates-by-ids"


class ProviderClient:
    """
    Fetches candidate profiles from the external provider in one bulk call.

    The provider is slow and rate limited, so a batch is sent exactly once:
    there are no retries, and any failure fails the whole batch.
    """

    def __init__(
        self,
        provider_url: str,
        *,
        timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = provider_url.rstrip('/')
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("candidate_details.provider_client")
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(
            "candidate_provider",
            failure_threshold=5,
            recovery_timeout=60.0
        )
        self._transport = transport

    async def fetch_batch(self, candidate_ids: Collection[int]) -> List[ProviderRecord]:
        """
        Fetch profiles for ``candidate_ids`` with a single POST.

        Identifiers the provider does not return are simply absent from the
        result; unrequested entries are dropped.

        Raises:
            ValueError: ``candidate_ids`` is empty.
            ProviderUnavailable: transport failure, timeout, non-2xx status,
                or a malformed response body.
        """
        if not candidate_ids:
            raise ValueError("fetch_batch requires at least one candidate id")

        requested = list(candidate_ids)
        url = f"{self.base_url}{BATCH_LOOKUP_PATH}"

        async def _post() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.post(url, json={"ids": requested})

        async def _request() -> List[ProviderRecord]:
            # Overall deadline on top of httpx per-phase timeouts
            response = await asyncio.wait_for(_post(), timeout=self.timeout)

            if not response.is_success:
                self.logger.error(
                    "Provider request failed",
                    url=url,
                    status_code=response.status_code,
                    response=response.text[:500]
                )
                raise ProviderUnavailable(
                    f"Unexpected status {response.status_code}",
                    details={"status_code": response.status_code}
                )

            return self._parse_response(response, set(requested))

        self.logger.info("Calling provider", url=url, batch_size=len(requested))
        start_time = time.time()
        status = "failure"
        try:
            with trace_operation("provider.fetch_batch", batch_size=len(requested)):
                records = await self.circuit_breaker.call(_request)
            status = "success"
        except ProviderUnavailable:
            raise
        except CircuitBreakerOpenException as e:
            self.logger.warning("Provider circuit open, skipping call", error=str(e))
            raise ProviderUnavailable(
                "Circuit breaker open",
                details={"circuit": e.name, "retry_after": round(e.retry_after, 3)}
            ) from e
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            self.logger.error("Provider request timed out", url=url, timeout=self.timeout)
            raise ProviderUnavailable("Request timed out", details={"timeout": self.timeout}) from e
        except httpx.HTTPError as e:
            self.logger.error("Provider transport error", url=url, error=str(e))
            raise ProviderUnavailable(str(e) or type(e).__name__) from e
        finally:
            self._record(status, time.time() - start_time)

        self.logger.info(
            "Provider response received",
            requested=len(requested),
            returned=len(records)
        )
        return records

    def _parse_response(self, response: httpx.Response, requested: set) -> List[ProviderRecord]:
        """Turn the single JSON document into per-candidate records."""
        try:
            body = response.json()
        except ValueError as e:
            self.logger.error("Provider returned non-JSON body", response=response.text[:500])
            raise ProviderUnavailable("Malformed response body") from e

        candidates = body.get("candidates") if isinstance(body, dict) else None
        if not isinstance(candidates, list):
            self.logger.error("Provider response missing candidates list", body_type=type(body).__name__)
            raise ProviderUnavailable("Malformed response body: missing candidates list")

        records: Dict[int, ProviderRecord] = {}
        for entry in candidates:
            candidate_id = entry.get("id") if isinstance(entry, dict) else None
            if isinstance(candidate_id, bool) or not isinstance(candidate_id, int):
                self.logger.debug("Ignoring provider entry without integer id")
                continue
            if candidate_id not in requested:
                self.logger.debug("Ignoring unrequested provider entry", candidate_id=candidate_id)
                continue
            records[candidate_id] = ProviderRecord(id=candidate_id, payload=entry)

        return list(records.values())

    def _record(self, status: str, duration: float) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_counter("provider_requests_total", status=status)
        self.metrics.observe_histogram("provider_request_duration_seconds", duration)
