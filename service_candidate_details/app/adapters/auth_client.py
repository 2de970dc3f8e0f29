"""
Auth service client for the Candidate Details service.
"""

from typing import Dict, Any, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, get_circuit_breaker
from shared.errors import AuthenticationError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception


class AuthClient:
    """Client for communicating with the Auth service."""

    def __init__(self, auth_service_url: str, *, timeout: float = 10.0,
                 circuit_breaker: Optional[CircuitBreaker] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.auth_service_url = auth_service_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("candidate_details.auth_client")
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(
            "auth_service",
            failure_threshold=3,
            recovery_timeout=30.0
        )
        self._transport = transport

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify a bearer token with the Auth service.

        Returns the ``user_info`` of a valid token.

        Raises:
            AuthenticationError: the token is invalid or the Auth service
                cannot be reached.
        """
        try:
            result = await self.circuit_breaker.call(self._post_verify, token)
        except (RetryError, CircuitBreakerOpenException) as e:
            self.logger.error("Auth service unavailable", error=str(e))
            raise AuthenticationError(
                "Auth service unavailable",
                details={"error": str(e)}
            ) from e

        if not isinstance(result, dict) or not result.get("valid"):
            self.logger.warning("Token validation failed", error=result.get("error") if isinstance(result, dict) else None)
            raise AuthenticationError("Invalid or expired token")

        user_info = result.get("user_info") or {}
        if not user_info.get("user_id"):
            raise AuthenticationError("Token does not identify a user")
        return user_info

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.2, max_delay=2.0))
    async def _post_verify(self, token: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.auth_service_url}/auth/verify",
                json={"token": token}
            )

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as e:
                raise AuthenticationError("Auth service returned a malformed response") from e
        raise AuthenticationError(
            f"Auth service error: {response.status_code}",
            details={"status_code": response.status_code}
        )
