"""
Authentication for Candidate Details requests.
"""

from fastapi import Request

from shared.errors import AuthenticationError
from shared.logging import get_logger

from ..adapters.auth_client import AuthClient
from ..models import CallerIdentity


class AuthMiddleware:
    """Resolves the caller identity from a bearer token."""

    def __init__(self, auth_client: AuthClient):
        self.auth_client = auth_client
        self.logger = get_logger("candidate_details.auth_middleware")

    async def authenticate_request(self, request: Request) -> CallerIdentity:
        """Authenticate an incoming request with its bearer token."""
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise AuthenticationError("No authorization header")

        scheme, _, token = auth_header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationError("Invalid authorization header format")

        user_info = await self.auth_client.verify_token(token)
        identity = CallerIdentity(
            user_id=str(user_info["user_id"]),
            email=user_info.get("email"),
            roles=list(user_info.get("roles", [])),
        )

        self.logger.info("Request authenticated", user_id=identity.user_id)
        return identity
