"""
Mock Auth service answering token verification with a static token table.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from shared.logging import get_logger

DEFAULT_TOKENS: Dict[str, Dict[str, Any]] = {
    "dev-token-recruiter-1": {
        "user_id": "user-1",
        "email": "recruiter.one@example.com",
        "roles": ["recruiter"],
    },
    "dev-token-recruiter-2": {
        "user_id": "user-2",
        "email": "recruiter.two@example.com",
        "roles": ["recruiter"],
    },
}


class TokenVerificationRequest(BaseModel):
    token: str


class MockAuthServer:
    """Mock Auth service implementation."""

    def __init__(self, tokens: Optional[Dict[str, Dict[str, Any]]] = None):
        self.logger = get_logger("mock.auth")
        self.tokens = dict(tokens if tokens is not None else DEFAULT_TOKENS)
        self.app = FastAPI(title="Mock Auth", version="1.0.0")
        self._setup_routes()

    def _setup_routes(self):
        """Set up mock auth routes."""

        @self.app.post("/auth/verify")
        async def verify(request: TokenVerificationRequest):
            user_info = self.tokens.get(request.token)
            if user_info is None:
                self.logger.info("Rejected token")
                return {"valid": False, "error": "Invalid or expired token"}
            return {
                "valid": True,
                "claims": {"sub": user_info["user_id"]},
                "user_info": user_info,
            }


def create_app():
    """Create mock Auth application."""
    return MockAuthServer().app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8010)
