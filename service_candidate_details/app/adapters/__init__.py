"""
Adapters package for the Candidate Details service.

HTTP client wrappers for the services this one depends on:

- AuthClient: bearer token verification against the Auth service.
- ProviderClient: batched profile lookups against the external
  candidate data provider.

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .auth_client import AuthClient
from .provider_client import ProviderClient

__all__ = [
    "AuthClient",
    "ProviderClient",
]
