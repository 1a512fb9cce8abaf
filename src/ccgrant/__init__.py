"""ccgrant -- OAuth2 client credentials grant for Python.

This package requests access tokens from an OAuth2 token endpoint with the
client credentials grant (:rfc:`6749` section 4.4), authenticating the
client either with HTTP Basic or with form body parameters.

Typical usage::

    from ccgrant import ClientCredentialsTokenProvider, ResourceDescriptor

    descriptor = ResourceDescriptor(
        client_id="batch",
        client_secret="s3cret",
        token_endpoint="https://auth.example.com/oauth/token",
        scopes=("read",),
    )
    token = ClientCredentialsTokenProvider().acquire_token(descriptor)

Modules:
    provider: The token provider.
    auth: ``httpx.Auth`` flow that attaches provider tokens to API calls.
    models: Pydantic models shared across the package.
    config: Profile storage and credential source resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

from ccgrant.auth import ClientCredentialsAuth
from ccgrant.exceptions import (
    CcgrantError,
    ConnectionError_,
    MalformedResponseError,
    TokenError,
)
from ccgrant.models import AccessToken, AuthenticationScheme, ResourceDescriptor
from ccgrant.provider import ClientCredentialsTokenProvider

__version__ = "0.1.0"

__all__ = [
    "AccessToken",
    "AuthenticationScheme",
    "CcgrantError",
    "ClientCredentialsAuth",
    "ClientCredentialsTokenProvider",
    "ConnectionError_",
    "MalformedResponseError",
    "ResourceDescriptor",
    "TokenError",
]
