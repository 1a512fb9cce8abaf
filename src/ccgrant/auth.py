"""``httpx`` authentication flow backed by the client-credentials provider.

:class:`ClientCredentialsAuth` plugs into any :class:`httpx.Client` as its
``auth=`` argument.  It obtains a token from a
:class:`~ccgrant.provider.ClientCredentialsTokenProvider`, attaches it as
``Authorization: Bearer <token>``, and reuses it until it is about to
expire.  When the protected API answers ``401`` the token is discarded and
the request is replayed once with a freshly acquired token.

The flow is synchronous only; an :class:`httpx.AsyncClient` using it
raises :class:`RuntimeError` before any token is requested.

Example::

    auth = ClientCredentialsAuth(descriptor)
    with httpx.Client(base_url="https://api.example.com", auth=auth) as api:
        api.get("/photos")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncGenerator, Generator
from datetime import timedelta
from typing import Optional

import httpx

from ccgrant.models import AccessToken, ResourceDescriptor
from ccgrant.provider import ClientCredentialsTokenProvider

logger = logging.getLogger(__name__)

# Tokens this close to expiry are treated as already expired.
EXPIRY_MARGIN = timedelta(seconds=30)


class ClientCredentialsAuth(httpx.Auth):
    """Attach client-credentials access tokens to outgoing requests.

    Args:
        descriptor: Token endpoint and client credentials.
        provider: Provider used to acquire tokens.  Defaults to a new
            :class:`~ccgrant.provider.ClientCredentialsTokenProvider`.

    Raises:
        TokenError: Propagated from the provider when the token endpoint
            rejects the client.
    """

    def __init__(
        self,
        descriptor: ResourceDescriptor,
        provider: Optional[ClientCredentialsTokenProvider] = None,
    ) -> None:
        self._descriptor = descriptor
        self._provider = provider or ClientCredentialsTokenProvider()
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[AccessToken]:
        """The token currently in use, if one has been acquired."""
        return self._token

    def invalidate(self) -> None:
        """Forget the current token so the next request acquires a new one."""
        with self._lock:
            self._token = None

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        token = self._current_token()
        request.headers["Authorization"] = token.authorization_header
        response = yield request

        if response.status_code == 401:
            logger.debug(
                "%s %s returned 401, acquiring a new token and retrying",
                request.method,
                request.url,
            )
            token = self._replace_token(token)
            request.headers["Authorization"] = token.authorization_header
            yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        raise RuntimeError(
            "ClientCredentialsAuth acquires tokens with blocking I/O; "
            "use it with httpx.Client, not httpx.AsyncClient"
        )
        yield request  # pragma: no cover

    def _current_token(self) -> AccessToken:
        with self._lock:
            if self._token is None or self._token.is_expired(margin=EXPIRY_MARGIN):
                self._token = self._provider.acquire_token(self._descriptor)
            return self._token

    def _replace_token(self, rejected: AccessToken) -> AccessToken:
        with self._lock:
            # Another thread may already have replaced the rejected token.
            if self._token is None or self._token is rejected:
                self._token = self._provider.acquire_token(self._descriptor)
            return self._token
