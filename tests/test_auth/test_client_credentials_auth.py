"""Tests for the ClientCredentialsAuth httpx auth flow."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import httpx
import pytest

from ccgrant.auth import ClientCredentialsAuth
from ccgrant.exceptions import TokenError
from ccgrant.models import AccessToken, ResourceDescriptor
from ccgrant.provider import ClientCredentialsTokenProvider


API_URL = "https://api.example.com"


def _api_client(auth: ClientCredentialsAuth, handler) -> httpx.Client:
    return httpx.Client(base_url=API_URL, auth=auth, transport=httpx.MockTransport(handler))


class TestClientCredentialsAuth:
    def test_attaches_bearer_token(
        self, provider: ClientCredentialsTokenProvider, client_credentials: ResourceDescriptor
    ) -> None:
        seen: list[str] = []

        def api(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, json={"photos": []})

        auth = ClientCredentialsAuth(client_credentials, provider)
        with _api_client(auth, api) as client:
            response = client.get("/photos")

        assert response.status_code == 200
        assert auth.token is not None
        assert seen == [f"Bearer {auth.token.value}"]

    def test_reuses_token_across_requests(
        self,
        provider: ClientCredentialsTokenProvider,
        client_credentials: ResourceDescriptor,
        auth_server,
    ) -> None:
        auth = ClientCredentialsAuth(client_credentials, provider)
        with _api_client(auth, lambda request: httpx.Response(200)) as client:
            client.get("/photos")
            client.get("/photos")

        assert len(auth_server.requests) == 1

    def test_401_acquires_new_token_and_retries_once(
        self,
        provider: ClientCredentialsTokenProvider,
        client_credentials: ResourceDescriptor,
        auth_server,
    ) -> None:
        seen: list[str] = []

        def api(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(401 if len(seen) == 1 else 200)

        auth = ClientCredentialsAuth(client_credentials, provider)
        with _api_client(auth, api) as client:
            response = client.get("/photos")

        assert response.status_code == 200
        assert len(seen) == 2
        assert seen[0] != seen[1]
        assert len(auth_server.issued) == 2

    def test_persistent_401_is_returned_after_one_retry(
        self, provider: ClientCredentialsTokenProvider, client_credentials: ResourceDescriptor
    ) -> None:
        calls = 0

        def api(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401)

        auth = ClientCredentialsAuth(client_credentials, provider)
        with _api_client(auth, api) as client:
            response = client.get("/photos")

        assert response.status_code == 401
        assert calls == 2

    def test_expired_token_is_replaced(self, client_credentials: ResourceDescriptor) -> None:
        stale = AccessToken(
            value="stale",
            expires_in=timedelta(seconds=10),
            issued_at=datetime.now(timezone.utc) - timedelta(seconds=5),
        )
        fresh = AccessToken(value="fresh", expires_in=timedelta(hours=1))
        provider = MagicMock(spec=ClientCredentialsTokenProvider)
        provider.acquire_token.side_effect = [stale, fresh]

        seen: list[str] = []
        auth = ClientCredentialsAuth(client_credentials, provider)
        with _api_client(auth, lambda r: seen.append(r.headers["Authorization"]) or httpx.Response(200)) as client:
            client.get("/a")
            client.get("/b")

        # "stale" is inside the expiry margin, so the second request refetches.
        assert seen == ["Bearer stale", "Bearer fresh"]
        assert provider.acquire_token.call_count == 2

    def test_invalidate_forces_new_token(
        self,
        provider: ClientCredentialsTokenProvider,
        client_credentials: ResourceDescriptor,
        auth_server,
    ) -> None:
        auth = ClientCredentialsAuth(client_credentials, provider)
        with _api_client(auth, lambda request: httpx.Response(200)) as client:
            client.get("/photos")
            auth.invalidate()
            assert auth.token is None
            client.get("/photos")

        assert len(auth_server.issued) == 2

    def test_token_error_propagates(
        self,
        provider: ClientCredentialsTokenProvider,
        invalid_client_credentials: ResourceDescriptor,
    ) -> None:
        api = MagicMock(return_value=httpx.Response(200))
        auth = ClientCredentialsAuth(invalid_client_credentials, provider)
        with _api_client(auth, api) as client:
            with pytest.raises(TokenError) as exc_info:
                client.get("/photos")

        assert exc_info.value.http_status == 401
        api.assert_not_called()

    def test_async_client_is_rejected_before_acquiring_a_token(
        self, client_credentials: ResourceDescriptor
    ) -> None:
        provider = MagicMock(spec=ClientCredentialsTokenProvider)
        api = MagicMock(return_value=httpx.Response(200))
        auth = ClientCredentialsAuth(client_credentials, provider)

        async def call() -> None:
            async with httpx.AsyncClient(
                base_url=API_URL, auth=auth, transport=httpx.MockTransport(api)
            ) as client:
                await client.get("/photos")

        with pytest.raises(RuntimeError, match="httpx.Client"):
            asyncio.run(call())
        provider.acquire_token.assert_not_called()
        api.assert_not_called()
