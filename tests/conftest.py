"""Shared test fixtures for ccgrant.

Provides an in-process fake authorization server mounted on
:class:`httpx.MockTransport`, descriptors for its registered clients,
isolated config directories, and output state resets.  These fixtures are
automatically discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs

import httpx
import pytest

from ccgrant.models import ResourceDescriptor
from ccgrant.output import OutputFormat, OutputManager, reset_output, set_output
from ccgrant.provider import ClientCredentialsTokenProvider


BASE_URL = "http://localhost:8080"
TOKEN_PATH = "/sparklr2/oauth/token"
REALM = "sparklr2/client"


# ---------------------------------------------------------------------------
# Fake authorization server
# ---------------------------------------------------------------------------


@dataclass
class RegisteredClient:
    """A client known to :class:`FakeAuthorizationServer`."""

    client_id: str
    secret: Optional[str] = None
    scopes: tuple[str, ...] = ("read", "write")


@dataclass
class FakeAuthorizationServer:
    """Token endpoint that issues client-credentials tokens.

    Challenges failed client authentication with ``Basic realm`` when the
    client used an ``Authorization`` header and ``Form realm`` when it sent
    its credentials in the body.  Scopes default to the client's registered
    scopes.  ``omit_scope`` makes the server leave ``scope`` out of its
    responses.
    """

    clients: dict[str, RegisteredClient] = field(default_factory=dict)
    omit_scope: bool = False
    requests: list[httpx.Request] = field(default_factory=list)
    issued: list[str] = field(default_factory=list)

    def register(self, client: RegisteredClient) -> None:
        self.clients[client.client_id] = client

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path != TOKEN_PATH:
            return httpx.Response(404, json={"error": "not_found"})
        if request.method != "POST":
            return httpx.Response(405, headers={"Allow": "POST"})

        form = {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}
        if form.get("grant_type") != "client_credentials":
            return httpx.Response(400, json={"error": "unsupported_grant_type"})

        authorization = request.headers.get("Authorization", "")
        if authorization.startswith("Basic "):
            realm_scheme = "Basic"
            decoded = base64.b64decode(authorization[6:]).decode("utf-8")
            client_id, _, secret = decoded.partition(":")
        elif "client_id" in form:
            realm_scheme = "Form"
            client_id = form["client_id"]
            secret = form.get("client_secret", "")
        else:
            return self._challenge("Basic")

        client = self.clients.get(client_id)
        if client is None or (client.secret or "") != secret:
            return self._challenge(realm_scheme)

        requested = form.get("scope", "").split()
        if not requested:
            granted = list(client.scopes)
        elif set(requested) <= set(client.scopes):
            granted = requested
        else:
            return httpx.Response(
                400,
                json={"error": "invalid_scope", "error_description": f"Invalid scope: {form['scope']}"},
            )

        value = uuid.uuid4().hex
        self.issued.append(value)
        body = {"access_token": value, "token_type": "bearer", "expires_in": 43199}
        if not self.omit_scope:
            body["scope"] = " ".join(granted)
        return httpx.Response(200, json=body)

    @staticmethod
    def _challenge(scheme: str) -> httpx.Response:
        return httpx.Response(
            401,
            headers={"WWW-Authenticate": f'{scheme} realm="{REALM}", error="unauthorized"'},
            content=json.dumps(
                {"error": "invalid_client", "error_description": "Bad client credentials"}
            ).encode(),
        )

    def last_form(self) -> dict[str, str]:
        """Form parameters of the most recent request."""
        content = self.requests[-1].content.decode("utf-8")
        return {k: v[0] for k, v in parse_qs(content).items()}


@pytest.fixture
def auth_server() -> FakeAuthorizationServer:
    """Fake authorization server with the clients used across the suite."""
    server = FakeAuthorizationServer()
    server.register(RegisteredClient("my-client-with-registered-redirect", scopes=("read", "trust")))
    server.register(RegisteredClient("my-client-with-secret", secret="secret", scopes=("read", "write")))
    return server


@pytest.fixture
def token_url() -> str:
    return BASE_URL + TOKEN_PATH


@pytest.fixture
def http_client(auth_server: FakeAuthorizationServer):
    """``httpx.Client`` whose requests are answered by *auth_server*."""
    client = httpx.Client(transport=httpx.MockTransport(auth_server.handler))
    yield client
    client.close()


@pytest.fixture
def provider(http_client: httpx.Client) -> ClientCredentialsTokenProvider:
    return ClientCredentialsTokenProvider(client=http_client)


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@pytest.fixture
def client_credentials(token_url: str) -> ResourceDescriptor:
    """Registered client without a secret, asking for ``read``."""
    return ResourceDescriptor(
        client_id="my-client-with-registered-redirect",
        token_endpoint=token_url,
        scopes=("read",),
    )


@pytest.fixture
def invalid_client_credentials(client_credentials: ResourceDescriptor) -> ResourceDescriptor:
    """Registered client presenting the wrong secret."""
    return client_credentials.with_credentials("my-client-with-secret", "wrong")


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points ``XDG_CONFIG_HOME`` at ``tmp_path/config``, forces the XDG layout,
    clears ``CCGRANT_PROFILE`` and changes the working directory to
    ``tmp_path``.
    """
    monkeypatch.setattr("ccgrant.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("CCGRANT_PROFILE", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, which go stale once CliRunner restores the streams.
    """
    yield
    reset_output()
    logger = logging.getLogger("ccgrant")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
