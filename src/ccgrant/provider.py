"""OAuth2 Client Credentials token provider.

This module provides :class:`ClientCredentialsTokenProvider`, which
performs the non-interactive Client Credentials grant (:rfc:`6749`
section 4.4): one ``POST`` to the token endpoint exchanging a
``client_id`` and ``client_secret`` for an access token.

Client authentication follows the descriptor's
:class:`~ccgrant.models.AuthenticationScheme`:

- ``BASIC`` -- ``Authorization: Basic base64(client_id:client_secret)``.
- ``FORM`` -- ``client_id`` and ``client_secret`` in the form body.

Every call makes exactly one request.  Nothing is cached and nothing is
retried; :class:`~ccgrant.auth.ClientCredentialsAuth` layers token reuse on
top for API clients.

See Also:
    :mod:`ccgrant.exceptions` for the failure kinds raised here.
"""

from __future__ import annotations

import base64
import logging
from datetime import timedelta
from typing import Any, Optional

import httpx

from ccgrant.exceptions import ConnectionError_, MalformedResponseError, TokenError
from ccgrant.models import AccessToken, AuthenticationScheme, ResourceDescriptor

logger = logging.getLogger(__name__)

GRANT_TYPE = "client_credentials"

# Members of a token response that map onto AccessToken fields.
_KNOWN_FIELDS = frozenset(
    {"access_token", "token_type", "expires_in", "scope", "refresh_token"}
)


class ClientCredentialsTokenProvider:
    """Exchange client credentials for an access token.

    The provider holds no per-exchange state, so one instance can serve
    concurrent callers.

    Args:
        client: Optional :class:`httpx.Client` used for every exchange.
            The caller keeps ownership and must close it.  When omitted, a
            short-lived client is opened per call (or one pooled client
            while the provider is used as a context manager).
        timeout: Request timeout in seconds for clients the provider
            opens itself.
        verify: TLS certificate verification for clients the provider
            opens itself.

    Example::

        provider = ClientCredentialsTokenProvider(timeout=10.0)
        token = provider.acquire_token(descriptor)
        headers = {"Authorization": token.authorization_header}
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        verify: bool = True,
    ) -> None:
        self._client = client
        self._owns_client = False
        self._timeout = timeout
        self._verify = verify

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ClientCredentialsTokenProvider:
        if self._client is None:
            self._client = self._new_client()
            self._owns_client = True
        return self

    def __exit__(self, *args: object) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
            self._owns_client = False

    # ------------------------------------------------------------------ #
    # Token acquisition
    # ------------------------------------------------------------------ #

    def acquire_token(self, descriptor: ResourceDescriptor) -> AccessToken:
        """Request a new access token for *descriptor*.

        Args:
            descriptor: Token endpoint, client credentials, scopes and
                client authentication scheme.

        Returns:
            The parsed :class:`~ccgrant.models.AccessToken`.  Its
            ``refresh_token`` is always ``None``.

        Raises:
            TokenError: The endpoint answered with a non-2xx status.  The
                exception carries the status code, the ``WWW-Authenticate``
                header verbatim and the body.
            MalformedResponseError: The endpoint answered 2xx but the body
                is not a JSON object with an ``access_token``.
            ConnectionError_: The request never got a response (DNS,
                connection refused, timeout).
        """
        data = self.build_form(descriptor)
        headers = self.build_headers(descriptor)

        logger.debug(
            "Requesting token from %s for client '%s' (scheme=%s, scope=%r)",
            descriptor.token_endpoint,
            descriptor.client_id,
            descriptor.authentication_scheme.value,
            data.get("scope"),
        )
        response = self._post(descriptor.token_endpoint, data, headers)

        if not response.is_success:
            error = TokenError(
                http_status=response.status_code,
                www_authenticate=response.headers.get("WWW-Authenticate"),
                body=response.text or None,
            )
            logger.warning(
                "Token endpoint %s rejected client '%s': HTTP %d, challenge=%r",
                descriptor.token_endpoint,
                descriptor.client_id,
                response.status_code,
                error.www_authenticate,
            )
            raise error

        token = parse_token_response(response, descriptor.scopes)
        logger.debug(
            "Received %s token for client '%s' (scope=%s, expires_in=%s)",
            token.token_type,
            descriptor.client_id,
            " ".join(sorted(token.scope)) or "-",
            token.expires_in,
        )
        return token

    # ------------------------------------------------------------------ #
    # Request building
    # ------------------------------------------------------------------ #

    @staticmethod
    def build_form(descriptor: ResourceDescriptor) -> dict[str, str]:
        """Return the form parameters for the token request.

        ``grant_type`` and ``scope`` are identical for both authentication
        schemes; only ``FORM`` adds the client credentials.
        """
        data: dict[str, str] = {"grant_type": GRANT_TYPE}
        if descriptor.scopes:
            data["scope"] = " ".join(descriptor.scopes)
        if descriptor.authentication_scheme is AuthenticationScheme.FORM:
            data["client_id"] = descriptor.client_id
            if descriptor.client_secret is not None:
                data["client_secret"] = descriptor.client_secret
        return data

    @staticmethod
    def build_headers(descriptor: ResourceDescriptor) -> dict[str, str]:
        """Return the request headers, including Basic credentials if configured."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        if descriptor.authentication_scheme is AuthenticationScheme.BASIC:
            raw = f"{descriptor.client_id}:{descriptor.client_secret or ''}"
            encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
            headers["Authorization"] = f"Basic {encoded}"
        return headers

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _new_client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, verify=self._verify)

    def _post(
        self, url: str, data: dict[str, str], headers: dict[str, str]
    ) -> httpx.Response:
        """POST the form, mapping transport failures to ConnectionError_."""
        try:
            if self._client is not None:
                return self._client.post(url, data=data, headers=headers)
            with self._new_client() as client:
                return client.post(url, data=data, headers=headers)
        except httpx.DecodingError as exc:
            raise MalformedResponseError(
                f"Token response from {url} could not be decoded: {exc}"
            ) from exc
        except httpx.TransportError as exc:
            logger.debug("Token request to %s failed: %s", url, exc)
            raise ConnectionError_(f"Token request to {url} failed: {exc}") from exc


# --- Response parsing ---


def parse_token_response(
    response: httpx.Response, requested_scopes: tuple[str, ...] = ()
) -> AccessToken:
    """Build an :class:`~ccgrant.models.AccessToken` from a 2xx token response.

    Any ``refresh_token`` in the body is ignored.  When the response has no
    ``scope`` member the requested scopes are echoed back; with no requested
    scopes the token's scope stays empty.

    Args:
        response: The successful token endpoint response.
        requested_scopes: Scopes sent with the request.

    Returns:
        The parsed token.

    Raises:
        MalformedResponseError: The body is not a JSON object, lacks
            ``access_token``, or has a non-numeric or out-of-range ``expires_in``.
    """
    try:
        body: Any = response.json()
    except ValueError as exc:
        raise MalformedResponseError(
            "Token response is not valid JSON"
        ) from exc
    if not isinstance(body, dict):
        raise MalformedResponseError("Token response is not a JSON object")

    value = body.get("access_token")
    if not isinstance(value, str) or not value:
        raise MalformedResponseError("Token response missing 'access_token' field")

    expires_in: Optional[timedelta] = None
    raw_expires = body.get("expires_in")
    if raw_expires is not None:
        try:
            expires_in = timedelta(seconds=int(raw_expires))
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedResponseError(
                f"Token response has invalid 'expires_in': {raw_expires!r}"
            ) from exc

    raw_scope = body.get("scope")
    if raw_scope is None:
        scope = frozenset(requested_scopes)
    elif isinstance(raw_scope, str):
        scope = frozenset(raw_scope.split())
    elif isinstance(raw_scope, list):
        scope = frozenset(str(s) for s in raw_scope)
    else:
        raise MalformedResponseError(f"Token response has invalid 'scope': {raw_scope!r}")

    token = AccessToken(
        value=value,
        token_type=str(body.get("token_type") or "bearer"),
        expires_in=expires_in,
        scope=scope,
        additional_information={
            k: v for k, v in body.items() if k not in _KNOWN_FIELDS
        },
    )
    try:
        token.expires_at
    except OverflowError as exc:
        raise MalformedResponseError(
            f"Token response has out-of-range 'expires_in': {raw_expires!r}"
        ) from exc
    return token
