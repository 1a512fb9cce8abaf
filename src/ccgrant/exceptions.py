"""Exception hierarchy for ccgrant.

All exceptions inherit from :class:`CcgrantError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`ccgrant.exit_codes`.
The CLI entry point in :func:`ccgrant.app.main` catches ``CcgrantError``
and exits with the appropriate code.

Subclass hierarchy::

    CcgrantError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- TokenError               (exit 3)
    +-- MalformedResponseError   (exit 5)
    +-- ConnectionError_         (exit 6)
    +-- ConfigError              (exit 1)
"""

from __future__ import annotations

import json
from typing import Optional

from ccgrant.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_MALFORMED_RESPONSE,
)


class CcgrantError(Exception):
    """Base exception for all ccgrant errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CcgrantError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class TokenError(CcgrantError):
    """Raised when the token endpoint answers with a non-2xx status.

    The ``WWW-Authenticate`` challenge is kept exactly as the server sent
    it so that callers can tell which client authentication scheme the
    server expected (``Basic realm="..."`` versus ``Form realm="..."``).

    When the body is an :rfc:`6749` section 5.2 error document, its
    ``error`` and ``error_description`` members are exposed as attributes.

    Args:
        http_status: Status code of the token endpoint response.
        www_authenticate: Raw ``WWW-Authenticate`` header, if any.
        body: Raw response body text, if any.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        http_status: int,
        www_authenticate: Optional[str] = None,
        body: Optional[str] = None,
    ):
        self.http_status = http_status
        self.www_authenticate = www_authenticate
        self.body = body
        self.error, self.error_description = _parse_error_body(body)

        message = f"Token request failed with status {http_status}"
        if self.error:
            message += f": {self.error}"
            if self.error_description:
                message += f" ({self.error_description})"
        super().__init__(message)


class MalformedResponseError(CcgrantError):
    """Raised when a 2xx token response lacks required fields or is not JSON."""

    exit_code = EXIT_MALFORMED_RESPONSE


class ConnectionError_(CcgrantError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.  The originating ``httpx`` exception is chained as
    ``__cause__``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(CcgrantError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


def _parse_error_body(body: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Extract ``error`` / ``error_description`` from a JSON error body."""
    if not body:
        return None, None
    try:
        data = json.loads(body)
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None
    error = data.get("error")
    description = data.get("error_description")
    return (
        error if isinstance(error, str) else None,
        description if isinstance(description, str) else None,
    )
