"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~ccgrant.exceptions.CcgrantError` subclass.
Shell scripts can branch on the exit code of ``ccgrant token`` without
parsing stderr.

Example::

    $ ccgrant token --profile billing
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint rejected the client
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration problems)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The token endpoint answered with a non-2xx status."""

EXIT_MALFORMED_RESPONSE = 5
"""The token endpoint answered 2xx but the body was not a usable token response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
