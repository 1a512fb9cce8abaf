"""Token command -- request an access token from the command line.

The descriptor comes either from a saved profile (``--profile`` or
``$CCGRANT_PROFILE``) or from explicit ``--token-url`` / ``--client-id``
options.  With a profile, any of ``--token-url``, ``--client-id``,
``--client-secret-source``, ``--scope`` and ``--scheme`` override the
profile's values.

Typical usage::

    ccgrant token --token-url https://auth.example.com/oauth/token \\
        --client-id batch --client-secret-source env:BATCH_SECRET --scope read
    ccgrant --profile billing token --value-only
"""

from __future__ import annotations

from typing import Any, Optional

import typer
from pydantic import ValidationError

from ccgrant.config import (
    descriptor_from_profile,
    load_profile,
    resolve_credential,
    resolve_profile_name,
)
from ccgrant.exceptions import CcgrantError, InvalidUsageError, TokenError
from ccgrant.models import AccessToken, AuthenticationScheme, Profile, ResourceDescriptor
from ccgrant.output import error, get_output, info, print_record, warning
from ccgrant.provider import ClientCredentialsTokenProvider

DEFAULT_TIMEOUT = 30.0


def build_provider(timeout: float, verify: bool) -> ClientCredentialsTokenProvider:
    """Create the provider used by :func:`token_command`."""
    return ClientCredentialsTokenProvider(timeout=timeout, verify=verify)


def token_command(
    ctx: typer.Context,
    token_url: Optional[str] = typer.Option(
        None, "--token-url", help="Token endpoint URL."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="OAuth2 client identifier."
    ),
    client_secret_source: Optional[str] = typer.Option(
        None,
        "--client-secret-source",
        help="Where to read the client secret: env:VAR, file:/path, prompt, literal:VALUE.",
    ),
    scope: Optional[list[str]] = typer.Option(
        None, "--scope", "-s", help="Requested scope (repeatable)."
    ),
    scheme: Optional[AuthenticationScheme] = typer.Option(
        None, "--scheme", case_sensitive=False, help="Client authentication scheme."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Request timeout in seconds."
    ),
    value_only: bool = typer.Option(
        False, "--value-only", help="Print only the access token value."
    ),
) -> None:
    """Request an access token with the client credentials grant."""
    profile_name = resolve_profile_name((ctx.obj or {}).get("profile"))
    verify = True

    try:
        if profile_name:
            profile = _override_profile(
                load_profile(profile_name), token_url, client_id, client_secret_source
            )
            descriptor = descriptor_from_profile(profile)
            if timeout is None:
                timeout = profile.timeout
            verify = profile.verify_ssl
            if not verify:
                warning(f"TLS certificate verification is disabled for profile '{profile.name}'")
            descriptor = _apply_overrides(descriptor, scope, scheme)
        else:
            descriptor = _descriptor_from_options(
                token_url, client_id, client_secret_source, scope, scheme
            )

        provider = build_provider(timeout or DEFAULT_TIMEOUT, verify)
        token = provider.acquire_token(descriptor)
    except TokenError as exc:
        error(str(exc))
        if exc.www_authenticate:
            info(f"WWW-Authenticate: {exc.www_authenticate}")
        raise typer.Exit(code=exc.exit_code) from None
    except CcgrantError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if value_only:
        get_output().print_data(token.value)
        return
    print_record(token_record(token), title="Access token")


def token_record(token: AccessToken) -> dict[str, Any]:
    """Flatten *token* into the fields shown by ``ccgrant token``."""
    expires_in = token.expires_in
    return {
        "access_token": token.value,
        "token_type": token.token_type,
        "expires_in": int(expires_in.total_seconds()) if expires_in is not None else None,
        "expires_at": token.expires_at.isoformat() if token.expires_at else None,
        "scope": sorted(token.scope),
    }


def _descriptor_from_options(
    token_url: Optional[str],
    client_id: Optional[str],
    client_secret_source: Optional[str],
    scope: Optional[list[str]],
    scheme: Optional[AuthenticationScheme],
) -> ResourceDescriptor:
    if not token_url or not client_id:
        raise InvalidUsageError(
            "Either --profile or both --token-url and --client-id are required"
        )
    secret = resolve_credential(client_secret_source) if client_secret_source else None
    try:
        return ResourceDescriptor(
            client_id=client_id,
            client_secret=secret,
            token_endpoint=token_url,
            scopes=tuple(scope or ()),
            authentication_scheme=scheme or AuthenticationScheme.BASIC,
        )
    except ValidationError as exc:
        raise InvalidUsageError(_first_error(exc)) from exc


def _override_profile(
    profile: Profile,
    token_url: Optional[str],
    client_id: Optional[str],
    client_secret_source: Optional[str],
) -> Profile:
    updates = {
        key: value
        for key, value in (
            ("token_endpoint", token_url),
            ("client_id", client_id),
            ("client_secret_source", client_secret_source),
        )
        if value is not None
    }
    if not updates:
        return profile
    try:
        return Profile.model_validate({**profile.model_dump(), **updates})
    except ValidationError as exc:
        raise InvalidUsageError(_first_error(exc)) from exc


def _apply_overrides(
    descriptor: ResourceDescriptor,
    scope: Optional[list[str]],
    scheme: Optional[AuthenticationScheme],
) -> ResourceDescriptor:
    if scheme is not None:
        descriptor = descriptor.with_scheme(scheme)
    if scope:
        try:
            data = descriptor.model_dump()
            data["scopes"] = tuple(scope)
            descriptor = ResourceDescriptor.model_validate(data)
        except ValidationError as exc:
            raise InvalidUsageError(_first_error(exc)) from exc
    return descriptor


def _first_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
