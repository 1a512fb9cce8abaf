"""Profile commands -- manage saved token endpoint configurations.

Provides the ``ccgrant profile`` sub-command group.  A profile stores the
token endpoint, client id, requested scopes and client authentication
scheme; the client secret is referenced through a credential source and
never written to disk.

Typical workflow::

    ccgrant profile add billing --token-url https://auth.example.com/oauth/token \\
        --client-id billing-batch --client-secret-source env:BILLING_SECRET \\
        --scope read --scheme form
    ccgrant profile list
    ccgrant --profile billing token
"""

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError

from ccgrant.config import delete_profile, list_profiles, load_profile, profile_exists, save_profile
from ccgrant.exceptions import CcgrantError
from ccgrant.exit_codes import EXIT_INVALID_USAGE
from ccgrant.models import AuthenticationScheme, Profile
from ccgrant.output import error, print_record, print_table, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    token_url: str = typer.Option(..., "--token-url", help="Token endpoint URL."),
    client_id: str = typer.Option(..., "--client-id", help="OAuth2 client identifier."),
    client_secret_source: Optional[str] = typer.Option(
        None,
        "--client-secret-source",
        help="Where to read the client secret: env:VAR, file:/path, prompt, literal:VALUE.",
    ),
    scope: Optional[list[str]] = typer.Option(
        None, "--scope", "-s", help="Requested scope (repeatable)."
    ),
    scheme: AuthenticationScheme = typer.Option(
        AuthenticationScheme.BASIC, "--scheme", case_sensitive=False,
        help="Client authentication scheme.",
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Request timeout in seconds."),
    insecure: bool = typer.Option(
        False, "--insecure", help="Skip TLS certificate verification."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile."),
) -> None:
    """Create or replace a profile."""
    try:
        profile = Profile(
            name=name,
            token_endpoint=token_url,
            client_id=client_id,
            client_secret_source=client_secret_source,
            scopes=list(scope or []),
            authentication_scheme=scheme,
            timeout=timeout,
            verify_ssl=not insecure,
        )
    except ValidationError as exc:
        error(f"Invalid profile: {exc.errors()[0].get('msg')}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    if profile_exists(name) and not force:
        error(f"Profile '{name}' already exists. Use --force to overwrite.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    save_profile(profile)
    success(f'Profile "{name}" saved.')
    suggest(f"Request a token: ccgrant --profile {name} token")


@profile_app.command("list")
def profile_list() -> None:
    """List saved profiles."""
    rows: list[list[str]] = []
    for name in list_profiles():
        try:
            profile = load_profile(name)
        except CcgrantError as exc:
            error(str(exc))
            continue
        rows.append([
            profile.name,
            profile.token_endpoint,
            profile.client_id,
            profile.authentication_scheme.value,
            " ".join(profile.scopes) or "-",
        ])
    print_table(["name", "token_endpoint", "client_id", "scheme", "scope"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(name: str = typer.Argument(help="Profile name.")) -> None:
    """Show one profile."""
    try:
        profile = load_profile(name)
    except CcgrantError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    print_record(profile.model_dump(mode="json"), title=f"Profile {name}")


@profile_app.command("remove")
def profile_remove(name: str = typer.Argument(help="Profile name.")) -> None:
    """Delete a profile."""
    try:
        delete_profile(name)
    except CcgrantError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f'Profile "{name}" removed.')
