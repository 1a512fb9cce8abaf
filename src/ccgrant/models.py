"""Canonical Pydantic models shared across all ccgrant modules.

The models fall into two groups:

**Exchange models** -- the inputs and outputs of a client-credentials token
request:
    :class:`AuthenticationScheme`, :class:`ResourceDescriptor`, and
    :class:`AccessToken`.  Both value models are frozen; a variant of a
    descriptor (other scheme, other credentials) is a new value built with
    :meth:`ResourceDescriptor.with_scheme` or
    :meth:`ResourceDescriptor.with_credentials`.

**Configuration models** -- serialised as JSON in the user's config
directory:
    :class:`Profile`.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Profile names double as file names in the profiles directory.
PROFILE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class AuthenticationScheme(str, enum.Enum):
    """Where the client places its credentials in the token request.

    ``BASIC`` sends them in an ``Authorization: Basic`` header, ``FORM``
    sends ``client_id`` / ``client_secret`` as form body parameters.
    """

    BASIC = "basic"
    FORM = "form"


def _check_token_endpoint(value: str) -> str:
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"token endpoint must be an absolute http(s) URL, got {value!r}")
    return value


def _check_scopes(value: Any) -> Any:
    for scope in value:
        if not scope or any(ch.isspace() for ch in scope):
            raise ValueError(f"invalid scope {scope!r}: must be non-empty without whitespace")
    return value


# --- Exchange models ---


class ResourceDescriptor(BaseModel):
    """Everything needed to request a token from one token endpoint.

    Example::

        descriptor = ResourceDescriptor(
            client_id="my-client-with-registered-redirect",
            token_endpoint="http://localhost:8080/sparklr2/oauth/token",
            scopes=("read",),
        )
        form_descriptor = descriptor.with_scheme(AuthenticationScheme.FORM)
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    client_secret: Optional[str] = None
    token_endpoint: str
    scopes: tuple[str, ...] = ()
    authentication_scheme: AuthenticationScheme = AuthenticationScheme.BASIC

    @field_validator("token_endpoint")
    @classmethod
    def _validate_token_endpoint(cls, value: str) -> str:
        return _check_token_endpoint(value)

    @field_validator("scopes")
    @classmethod
    def _validate_scopes(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _check_scopes(value)

    def with_scheme(self, scheme: AuthenticationScheme) -> ResourceDescriptor:
        """Return a copy that authenticates with *scheme*."""
        return self.model_copy(update={"authentication_scheme": scheme})

    def with_credentials(
        self, client_id: str, client_secret: Optional[str] = None
    ) -> ResourceDescriptor:
        """Return a copy with different client credentials (revalidated)."""
        data = self.model_dump()
        data.update(client_id=client_id, client_secret=client_secret)
        return ResourceDescriptor.model_validate(data)

    def __repr__(self) -> str:
        secret = "***" if self.client_secret else None
        return (
            f"ResourceDescriptor(client_id={self.client_id!r}, client_secret={secret!r}, "
            f"token_endpoint={self.token_endpoint!r}, scopes={self.scopes!r}, "
            f"authentication_scheme={self.authentication_scheme.value!r})"
        )


class AccessToken(BaseModel):
    """An access token issued by the token endpoint.

    Instances are only produced by
    :meth:`~ccgrant.provider.ClientCredentialsTokenProvider.acquire_token`.
    For the client-credentials grant ``refresh_token`` is always ``None``.
    """

    model_config = ConfigDict(frozen=True)

    value: str
    token_type: str = "bearer"
    expires_in: Optional[timedelta] = None
    scope: frozenset[str] = frozenset()
    refresh_token: Optional[str] = None
    additional_information: dict[str, Any] = Field(default_factory=dict)
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> Optional[datetime]:
        """Absolute expiry time, or ``None`` when the server gave no lifetime."""
        if self.expires_in is None:
            return None
        return self.issued_at + self.expires_in

    def is_expired(self, now: Optional[datetime] = None, margin: timedelta = timedelta(0)) -> bool:
        """Whether the token has expired (or will within *margin*) at *now*."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now + margin >= expires_at

    @property
    def authorization_header(self) -> str:
        """Value for the ``Authorization`` header when calling a protected API."""
        token_type = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return f"{token_type} {self.value}"

    def __repr__(self) -> str:
        return (
            f"AccessToken(token_type={self.token_type!r}, scope={sorted(self.scope)!r}, "
            f"expires_at={self.expires_at!r})"
        )


# --- Configuration models ---


class Profile(BaseModel):
    """A named token-endpoint configuration persisted as JSON.

    The client secret is never stored directly; ``client_secret_source``
    names where to read it from (see :func:`ccgrant.config.resolve_credential`).

    Example::

        Profile(
            name="billing",
            token_endpoint="https://auth.example.com/oauth/token",
            client_id="billing-batch",
            client_secret_source="env:BILLING_CLIENT_SECRET",
            scopes=["read", "write"],
            authentication_scheme=AuthenticationScheme.FORM,
        )
    """

    name: str = Field(pattern=PROFILE_NAME_PATTERN)
    token_endpoint: str
    client_id: str = Field(min_length=1)
    client_secret_source: Optional[str] = Field(
        default=None,
        description="Credential source: env:VAR, file:/path, prompt, literal:VALUE",
    )
    scopes: list[str] = Field(default_factory=list)
    authentication_scheme: AuthenticationScheme = AuthenticationScheme.BASIC
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    verify_ssl: bool = True

    @field_validator("token_endpoint")
    @classmethod
    def _validate_token_endpoint(cls, value: str) -> str:
        return _check_token_endpoint(value)

    @field_validator("scopes")
    @classmethod
    def _validate_scopes(cls, value: list[str]) -> list[str]:
        return _check_scopes(value)
