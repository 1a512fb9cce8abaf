"""Configuration management with XDG paths, atomic writes, and credential sources.

This module handles all persistent configuration for ccgrant:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.ccgrant/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_profiles_dir`.
* **Profiles** -- One JSON file per token endpoint configuration, each
  deserialised into a :class:`~ccgrant.models.Profile`. Managed via
  :func:`load_profile`, :func:`save_profile`, :func:`delete_profile`.
* **Credential resolution** -- :func:`resolve_credential` reads the client
  secret from an env var, a file, an interactive prompt, or a literal.
* **Descriptor building** -- :func:`descriptor_from_profile` turns a
  profile into the :class:`~ccgrant.models.ResourceDescriptor` the token
  provider consumes.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import getpass
import json
import logging
import os
import platform
import re
import sys
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ccgrant.exceptions import ConfigError
from ccgrant.models import PROFILE_NAME_PATTERN, Profile, ResourceDescriptor

logger = logging.getLogger(__name__)

_APP_NAME = "ccgrant"
PROFILE_ENV_VAR = "CCGRANT_PROFILE"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/ccgrant/`` (default ``~/.config/ccgrant/``).
    On macOS/Windows: ``~/.ccgrant/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    """Return the profiles directory (``<config_dir>/profiles/``), creating it if necessary."""
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure
    the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Profiles ---


def _profile_path(name: str) -> Path:
    """Path to a named profile's JSON file."""
    if not re.fullmatch(PROFILE_NAME_PATTERN, name):
        raise ConfigError(
            f"Invalid profile name '{name}': use letters, digits, '.', '_' and '-'"
        )
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names found in the profiles directory, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Args:
        name: Profile name (corresponds to ``<name>.json`` in the profiles
            directory).

    Returns:
        The deserialised :class:`~ccgrant.models.Profile`.

    Raises:
        ConfigError: If the profile file does not exist, contains invalid
            JSON, or fails Pydantic validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Profile.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> Path:
    """Persist a profile atomically and return the file it was written to."""
    path = _profile_path(profile.name)
    data = profile.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    logger.debug("Saved profile '%s' to %s", profile.name, path)
    return path


def delete_profile(name: str) -> None:
    """Delete a profile's JSON file from disk.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    """Check whether a profile file exists on disk."""
    return _profile_path(name).is_file()


def resolve_profile_name(cli_profile: Optional[str] = None) -> Optional[str]:
    """Pick the active profile name: CLI flag, then ``$CCGRANT_PROFILE``."""
    if cli_profile:
        return cli_profile
    return os.environ.get(PROFILE_ENV_VAR) or None


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)
        - ``"literal:VALUE"`` -- uses ``VALUE`` as is

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Client secret: ")

    if source.startswith("literal:"):
        return source[8:]

    raise ConfigError(f"Unknown credential source format: {source}")


def descriptor_from_profile(profile: Profile) -> ResourceDescriptor:
    """Build a :class:`~ccgrant.models.ResourceDescriptor` from *profile*.

    The client secret is resolved from ``profile.client_secret_source``
    (``None`` when the profile has no secret source).

    Raises:
        ConfigError: If the secret cannot be resolved or the resulting
            descriptor is invalid.
    """
    secret: Optional[str] = None
    if profile.client_secret_source:
        secret = resolve_credential(profile.client_secret_source)
    try:
        return ResourceDescriptor(
            client_id=profile.client_id,
            client_secret=secret,
            token_endpoint=profile.token_endpoint,
            scopes=tuple(profile.scopes),
            authentication_scheme=profile.authentication_scheme,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid profile '{profile.name}': {exc}") from exc
