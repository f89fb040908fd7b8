"""Environment helpers for credentials and signing secrets."""

from __future__ import annotations

import os

from .errors import InvalidInputError

__all__ = [
    "PASSWORD_ENV",
    "SIGNING_KEY_ENV",
    "SIGNING_PASSPHRASE_ENV",
    "USERNAME_ENV",
    "optional_env",
    "require_env",
]

USERNAME_ENV = "MAVENCENTRAL_USERNAME"
PASSWORD_ENV = "MAVENCENTRAL_PASSWORD"  # noqa: S105 - variable name, not a secret
SIGNING_KEY_ENV = "GPG_SECRET_KEY"
SIGNING_PASSPHRASE_ENV = "GPG_PASSPHRASE"  # noqa: S105 - variable name


def optional_env(name: str) -> str | None:
    """Return the value of ``name`` or ``None`` when unset or blank."""
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value


def require_env(name: str) -> str:
    """Return the value of ``name`` or raise :class:`InvalidInputError`.

    Parameters
    ----------
    name
        Name of the environment variable to fetch.

    Returns
    -------
    str
        The raw value of the environment variable.

    Raises
    ------
    InvalidInputError
        Raised when the environment variable is unset or empty.
    """
    value = optional_env(name)
    if value is None:
        msg = f"Environment variable '{name}' is not set."
        raise InvalidInputError(msg)
    return value
