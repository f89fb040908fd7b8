"""Deploy request model and TOML configuration loader.

A :class:`DeployRequest` is the immutable, validated input of one deploy
invocation. :func:`load_config` reads the optional ``[deploy]`` table of a
TOML file into a :class:`DeployConfig`, whose values can be overridden from the
command line before being turned into a request.
"""

from __future__ import annotations

import dataclasses
import enum
import tomllib
import typing as typ
from pathlib import Path

from .environment import (
    PASSWORD_ENV,
    SIGNING_KEY_ENV,
    SIGNING_PASSPHRASE_ENV,
    USERNAME_ENV,
    optional_env,
    require_env,
)
from .errors import InvalidInputError

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT",
    "DeployConfig",
    "DeployRequest",
    "PublishingType",
    "SigningConfig",
    "bundle_path_for",
    "load_config",
]

DEFAULT_BASE_URL = "https://central.sonatype.com"
DEFAULT_TIMEOUT = 60.0
_MASK = "****"


class PublishingType(enum.StrEnum):
    """How an uploaded bundle is promoted once validated.

    ``WAIT_FOR_PUBLISHED`` is client-side only: the bundle is uploaded as
    ``AUTOMATIC`` and the deployment status is polled until it is published.
    """

    AUTOMATIC = "AUTOMATIC"
    USER_MANAGED = "USER_MANAGED"
    WAIT_FOR_PUBLISHED = "WAIT_FOR_PUBLISHED"

    @property
    def wire_value(self) -> str:
        """Return the ``publishingType`` query value understood by the server."""
        if self is PublishingType.WAIT_FOR_PUBLISHED:
            return PublishingType.AUTOMATIC.value
        return self.value

    @property
    def waits_for_publication(self) -> bool:
        """Return ``True`` when the deployment status must be polled."""
        return self is PublishingType.WAIT_FOR_PUBLISHED

    @classmethod
    def parse(cls, value: str | PublishingType) -> PublishingType:
        """Return the member named by ``value``, ignoring case and dashes."""
        if isinstance(value, PublishingType):
            return value
        normalised = value.strip().upper().replace("-", "_")
        try:
            return cls(normalised)
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            msg = f"Unknown publishing type {value!r}; expected one of: {choices}"
            raise ValueError(msg) from None


@dataclasses.dataclass(frozen=True, slots=True)
class SigningConfig:
    """Secret key material handed to the signer."""

    secret_key: str = dataclasses.field(repr=False)
    passphrase: str = dataclasses.field(repr=False)

    def __post_init__(self) -> None:
        if not self.secret_key.strip():
            msg = "Signing secret key is empty."
            raise InvalidInputError(msg)


def bundle_path_for(project_dir: Path, name: str, version: str | None = None) -> Path:
    """Return the deterministic bundle path for ``name`` in ``project_dir``.

    Examples
    --------
    >>> bundle_path_for(Path("/work/lib"), "lib")
    PosixPath('/work/lib/lib-bundle.zip')
    >>> bundle_path_for(Path("/work/lib"), "lib", "1.2.0")
    PosixPath('/work/lib/lib-1.2.0-bundle.zip')
    """
    stem = f"{name}-{version}" if version else name
    return project_dir / f"{stem}-bundle.zip"


@dataclasses.dataclass(frozen=True, slots=True)
class DeployRequest:
    """Validated, immutable input of a single deploy invocation.

    Every directory in ``dirs`` must exist when the request is built; the
    check runs here so that a bad path fails before any signing, archiving or
    network work starts.
    """

    dirs: tuple[Path, ...]
    username: str = dataclasses.field(repr=False)
    password: str = dataclasses.field(repr=False)
    publishing_type: PublishingType = PublishingType.USER_MANAGED
    signing: SigningConfig | None = None
    project_dir: Path = dataclasses.field(default_factory=Path.cwd)
    bundle_name: str | None = None
    version: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        object.__setattr__(self, "dirs", tuple(Path(path) for path in self.dirs))
        object.__setattr__(
            self, "publishing_type", PublishingType.parse(self.publishing_type)
        )
        for path in self.dirs:
            if not path.is_dir():
                msg = f"The provided path is not a directory: {path}"
                raise InvalidInputError(msg)
        if not self.username or not self.password:
            msg = "Both a username and a password are required to deploy."
            raise InvalidInputError(msg)
        if not self.base_url.startswith("https://"):
            msg = f"Publisher base URL must use HTTPS: {self.base_url}"
            raise InvalidInputError(msg)
        if self.timeout <= 0:
            msg = f"HTTP timeout must be positive, got {self.timeout}"
            raise InvalidInputError(msg)

    @property
    def name(self) -> str:
        """Project name used to derive the bundle file name."""
        return self.bundle_name or self.project_dir.resolve().name

    @property
    def bundle_path(self) -> Path:
        """Absolute path of the bundle written for this request."""
        return bundle_path_for(self.project_dir.resolve(), self.name, self.version)


_STRING_KEYS = frozenset(
    {"username", "password", "publishing_type", "name", "version", "base_url"}
)
_KNOWN_KEYS = _STRING_KEYS | {"dirs", "timeout", "signing"}


@dataclasses.dataclass(frozen=True, slots=True)
class DeployConfig:
    """Raw deploy settings gathered from a config file and CLI overrides.

    Every field is optional; :meth:`to_request` fills the gaps from the
    environment and validates the result.
    """

    dirs: tuple[Path, ...] = ()
    username: str | None = dataclasses.field(default=None, repr=False)
    password: str | None = dataclasses.field(default=None, repr=False)
    publishing_type: str | None = None
    name: str | None = None
    version: str | None = None
    base_url: str | None = None
    timeout: float | None = None
    signing_key: str | None = dataclasses.field(default=None, repr=False)
    signing_passphrase: str | None = dataclasses.field(default=None, repr=False)

    def merged(self, **overrides: object) -> DeployConfig:
        """Return a copy where every non-empty override replaces the file value."""
        updates = {
            key: value
            for key, value in overrides.items()
            if value not in (None, "", ())
        }
        return dataclasses.replace(self, **updates)  # type: ignore[arg-type]

    def to_request(self, project_dir: Path | None = None) -> DeployRequest:
        """Build a validated :class:`DeployRequest`.

        Missing credentials fall back to ``MAVENCENTRAL_USERNAME`` and
        ``MAVENCENTRAL_PASSWORD``; signing falls back to ``GPG_SECRET_KEY`` and
        ``GPG_PASSPHRASE`` and stays disabled when no key is available.

        Raises
        ------
        InvalidInputError
            Raised when credentials are missing or a directory does not exist.
        ValueError
            Raised when the publishing type is unknown.
        """
        root = project_dir or Path.cwd()
        username = self.username or require_env(USERNAME_ENV)
        password = self.password or require_env(PASSWORD_ENV)
        return DeployRequest(
            dirs=tuple(_anchored(path, root) for path in self.dirs),
            username=username,
            password=password,
            publishing_type=PublishingType.parse(
                self.publishing_type or PublishingType.USER_MANAGED
            ),
            signing=self._signing(),
            project_dir=root,
            bundle_name=self.name,
            version=self.version,
            base_url=self.base_url or DEFAULT_BASE_URL,
            timeout=DEFAULT_TIMEOUT if self.timeout is None else self.timeout,
        )

    def summary(self, project_dir: Path | None = None) -> dict[str, str | list[str]]:
        """Return a printable view of the settings with credentials masked.

        Credentials are reported as set when they come from the environment.
        """
        root = project_dir or Path.cwd()
        signing_key = self.signing_key or optional_env(SIGNING_KEY_ENV)
        return {
            "dirs": [_anchored(path, root).resolve().as_posix() for path in self.dirs],
            "username": _masked(self.username or optional_env(USERNAME_ENV)),
            "password": _masked(self.password or optional_env(PASSWORD_ENV)),
            "publishingType": PublishingType.parse(
                self.publishing_type or PublishingType.USER_MANAGED
            ).value,
            "signing": _masked(signing_key),
        }

    def _signing(self) -> SigningConfig | None:
        secret_key = self.signing_key or optional_env(SIGNING_KEY_ENV)
        if secret_key is None:
            return None
        passphrase = self.signing_passphrase or optional_env(SIGNING_PASSPHRASE_ENV)
        return SigningConfig(secret_key=secret_key, passphrase=passphrase or "")


def _anchored(path: Path, root: Path) -> Path:
    return path if path.is_absolute() else root / path


def _masked(value: str | None) -> str:
    return _MASK if value else "<not set>"


def load_config(config_file: Path) -> DeployConfig:
    """Load the ``[deploy]`` table of ``config_file``.

    Relative ``dirs`` entries are resolved against the directory holding the
    configuration file.

    Parameters
    ----------
    config_file
        Path to the TOML configuration file.

    Returns
    -------
    DeployConfig
        Settings read from the file; absent keys are ``None``.

    Raises
    ------
    FileNotFoundError
        Raised when the configuration file is absent at ``config_file``.
    InvalidInputError
        Raised when the file is not valid TOML, or a key is unknown or has the
        wrong type.
    """
    config_file = Path(config_file)
    if not config_file.is_file():
        msg = f"Configuration file not found at {config_file}"
        raise FileNotFoundError(msg)

    try:
        with config_file.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {config_file}: {exc}"
        raise InvalidInputError(msg) from exc

    section = data.get("deploy", {})
    if not isinstance(section, dict):
        msg = f"[deploy] in {config_file} must be a table"
        raise InvalidInputError(msg)
    if unknown := sorted(section.keys() - _KNOWN_KEYS):
        joined = ", ".join(unknown)
        msg = f"Unknown key(s) {joined} in [deploy] section of {config_file}"
        raise InvalidInputError(msg)

    for key in _STRING_KEYS & section.keys():
        _require_type(section[key], str, key, config_file)
    signing = _signing_section(section.get("signing", {}), config_file)

    return DeployConfig(
        dirs=_dirs_from(section.get("dirs", []), config_file),
        username=section.get("username"),
        password=section.get("password"),
        publishing_type=section.get("publishing_type"),
        name=section.get("name"),
        version=section.get("version"),
        base_url=section.get("base_url"),
        timeout=_timeout_from(section.get("timeout"), config_file),
        signing_key=signing.get("secret_key"),
        signing_passphrase=signing.get("passphrase"),
    )


def _require_type(value: object, expected: type, key: str, config_path: Path) -> None:
    if not isinstance(value, expected):
        msg = (
            f"Deploy setting '{key}' must be a {expected.__name__}, "
            f"got {type(value).__name__} in {config_path}"
        )
        raise InvalidInputError(msg)


def _dirs_from(value: object, config_path: Path) -> tuple[Path, ...]:
    _require_type(value, list, "dirs", config_path)
    base = config_path.parent
    dirs: list[Path] = []
    for index, entry in enumerate(typ.cast("list[object]", value)):
        _require_type(entry, str, f"dirs[{index}]", config_path)
        path = Path(typ.cast("str", entry)).expanduser()
        dirs.append(path if path.is_absolute() else base / path)
    return tuple(dirs)


def _timeout_from(value: object, config_path: Path) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = (
            f"Deploy setting 'timeout' must be a number, "
            f"got {type(value).__name__} in {config_path}"
        )
        raise InvalidInputError(msg)
    return float(value)


def _signing_section(value: object, config_path: Path) -> dict[str, str]:
    _require_type(value, dict, "signing", config_path)
    section = typ.cast("dict[str, object]", value)
    if unknown := sorted(section.keys() - {"secret_key", "passphrase"}):
        joined = ", ".join(unknown)
        msg = f"Unknown key(s) {joined} in [deploy.signing] section of {config_path}"
        raise InvalidInputError(msg)
    for key, entry in section.items():
        _require_type(entry, str, f"signing.{key}", config_path)
    return typ.cast("dict[str, str]", section)
