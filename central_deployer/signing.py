"""Detached GnuPG signatures for artifact directories.

The signing key never touches the user's keyring: each :meth:`GpgSigner.sign`
call imports it into a throwaway GnuPG home directory that is deleted
afterwards. The passphrase is handed to ``gpg`` through a private file in that
directory because every executed command is echoed to the log.
"""

from __future__ import annotations

import logging
import os
import tempfile
import typing as typ
from pathlib import Path

from plumbum import local
from plumbum.commands.processes import CommandNotFound, ProcessExecutionError

from .commands import run_cmd
from .errors import SigningError, truncate_text

__all__ = ["SKIPPED_SUFFIXES", "GpgSigner", "Signer", "iter_signable_files"]

logger = logging.getLogger(__name__)

SKIPPED_SUFFIXES = frozenset({".asc", ".md5", ".sha1", ".sha256", ".sha512"})


class Signer(typ.Protocol):
    """Produces signature files next to the artifacts in a directory."""

    def sign(self, directory: Path, secret_key: str, passphrase: str) -> None:
        """Sign every artifact below ``directory``.

        Raises
        ------
        SigningError
            Raised when any file cannot be signed.
        """
        ...


def iter_signable_files(directory: Path) -> typ.Iterator[Path]:
    """Yield regular files below ``directory`` that need a signature."""
    for path in sorted(directory.rglob("*")):
        if path.is_file() and path.suffix.lower() not in SKIPPED_SUFFIXES:
            yield path


def _write_private(path: Path, text: str) -> Path:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(text)
    return path


class GpgSigner:
    """Create ASCII-armoured ``<file>.asc`` signatures with ``gpg``."""

    def __init__(self, executable: str = "gpg") -> None:
        self.executable = executable

    def sign(self, directory: Path, secret_key: str, passphrase: str) -> None:
        """Import ``secret_key`` and sign every file below ``directory``."""
        directory = Path(directory)
        files = list(iter_signable_files(directory))
        if not files:
            logger.info("No files to sign in %s", directory)
            return

        try:
            gpg = local[self.executable]
        except CommandNotFound as exc:
            msg = f"Signing tool '{self.executable}' not found on PATH"
            raise SigningError(msg) from exc

        with tempfile.TemporaryDirectory(prefix="central-deployer-gnupg-") as home:
            home_dir = Path(home)
            key_file = _write_private(home_dir / "signing-key.asc", secret_key)
            passphrase_file = _write_private(home_dir / "passphrase", passphrase)
            base = gpg["--homedir", str(home_dir), "--batch", "--yes"]

            self._run(base["--import", str(key_file)], "import the signing key")
            for path in files:
                signature = path.with_name(f"{path.name}.asc")
                self._run(
                    base[
                        "--pinentry-mode",
                        "loopback",
                        "--passphrase-file",
                        str(passphrase_file),
                        "--armor",
                        "--detach-sign",
                        "--output",
                        str(signature),
                        str(path),
                    ],
                    f"sign {path}",
                )
        logger.info("Signed %d file(s) in %s", len(files), directory)

    @staticmethod
    def _run(command: object, action: str) -> None:
        try:
            run_cmd(command)
        except ProcessExecutionError as exc:
            detail = truncate_text(str(exc.stderr or "").strip()) or "<no output>"
            msg = f"Failed to {action} (exit code {exc.retcode}): {detail}"
            raise SigningError(msg) from exc
