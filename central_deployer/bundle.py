"""Archive builder that merges artifact directories into one zip bundle."""

from __future__ import annotations

import dataclasses
import logging
import typing as typ
import zipfile
from pathlib import Path

from .errors import BundleIOError, InvalidInputError

__all__ = ["Bundle", "build_bundle", "iter_bundle_entries"]

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class Bundle:
    """Outcome of :func:`build_bundle`."""

    path: Path
    entries: tuple[str, ...]
    size: int


def _require_directories(dirs: typ.Sequence[Path]) -> None:
    """Raise :class:`InvalidInputError` for the first path that is not a dir."""
    for path in dirs:
        if not path.is_dir():
            msg = f"The provided path is not a directory: {path}"
            raise InvalidInputError(msg)


def _remove_existing(destination: Path) -> None:
    """Delete a stale bundle so the new archive never merges with it."""
    if not destination.exists():
        return
    try:
        destination.unlink()
    except OSError as exc:
        msg = f"Failed to delete existing bundle {destination}: {exc}"
        raise BundleIOError(msg) from exc


def iter_bundle_entries(source_dir: Path) -> typ.Iterator[tuple[str, Path]]:
    """Yield ``(entry_name, file_path)`` for every regular file in ``source_dir``.

    Entry names are POSIX paths relative to ``source_dir`` itself, not to a
    common ancestor of several source directories. Files are yielded in
    sorted order so repeated builds of the same tree produce the same archive
    layout.
    """
    for path in sorted(source_dir.rglob("*")):
        if path.is_file():
            yield path.relative_to(source_dir).as_posix(), path


def build_bundle(dirs: typ.Sequence[Path], destination: Path) -> Bundle:
    """Zip the contents of ``dirs`` into a single archive at ``destination``.

    Parameters
    ----------
    dirs
        Source directories, visited in the given order.
    destination
        Path of the archive to create. Any file already there is deleted.

    Returns
    -------
    Bundle
        The archive path, the entry names in write order and the archive size.

    Raises
    ------
    InvalidInputError
        Raised before any I/O when an input is not an existing directory.
    BundleIOError
        Raised when the stale archive cannot be deleted or writing fails. A
        partially written archive is left in place and must not be trusted.
    """
    source_dirs = [Path(path) for path in dirs]
    _require_directories(source_dirs)
    destination = Path(destination)
    _remove_existing(destination)

    target = destination.resolve()
    entries: list[str] = []
    seen: dict[str, Path] = {}
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(
            destination, "w", compression=zipfile.ZIP_DEFLATED
        ) as archive:
            for source_dir in source_dirs:
                for entry_name, path in iter_bundle_entries(source_dir):
                    if path.resolve() == target:
                        continue
                    if previous := seen.get(entry_name):
                        logger.warning(
                            "Bundle entry '%s' from %s overrides %s",
                            entry_name,
                            path,
                            previous,
                        )
                    seen[entry_name] = path
                    archive.write(path, arcname=entry_name)
                    entries.append(entry_name)
    except OSError as exc:
        msg = f"Failed to write bundle {destination}: {exc}"
        raise BundleIOError(msg) from exc

    size = destination.stat().st_size
    logger.info(
        "Bundled %d file(s) into %s (%d bytes)", len(entries), destination, size
    )
    return Bundle(destination, tuple(entries), size)
