"""JSON file persistence for the whole catalog."""

from __future__ import annotations

import json
import os
import stat
import tempfile
from pathlib import Path

import structlog

from .models import LibraryData

log = structlog.get_logger()

DEFAULT_LIBRARY_FILE = "library.json"
DEFAULT_FILE_MODE = 0o644


class StorageError(Exception):
    """Base class for catalog file failures."""


class CorruptLibraryError(StorageError):
    """The library file exists but cannot be parsed."""


class PersistenceError(StorageError):
    """Writing the library file failed."""


def default_library_path() -> Path:
    return Path(os.environ.get("LIBRARY_FILE", DEFAULT_LIBRARY_FILE))


def _file_mode(path: Path) -> int:
    """Permission bits to give the rewritten file: the current ones, else 0644."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return DEFAULT_FILE_MODE


def load_library(path: Path) -> LibraryData:
    """Read the library document at ``path``.

    A missing file is an empty library. Anything unreadable raises
    CorruptLibraryError.
    """
    if not path.exists():
        log.info("library_file_missing", path=str(path))
        return LibraryData()

    try:
        raw = path.read_text(encoding="utf-8")
        data = LibraryData.from_dict(json.loads(raw))
    except (OSError, ValueError, KeyError, TypeError) as e:
        log.error("library_load_failed", path=str(path), error=str(e))
        raise CorruptLibraryError(f"Cannot load library from {path}: {e}") from e

    log.info("library_loaded", path=str(path), books=len(data.books), series=len(data.series))
    return data


def save_library(path: Path, data: LibraryData) -> None:
    """Overwrite ``path`` with the full library document.

    The document is written to a temporary file beside the target and moved
    into place, so the previous file survives a failed write.
    """
    try:
        content = json.dumps(data.to_dict(), indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        log.error("library_serialize_failed", path=str(path), error=str(e))
        raise PersistenceError(f"Cannot serialize library: {e}") from e

    directory = path.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(directory), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _file_mode(path))
            os.replace(tmp_path, path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
    except OSError as e:
        log.error("library_save_failed", path=str(path), error=str(e))
        raise PersistenceError(f"Cannot write library to {path}: {e}") from e

    log.debug("library_saved", path=str(path), books=len(data.books), series=len(data.series))
