"""Scoped import-path context for a test run."""

import importlib
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Sequence

import structlog

log = structlog.get_logger("markerrunner.core.loader")


class InvalidPathEntryError(ValueError):
    """Raised when an import-path entry cannot be turned into a usable location."""

    def __init__(self, entry: Path | str):
        self.entry = entry
        super().__init__(f"Invalid path entry: {entry}")


def _to_import_entry(path: Path) -> str | None:
    """Resolve ``path`` for ``sys.path``, or None if it does not exist."""
    try:
        path.stat()
    except (FileNotFoundError, NotADirectoryError):
        return None
    except (OSError, ValueError) as e:
        raise InvalidPathEntryError(path) from e
    try:
        return str(path.resolve())
    except (OSError, RuntimeError, ValueError) as e:
        raise InvalidPathEntryError(path) from e


def import_entries(entries: Sequence[Path]) -> list[str]:
    """Resolved, de-duplicated import entries for the paths that exist."""
    resolved: dict[str, None] = {}
    for path in entries:
        entry = _to_import_entry(path)
        if entry is not None:
            resolved.setdefault(entry, None)
    return list(resolved)


@contextmanager
def loading_context(entries: Sequence[Path]) -> Generator[list[str], None, None]:
    """Make ``entries`` importable for the duration of the block.

    Existing entries are prepended to ``sys.path``. On exit ``sys.path`` is
    restored and the importers created for the added entries are dropped,
    whether or not the block raised. With no existing entries nothing is
    installed.
    """
    added = import_entries(entries)
    if not added:
        yield added
        return

    original_path = list(sys.path)
    sys.path[:0] = added
    importlib.invalidate_caches()
    log.debug("Installed loading context", entries=added)
    try:
        yield added
    finally:
        sys.path[:] = original_path
        for entry in added:
            sys.path_importer_cache.pop(entry, None)
        importlib.invalidate_caches()
        log.debug("Restored loading context", entries=added)
