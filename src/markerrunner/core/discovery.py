"""Import-path expansion and discovery root selection."""

import os
from pathlib import Path
from typing import Iterable, Optional, Sequence

import structlog

from markerrunner.config import PathConfig

log = structlog.get_logger("markerrunner.core.discovery")


def split_path_list(path_list: str) -> list[str]:
    """Split an ``os.pathsep`` joined list, dropping empty segments."""
    return [entry for entry in path_list.split(os.pathsep) if entry]


def expand_wildcard(entry: str, config: Optional[PathConfig] = None) -> list[Path]:
    """Expand a single path entry.

    An entry ending with the wildcard marker expands to the archives found
    directly inside the directory it names. The scan is not recursive and a
    missing or non-directory target expands to nothing. Any other entry is
    returned as-is.
    """
    config = config or PathConfig()
    if not entry.endswith(config.wildcard):
        return [Path(entry)]

    directory = Path(entry[: -len(config.wildcard)] or ".")
    if not directory.is_dir():
        log.debug("Wildcard target is not a directory", entry=entry)
        return []

    suffixes = tuple(config.archive_suffixes)
    try:
        archives = [p for p in directory.iterdir() if p.is_file() and p.name.endswith(suffixes)]
    except OSError:
        log.warning("Failed to list wildcard directory", entry=entry, exc_info=True)
        return []
    return sorted(archives, key=lambda p: p.name)


def expand_path_list(path_list: str, config: Optional[PathConfig] = None) -> list[Path]:
    """Split a path list and expand its wildcard entries, keeping order."""
    entries: list[Path] = []
    for entry in split_path_list(path_list):
        entries.extend(expand_wildcard(entry, config))
    return entries


def ambient_directories(env_var: Optional[str], environ: Optional[dict[str, str]] = None) -> list[Path]:
    """Directory entries of the ambient import path (e.g. ``PYTHONPATH``)."""
    if not env_var:
        return []
    environ = os.environ if environ is None else environ
    value = environ.get(env_var, "")
    return [Path(entry) for entry in split_path_list(value) if Path(entry).is_dir()]


def discovery_roots(entries: Sequence[Path], ambient: Iterable[Path] = ()) -> list[Path]:
    """Union of ambient directories and directory entries, duplicates removed."""
    roots: dict[Path, None] = {}
    for path in ambient:
        roots.setdefault(path, None)
    for path in entries:
        if path.is_dir():
            roots.setdefault(path, None)
    return list(roots)
