"""Find instance files bound to a template under the site root.

The walk is sorted so runs visit files in a stable order. Directories named
in ``exclude_dirs`` or starting with one of ``skip_dir_prefixes`` (the
Templates folder and the tool's backup/temp folders) are never entered.
"""
from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterator
from pathlib import Path

from dwtsync.config import SyncConfig
from dwtsync.doc_types import template_basename
from dwtsync.markers import read_binding
from dwtsync.storage import FileStorage

log = logging.getLogger(__name__)


def glob_match(rel_path: str, pattern: str) -> bool:
    """fnmatch with ``**/`` also matching files at the root."""
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatch(rel_path, pattern[3:])


def _skip_dir(name: str, config: SyncConfig) -> bool:
    if name in config.exclude_dirs:
        return True
    return any(name.startswith(prefix) for prefix in config.skip_dir_prefixes)


def iter_candidate_files(config: SyncConfig) -> Iterator[Path]:
    """Yield files matching the include globs and none of the exclude globs."""
    root = config.site_root
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _skip_dir(d, config))
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            rel = path.relative_to(root).as_posix()
            if not any(glob_match(rel, p) for p in config.include_patterns):
                continue
            if any(glob_match(rel, p) for p in config.exclude_patterns):
                continue
            yield path


def find_instances(
    config: SyncConfig,
    template_path: Path,
    *,
    storage: FileStorage | None = None,
) -> list[Path]:
    """Candidate files whose first ``InstanceBegin`` names the template."""
    storage = storage or FileStorage()
    template_name = template_path.name
    instances: list[Path] = []
    for path in iter_candidate_files(config):
        try:
            text = storage.read_text(path)
        except OSError as exc:
            log.warning("Skipping unreadable file %s: %s", path, exc)
            continue
        bound = read_binding(text)
        if bound is not None and template_basename(bound) == template_name:
            instances.append(path)
    log.debug("Found %d instance(s) of %s", len(instances), template_name)
    return instances
