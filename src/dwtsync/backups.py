"""Backup snapshots taken before instance writes, and single-step undo.

Layout under the backup root::

    <backup_root>/
        last_backup.json                 # manifest of the most recent run
        <run_id>/
            manifest_<run_id>.json       # versioned copy of that manifest
            <site-relative path>         # original bytes of each file

Only one generation of undo is kept. The manifest is rewritten atomically
after every snapshot, so a run that dies part-way still leaves a partial
manifest naming exactly the files it may have overwritten, and ``restore``
never reads a half-written file. ``finalize`` writes it one last time and
removes the run directory of the manifest it replaced.
"""
from __future__ import annotations

import hashlib
import logging
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from dwtsync.io_utils import load_json, save_json
from dwtsync.storage import FileStorage

log = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"
LAST_BACKUP_FILENAME = "last_backup.json"


class RestoreError(RuntimeError):
    """Raised when the last backup cannot be fully restored."""


class NoManifestError(RestoreError):
    """No backup manifest exists; nothing was touched."""


class PartialRestoreError(RestoreError):
    """Some entries were restored, others failed. Successes are not rolled back."""

    def __init__(self, succeeded: int, failed: list[tuple[str, str]]) -> None:
        self.succeeded = succeeded
        self.failed = failed
        super().__init__(
            f"Restored {succeeded} file(s); {len(failed)} failed: "
            + ", ".join(path for path, _ in failed)
        )


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format."""
    return datetime.now(UTC).isoformat()


def generate_run_id(prefix: str = "backup") -> str:
    """Compact, sortable run id suitable for directory names."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}_{ts}_{uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class BackupEntry:
    original_path: str
    backup_path: str


@dataclass(slots=True)
class BackupManifest:
    """Everything needed to reverse one run."""

    template_name: str
    run_id: str
    created_at: str
    backup_dir: str
    entries: list[BackupEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "manifest_version": MANIFEST_VERSION,
            "template_name": self.template_name,
            "run_id": self.run_id,
            "created_at": self.created_at,
            "backup_dir": self.backup_dir,
            "entries": [
                {"original_path": e.original_path, "backup_path": e.backup_path}
                for e in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, payload: Any) -> BackupManifest:
        if not isinstance(payload, dict):
            raise RestoreError("Invalid backup manifest payload")
        try:
            entries = [
                BackupEntry(str(e["original_path"]), str(e["backup_path"]))
                for e in payload.get("entries", [])
            ]
            return cls(
                template_name=str(payload["template_name"]),
                run_id=str(payload["run_id"]),
                created_at=str(payload.get("created_at", "")),
                backup_dir=str(payload.get("backup_dir", "")),
                entries=entries,
            )
        except (KeyError, TypeError) as exc:
            raise RestoreError(f"Invalid backup manifest payload: {exc}") from exc


class BackupManager:
    """Run-scoped snapshots plus restore of the last finalized run."""

    def __init__(
        self,
        backup_root: Path,
        site_root: Path,
        *,
        storage: FileStorage | None = None,
    ) -> None:
        self.backup_root = backup_root
        self.site_root = site_root
        self.storage = storage or FileStorage()
        self._runs: dict[str, BackupManifest] = {}
        self._replaced: dict[str, Path | None] = {}

    @property
    def manifest_path(self) -> Path:
        return self.backup_root / LAST_BACKUP_FILENAME

    def begin_run(self, template_name: str) -> str:
        run_id = generate_run_id()
        self._runs[run_id] = BackupManifest(
            template_name=template_name,
            run_id=run_id,
            created_at=utc_now_iso(),
            backup_dir=str(self.backup_root / run_id),
        )
        log.debug("Started backup run %s for %s", run_id, template_name)
        return run_id

    def pending(self, run_id: str) -> BackupManifest:
        try:
            return self._runs[run_id]
        except KeyError:
            raise KeyError(f"Unknown or finalized backup run: {run_id}") from None

    def _backup_location(self, run_id: str, path: Path) -> Path:
        resolved = path.resolve()
        try:
            rel = resolved.relative_to(self.site_root.resolve())
        except ValueError:
            digest = hashlib.sha1(str(resolved).encode("utf-8")).hexdigest()[:12]
            rel = Path("_external") / digest / resolved.name
        return self.backup_root / run_id / rel

    def snapshot(self, run_id: str, path: Path) -> BackupEntry:
        """Copy the current bytes of ``path`` into the run directory.

        Must be called before the file is overwritten. A second snapshot of
        the same file in one run keeps the first copy.
        """
        manifest = self.pending(run_id)
        original = str(path.resolve())
        for entry in manifest.entries:
            if entry.original_path == original:
                return entry
        dst = self._backup_location(run_id, path)
        self.storage.copy(path, dst)
        entry = BackupEntry(original_path=original, backup_path=str(dst))
        manifest.entries.append(entry)
        log.debug("Backed up %s -> %s", original, dst)
        if run_id not in self._replaced:
            self._replaced[run_id] = self._previous_run_dir(run_id)
        self._persist(manifest)
        return entry

    def _previous_run_dir(self, run_id: str) -> Path | None:
        try:
            previous = self.last_manifest()
        except RestoreError as exc:
            log.warning("Ignoring unreadable previous manifest: %s", exc)
            return None
        if previous is None or previous.run_id == run_id:
            return None
        run_dir = self.backup_root / previous.run_id
        return run_dir if run_dir.is_dir() else None

    def _persist(self, manifest: BackupManifest) -> None:
        payload = manifest.to_dict()
        save_json(payload, self.backup_root / manifest.run_id / f"manifest_{manifest.run_id}.json")
        save_json(payload, self.manifest_path)

    def finalize(self, run_id: str) -> Path:
        """Persist the run's manifest as the last backup."""
        manifest = self._runs.pop(run_id)
        self._persist(manifest)
        stale = self._replaced.pop(run_id, None)
        if stale is not None:
            try:
                shutil.rmtree(stale)
            except OSError as exc:
                log.warning("Could not prune old backup run %s: %s", stale, exc)
            else:
                log.debug("Pruned previous backup run %s", stale.name)
        log.info(
            "Backup manifest written: %d file(s) in %s",
            len(manifest.entries), manifest.backup_dir,
        )
        return self.manifest_path

    def discard(self, run_id: str) -> None:
        """Drop a run that backed nothing up; the previous manifest stays."""
        self._runs.pop(run_id, None)
        self._replaced.pop(run_id, None)

    def last_manifest(self) -> BackupManifest | None:
        if not self.manifest_path.is_file():
            return None
        try:
            payload = load_json(self.manifest_path)
        except ValueError as exc:
            raise RestoreError(f"Unreadable backup manifest {self.manifest_path}: {exc}") from exc
        return BackupManifest.from_dict(payload)

    def restore(self) -> int:
        """Copy every backed-up file over its original. Returns the count.

        Raises ``NoManifestError`` when there is nothing to restore and
        ``PartialRestoreError`` when some copies fail.
        """
        manifest = self.last_manifest()
        if manifest is None:
            raise NoManifestError(f"No backup manifest at {self.manifest_path}")

        succeeded = 0
        failed: list[tuple[str, str]] = []
        for entry in manifest.entries:
            try:
                self.storage.copy(Path(entry.backup_path), Path(entry.original_path))
            except OSError as exc:
                log.error("Restore failed for %s: %s", entry.original_path, exc)
                failed.append((entry.original_path, str(exc)))
                continue
            succeeded += 1
        if failed:
            raise PartialRestoreError(succeeded, failed)
        log.info("Restored %d file(s) from run %s", succeeded, manifest.run_id)
        return succeeded
