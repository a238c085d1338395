"""Apply workflow: drive one run of a template over its instance files.

Per file, strictly in the order supplied::

    pending -> proposed -> applied | skipped_by_user | skipped_no_change | cancelled

plus the non-fatal ``parse_failed`` and ``io_failed`` terminals. Files
bound to another template are dropped silently and get no outcome.

``RunState`` is the only mutable state shared between files: an
``apply_all`` decision flips it to ``auto_apply_all`` and a ``cancel``
decision (or an interrupt seen by ``Interaction.is_cancelled``) stops the
loop before the next file is read. Files already written stay written;
undo goes through the backup manifest finalized at the end of the run.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from dwtsync.backups import BackupManager
from dwtsync.config import SyncConfig
from dwtsync.diff_report import diff_summary
from dwtsync.doc_types import (
    Err,
    ParseError,
    RegionChange,
    TemplateDocument,
)
from dwtsync.document import build_instance, build_template
from dwtsync.interaction import ApplyDecision, Interaction
from dwtsync.merge import merge
from dwtsync.storage import FileStorage, encode_text

log = logging.getLogger(__name__)

type RunMode = Literal["interactive", "auto_apply_all"]
type FileStatus = Literal[
    "applied",
    "skipped_by_user",
    "skipped_no_change",
    "cancelled",
    "parse_failed",
    "io_failed",
]

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 2
EXIT_SKIPPED = 3
EXIT_SAFETY_SKIP = 4


class TemplateParseError(RuntimeError):
    """The template itself is malformed; the run cannot start."""

    def __init__(self, path: Path, error: ParseError) -> None:
        self.path = path
        self.error = error
        super().__init__(f"Cannot parse template {path}: {error.message}")


@dataclass(slots=True)
class RunState:
    """Approval state shared by reference across one run."""

    mode: RunMode = "interactive"
    cancelled: bool = False


@dataclass(frozen=True, slots=True)
class FileOutcome:
    path: str
    status: FileStatus
    message: str = ""
    changes: tuple[RegionChange, ...] = ()


@dataclass(slots=True)
class RunSummary:
    template_name: str
    outcomes: list[FileOutcome] = field(default_factory=list)
    cancelled: bool = False
    manifest_path: Path | None = None

    def count(self, status: FileStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status in ("parse_failed", "io_failed")]

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return EXIT_CANCELLED
        if self.failed:
            return EXIT_ERROR
        return EXIT_SUCCESS

    def render(self) -> str:
        parts = [
            f"{self.count('applied')} applied",
            f"{self.count('skipped_by_user')} skipped",
            f"{self.count('skipped_no_change')} unchanged",
        ]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        if self.cancelled:
            parts.append("run cancelled")
        return f"{self.template_name}: " + ", ".join(parts)


def load_template(path: Path, storage: FileStorage | None = None) -> TemplateDocument:
    """Read and parse a template; raises ``TemplateParseError`` on bad markers."""
    storage = storage or FileStorage()
    text = storage.read_text(path)
    parsed = build_template(text, str(path))
    if isinstance(parsed, Err):
        raise TemplateParseError(path, parsed.error)
    return parsed.value


class ApplyWorkflow:
    """One template, N candidate instances, one shared ``RunState``."""

    def __init__(
        self,
        config: SyncConfig,
        interaction: Interaction,
        *,
        storage: FileStorage | None = None,
        backups: BackupManager | None = None,
    ) -> None:
        self.config = config
        self.interaction = interaction
        self.storage = storage or FileStorage()
        if backups is None and config.backups_enabled:
            backups = BackupManager(config.backup_root, config.site_root, storage=self.storage)
        self.backups = backups

    def _display_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.config.site_root).as_posix()
        except ValueError:
            return str(path)

    def run(
        self,
        template_path: Path,
        candidates: Iterable[Path],
        *,
        state: RunState | None = None,
    ) -> RunSummary:
        template = load_template(template_path, self.storage)
        template_name = template_path.name
        if state is None:
            state = RunState(mode="auto_apply_all" if self.config.auto_apply else "interactive")

        summary = RunSummary(template_name=template_name)
        run_id = self.backups.begin_run(template_name) if self.backups else None
        log.info("Updating instances of %s (mode=%s)", template_name, state.mode)
        try:
            for path in candidates:
                if state.cancelled or self.interaction.is_cancelled():
                    state.cancelled = True
                    break
                outcome = self._process(path, template, state, run_id)
                if outcome is None:
                    continue
                summary.outcomes.append(outcome)
                if outcome.status == "cancelled":
                    break
        finally:
            summary.cancelled = state.cancelled
            if self.backups is not None and run_id is not None:
                if self.backups.pending(run_id).entries:
                    summary.manifest_path = self.backups.finalize(run_id)
                else:
                    self.backups.discard(run_id)

        log.info("%s", summary.render())
        return summary

    def _process(
        self,
        path: Path,
        template: TemplateDocument,
        state: RunState,
        run_id: str | None,
    ) -> FileOutcome | None:
        shown = self._display_path(path)
        self.interaction.report_progress(f"Processing {shown}")

        try:
            original = self.storage.read_text(path)
        except OSError as exc:
            log.error("Cannot read %s: %s", shown, exc)
            self.interaction.notify(f"Cannot read {shown}: {exc}", "error")
            return FileOutcome(shown, "io_failed", str(exc))

        parsed = build_instance(original, str(path))
        if isinstance(parsed, Err):
            message = parsed.error.message
            log.warning("Skipping %s: %s", shown, message)
            self.interaction.notify(f"Skipping {shown}: {message}", "warning")
            return FileOutcome(shown, "parse_failed", message)
        instance = parsed.value

        if instance.bound_template_name != Path(template.source_path).name:
            log.debug("%s is bound to %s; not a candidate", shown, instance.bound_template_name)
            return None

        result = merge(template, instance)
        if result.new_text == original:
            log.debug("%s already up to date", shown)
            return FileOutcome(shown, "skipped_no_change", changes=result.changes)

        decision = self._decide(state, shown, original, result.new_text, result.changes)
        if decision == "skip":
            log.info("Skipped %s", shown)
            return FileOutcome(shown, "skipped_by_user", changes=result.changes)
        if decision == "cancel":
            log.info("Run cancelled at %s", shown)
            return FileOutcome(shown, "cancelled", changes=result.changes)

        try:
            if self.backups is not None and run_id is not None:
                self.backups.snapshot(run_id, path)
            self.storage.write_bytes(path, encode_text(result.new_text))
        except OSError as exc:
            log.error("Cannot update %s: %s", shown, exc)
            self.interaction.notify(f"Cannot update {shown}: {exc}", "error")
            return FileOutcome(shown, "io_failed", str(exc), result.changes)

        log.info("Updated %s", shown)
        return FileOutcome(shown, "applied", changes=result.changes)

    def _decide(
        self,
        state: RunState,
        shown: str,
        old_text: str,
        new_text: str,
        changes: tuple[RegionChange, ...],
    ) -> ApplyDecision:
        if state.mode == "auto_apply_all":
            return "apply"
        decision = self.interaction.confirm(diff_summary(
            shown,
            old_text,
            new_text,
            context=self.config.diff_context_lines,
            region_changes=changes,
        ))
        if decision == "apply_all":
            state.mode = "auto_apply_all"
        elif decision == "cancel":
            state.cancelled = True
        return decision
