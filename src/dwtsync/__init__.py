"""Dreamweaver-style template sync: scanning, merging, applying, undo."""

from dwtsync.backups import (
    BackupManager,
    BackupManifest,
    NoManifestError,
    PartialRestoreError,
    RestoreError,
)
from dwtsync.config import ConfigError, SyncConfig, load_config
from dwtsync.diff_report import DiffSummary, Hunk, compute_hunks, diff_summary
from dwtsync.discovery import find_instances, iter_candidate_files
from dwtsync.doc_types import (
    EditableRegion,
    Err,
    InstanceDocument,
    LiteralSegment,
    MarkerToken,
    MergeResult,
    Ok,
    ParseError,
    Position,
    Range,
    RegionChange,
    TemplateDocument,
    render_segments,
)
from dwtsync.document import build_instance, build_template
from dwtsync.interaction import (
    ApplyDecision,
    Interaction,
    ScriptedInteraction,
    TerminalInteraction,
)
from dwtsync.markers import read_binding, scan_markers
from dwtsync.merge import merge
from dwtsync.pages import create_page
from dwtsync.workflow import (
    ApplyWorkflow,
    FileOutcome,
    RunState,
    RunSummary,
    TemplateParseError,
)

__all__ = [
    "ApplyDecision",
    "ApplyWorkflow",
    "BackupManager",
    "BackupManifest",
    "ConfigError",
    "DiffSummary",
    "EditableRegion",
    "Err",
    "FileOutcome",
    "Hunk",
    "InstanceDocument",
    "Interaction",
    "LiteralSegment",
    "MarkerToken",
    "MergeResult",
    "NoManifestError",
    "Ok",
    "ParseError",
    "PartialRestoreError",
    "Position",
    "Range",
    "RegionChange",
    "RestoreError",
    "RunState",
    "RunSummary",
    "ScriptedInteraction",
    "SyncConfig",
    "TemplateDocument",
    "TemplateParseError",
    "TerminalInteraction",
    "build_instance",
    "build_template",
    "compute_hunks",
    "create_page",
    "diff_summary",
    "find_instances",
    "iter_candidate_files",
    "load_config",
    "merge",
    "read_binding",
    "render_segments",
    "scan_markers",
]
