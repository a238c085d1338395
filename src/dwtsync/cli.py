"""Command-line entry point for Dreamweaver-style template sync.

Usage::

    dwtsync update-all Templates/main.dwt [--auto-apply] [--no-backup]
    dwtsync sync Templates/main.dwt [--instance pages/about.html]
    dwtsync find-instances Templates/main.dwt
    dwtsync show-regions pages/index.html
    dwtsync create-page Templates/main.dwt --output pages/new.html
    dwtsync restore-backup [--yes]

Run from the site root (the folder holding ``Templates/``) or pass ``--cwd``.
Exit codes: 0 success, 1 error, 2 cancelled, 3 skipped by user,
4 skipped for safety.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from pathlib import Path

from dwtsync.backups import BackupManager, NoManifestError, PartialRestoreError, RestoreError
from dwtsync.config import ConfigError, SyncConfig, load_config
from dwtsync.discovery import find_instances
from dwtsync.doc_types import Err, EditableRegion
from dwtsync.document import build_instance, build_template
from dwtsync.interaction import TerminalInteraction
from dwtsync.markers import scan_markers
from dwtsync.pages import create_page, template_ref_for
from dwtsync.storage import FileStorage
from dwtsync.workflow import (
    EXIT_CANCELLED,
    EXIT_ERROR,
    EXIT_SAFETY_SKIP,
    EXIT_SKIPPED,
    EXIT_SUCCESS,
    ApplyWorkflow,
    TemplateParseError,
    load_template,
)

log = logging.getLogger("dwtsync")

EXIT_TIMEOUT = 124


def log_process_completion(context: str, code: int = EXIT_SUCCESS) -> int:
    log.info("[dwtsync] Process completed (%s) with error code -> %d", context, code)
    return code


def _template_path(config: SyncConfig, raw: str) -> Path | None:
    path = config.resolve(raw)
    if not path.is_file():
        print(f"Template file not found: {path}", file=sys.stderr)
        return None
    return path


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_update(args: argparse.Namespace, config: SyncConfig) -> int:
    context = f"cli:{args.command}"
    template_path = _template_path(config, args.template)
    if template_path is None:
        return log_process_completion(context, EXIT_ERROR)

    print(f"Updating files using template: {template_path.name}")
    print(f"Site root: {config.site_root}")
    print(f"Auto-apply: {'Yes' if config.auto_apply else 'No'}\n")

    storage = FileStorage()
    candidates = find_instances(config, template_path, storage=storage)
    if args.instance:
        instance_path = config.resolve(args.instance)
        if instance_path.resolve() not in {c.resolve() for c in candidates}:
            print(
                f"{args.instance} is not an instance of {template_path.name}; not updated.",
                file=sys.stderr,
            )
            return log_process_completion(context, EXIT_SAFETY_SKIP)
        candidates = [instance_path]
    if not candidates:
        print("No instances found.")
        return log_process_completion(context, EXIT_SUCCESS)

    interaction = TerminalInteraction()
    workflow = ApplyWorkflow(config, interaction, storage=storage)
    try:
        with interaction.watch_interrupts():
            summary = workflow.run(template_path, candidates)
    except TemplateParseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return log_process_completion(context, EXIT_ERROR)

    print(f"\n{summary.render()}")
    for outcome in summary.failed:
        print(f"  ! {outcome.path}: {outcome.message}", file=sys.stderr)
    if summary.manifest_path is not None:
        print(f"Backup manifest: {summary.manifest_path}")

    code = summary.exit_code
    if (
        code == EXIT_SUCCESS
        and args.instance
        and summary.count("skipped_by_user") == 1
    ):
        code = EXIT_SKIPPED
    return log_process_completion(context, code)


def cmd_find_instances(args: argparse.Namespace, config: SyncConfig) -> int:
    template_path = _template_path(config, args.template)
    if template_path is None:
        return log_process_completion("cli:find-instances", EXIT_ERROR)

    print(f"Finding instances of template: {template_path.name}\n")
    instances = find_instances(config, template_path)
    if not instances:
        print("No instances found.")
    else:
        print(f"Found {len(instances)} instance(s):\n")
        for idx, path in enumerate(instances, start=1):
            print(f"  {idx}. {path.relative_to(config.site_root).as_posix()}")
    return log_process_completion("cli:find-instances", EXIT_SUCCESS)


def cmd_show_regions(args: argparse.Namespace, config: SyncConfig) -> int:
    path = config.resolve(args.file)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return log_process_completion("cli:show-regions", EXIT_ERROR)

    text = FileStorage().read_text(path)
    tokens = scan_markers(text)
    if not any(t.kind in ("template_region_begin", "instance_binding") for t in tokens):
        print("This file does not appear to be a Dreamweaver template or instance.")
        return log_process_completion("cli:show-regions", EXIT_SUCCESS)

    is_instance = any(t.kind == "instance_binding" for t in tokens)
    parsed = build_instance(text, str(path)) if is_instance else build_template(text, str(path))
    if isinstance(parsed, Err):
        print(f"Malformed markers in {path.name}: {parsed.error.message}", file=sys.stderr)
        return log_process_completion("cli:show-regions", EXIT_ERROR)

    doc = parsed.value
    print(f"Editable regions in: {path.name}\n")
    if is_instance:
        print(f"Bound to template: {parsed.value.bound_template_path}\n")
    regions = [seg for seg in doc.segments if isinstance(seg, EditableRegion)]
    if not regions:
        print("No editable regions found.")
    else:
        print(f"Found {len(regions)} editable region(s):\n")
        for idx, region in enumerate(regions, start=1):
            print(f"  {idx}. {region.name} (line {region.span.start.line + 1})")
    return log_process_completion("cli:show-regions", EXIT_SUCCESS)


def cmd_create_page(args: argparse.Namespace, config: SyncConfig) -> int:
    template_path = _template_path(config, args.template)
    if template_path is None:
        return log_process_completion("cli:create-page", EXIT_ERROR)
    if not args.output:
        print("Output path is required. Use --output <path>", file=sys.stderr)
        return log_process_completion("cli:create-page", EXIT_ERROR)

    output = config.resolve(args.output)
    if output.exists() and not args.force:
        print(f"{output} already exists; use --force to overwrite.", file=sys.stderr)
        return log_process_completion("cli:create-page", EXIT_SAFETY_SKIP)

    storage = FileStorage()
    try:
        template = load_template(template_path, storage)
    except TemplateParseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return log_process_completion("cli:create-page", EXIT_ERROR)

    storage.write_text(output, create_page(template, template_ref_for(config, template_path)))
    print(f"Created {args.output} from {template_path.name}")
    return log_process_completion("cli:create-page", EXIT_SUCCESS)


def cmd_restore_backup(args: argparse.Namespace, config: SyncConfig) -> int:
    manager = BackupManager(config.backup_root, config.site_root)
    try:
        manifest = manager.last_manifest()
    except RestoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return log_process_completion("cli:restore-backup", EXIT_ERROR)
    if manifest is None:
        print("No backup information found.")
        print("Backups are created automatically before template updates.")
        return log_process_completion("cli:restore-backup", EXIT_SUCCESS)

    print("\nLast backup information:")
    print(f"  Template: {manifest.template_name}")
    print(f"  Files: {len(manifest.entries)}")
    print(f"  Location: {manifest.backup_dir}")

    if not args.yes:
        interaction = TerminalInteraction()
        if not interaction.ask_yes_no(f"Restore {len(manifest.entries)} file(s) from backup?"):
            print("\nRestore cancelled.")
            return log_process_completion("cli:restore-backup", EXIT_CANCELLED)

    try:
        restored = manager.restore()
    except NoManifestError:
        print("No backup information found.")
        return log_process_completion("cli:restore-backup", EXIT_SUCCESS)
    except PartialRestoreError as exc:
        print(f"\n{exc}", file=sys.stderr)
        return log_process_completion("cli:restore-backup", EXIT_ERROR)
    print(f"\nBackup restored successfully ({restored} file(s)).")
    return log_process_completion("cli:restore-backup", EXIT_SUCCESS)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dwtsync",
        description="Keep Dreamweaver template instances in sync with their template.",
    )
    parser.add_argument(
        "--cwd", default=None,
        help="Site root (folder containing Templates/); default: current directory",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Abort the whole process after this many seconds (exit 124)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("update-all", "Update all files that use the template"),
        ("sync", "Sync a template with its instances"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("template", help="Path to the template file")
        p.add_argument("--instance", "-i", default=None, help="Only update this instance")
        p.add_argument(
            "--auto-apply", "-a", action="store_true", default=None,
            help="Apply changes without prompting",
        )
        p.add_argument(
            "--no-backup", action="store_true",
            help="Skip creating backups before updates (use with caution)",
        )
        p.set_defaults(handler=cmd_update)

    p = sub.add_parser("find-instances", help="List instance files using a template")
    p.add_argument("template")
    p.set_defaults(handler=cmd_find_instances)

    p = sub.add_parser("show-regions", help="Show editable regions in a file")
    p.add_argument("file")
    p.set_defaults(handler=cmd_show_regions)

    p = sub.add_parser("create-page", help="Create a new page from a template")
    p.add_argument("template")
    p.add_argument("--output", "-o", default=None, help="Output path for the new page")
    p.add_argument("--force", action="store_true", help="Overwrite an existing file")
    p.set_defaults(handler=cmd_create_page)

    p = sub.add_parser("restore-backup", help="Restore the last backup")
    p.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(handler=cmd_restore_backup)
    return parser


def _arm_timeout(seconds: float) -> threading.Timer:
    def _expire() -> None:
        print(f"\nOperation timed out after {seconds:g} seconds", file=sys.stderr)
        sys.stderr.flush()
        os._exit(EXIT_TIMEOUT)

    timer = threading.Timer(seconds, _expire)
    timer.daemon = True
    timer.start()
    return timer


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    site_root = Path(args.cwd).resolve() if args.cwd else Path.cwd()
    if not site_root.is_dir():
        print(f"Error: Cannot change to directory {args.cwd}", file=sys.stderr)
        return EXIT_ERROR

    overrides: dict[str, object] = {}
    if getattr(args, "auto_apply", None):
        overrides["auto_apply"] = True
    if getattr(args, "no_backup", False):
        overrides["backups_enabled"] = False
    try:
        config = load_config(site_root, overrides)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    if not config.templates_dir.is_dir():
        print(f"Error: {config.templates_dir_name} directory not found.", file=sys.stderr)
        print("Make sure you are running this from a site root directory,", file=sys.stderr)
        print("or use --cwd to specify the site root path.", file=sys.stderr)
        return EXIT_ERROR

    timer = _arm_timeout(args.timeout) if args.timeout else None
    try:
        return args.handler(args, config)
    except OSError as exc:
        log.error("%s", exc)
        return EXIT_ERROR
    finally:
        if timer is not None:
            timer.cancel()


if __name__ == "__main__":
    sys.exit(main())
