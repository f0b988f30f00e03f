"""
Command-line interface for report version history.

Inspects and maintains the version store configured through the
``REPORT_VERSIONING_*`` environment (or the --backend / --storage-dir /
--db-url overrides).

Usage:
    # Sanitize an HTML file
    report-versioning sanitize pasted.html -o clean.html

    # List the history of a report
    report-versioning list incident-3167

    # Back up and restore a report's history
    report-versioning export incident-3167 -o incident-3167.json
    report-versioning import incident-3167 incident-3167.json

    # Keep only the 10 newest auto-saves
    report-versioning prune incident-3167 --keep 10
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from ..config import Settings, settings
from ..exceptions import ReportVersioningError
from ..history import (
    VersionHistory,
    filter_versions,
    format_version_time_relative,
    get_version_summary,
)
from ..logging_config import setup_logging
from ..sanitization import log_sanitization_event, sanitize_html
from ..storage import create_version_store
from ..storage.version_store import VersionStore

# Log to stderr so that stdout carries only command output
setup_logging(sys.stderr)
logger = structlog.get_logger(__name__)


# ============================================================================
# COMMANDS
# ============================================================================

def _write_output(text: str, output: Optional[str]) -> None:
    if not output:
        print(text)
        return

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    logger.info("output_written", path=str(output_path), size=len(text))


def cmd_sanitize(args: argparse.Namespace, store: Optional[VersionStore]) -> int:
    html = Path(args.file).read_text(encoding="utf-8")
    result = sanitize_html(html)
    log_sanitization_event("cli.sanitize", result)

    _write_output(result.sanitized, args.output)
    print(
        f"Removed {result.removed} violation(s) {dict(sorted(result.removals.items()))}",
        file=sys.stderr,
    )
    return 0


def cmd_list(args: argparse.Namespace, store: VersionStore) -> int:
    versions = VersionHistory(store, args.report_id).list_versions()
    if args.auto or args.manual:
        versions = filter_versions(versions, is_auto_save=bool(args.auto))
    if args.keyword:
        versions = filter_versions(versions, keyword=args.keyword)

    if args.json:
        print(json.dumps([v.to_storage_dict() for v in versions], ensure_ascii=False, indent=2))
        return 0

    if not versions:
        print(f"No versions stored for report {args.report_id}")
        return 0

    for version in versions:
        print(
            f"{version.id}  {get_version_summary(version)}  "
            f"{version.created_by.username}  {format_version_time_relative(version.timestamp)}"
        )
    return 0


def cmd_export(args: argparse.Namespace, store: VersionStore) -> int:
    _write_output(store.export_versions_to_json(args.report_id), args.output)
    return 0


def cmd_import(args: argparse.Namespace, store: VersionStore) -> int:
    payload = Path(args.file).read_text(encoding="utf-8")
    imported = store.import_versions_from_json(args.report_id, payload)
    print(f"Imported {imported} version(s) into report {args.report_id}")
    return 0


def cmd_prune(args: argparse.Namespace, store: VersionStore) -> int:
    deleted = store.prune_old_auto_saves(args.report_id, args.keep)
    print(f"Deleted {deleted} auto-save(s) from report {args.report_id}")
    return 0


def cmd_usage(args: argparse.Namespace, store: VersionStore) -> int:
    usage = store.get_storage_usage(args.report_id)
    print(json.dumps(usage.model_dump(by_alias=True), indent=2))
    return 0


def cmd_diff(args: argparse.Namespace, store: VersionStore) -> int:
    diff = VersionHistory(store, args.report_id).diff(args.from_id, args.to_id)

    markers = {"added": "+", "removed": "-", "unchanged": " "}
    for line in diff.lines:
        print(f"{markers[line.kind]} {line.content}")

    stats = diff.stats
    print(
        f"{stats.additions} addition(s), {stats.deletions} deletion(s), "
        f"{stats.modifications} modification(s)",
        file=sys.stderr,
    )
    return 0


# ============================================================================
# MAIN CLI
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="report-versioning",
        description="Report version history - sanitize, inspect, export and prune",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s sanitize pasted.html
  %(prog)s list incident-3167 --manual
  %(prog)s export incident-3167 -o backup.json
  %(prog)s diff incident-3167 v1760870400000-abc v1760870430000-def
        """,
    )

    parser.add_argument(
        "--backend",
        choices=["memory", "file", "sql"],
        default=None,
        help="Override the storage backend (default: REPORT_VERSIONING_STORAGE_BACKEND)",
    )
    parser.add_argument("--storage-dir", default=None, help="Directory for the file backend")
    parser.add_argument("--db-url", default=None, help="Database URL for the sql backend")

    subparsers = parser.add_subparsers(dest="command", required=True)

    sanitize_parser = subparsers.add_parser("sanitize", help="Sanitize an HTML file")
    sanitize_parser.add_argument("file", help="HTML file to sanitize")
    sanitize_parser.add_argument("--output", "-o", default=None, help="Output file (default: stdout)")

    list_parser = subparsers.add_parser("list", help="List the versions of a report")
    list_parser.add_argument("report_id")
    save_type = list_parser.add_mutually_exclusive_group()
    save_type.add_argument("--auto", action="store_true", help="Only auto-saves")
    save_type.add_argument("--manual", action="store_true", help="Only manual saves")
    list_parser.add_argument("--keyword", "-k", default=None, help="Filter by keyword")
    list_parser.add_argument("--json", action="store_true", help="Print versions as JSON")

    export_parser = subparsers.add_parser("export", help="Export a report's history")
    export_parser.add_argument("report_id")
    export_parser.add_argument("--output", "-o", default=None, help="Output file (default: stdout)")

    import_parser = subparsers.add_parser("import", help="Import an export file into a report")
    import_parser.add_argument("report_id")
    import_parser.add_argument("file", help="Export file to import")

    prune_parser = subparsers.add_parser("prune", help="Delete old auto-saves")
    prune_parser.add_argument("report_id")
    prune_parser.add_argument(
        "--keep",
        type=int,
        default=settings.auto_prune_keep_count,
        help=f"Auto-saves to keep (default: {settings.auto_prune_keep_count})",
    )

    usage_parser = subparsers.add_parser("usage", help="Show storage usage for a report")
    usage_parser.add_argument("report_id")

    diff_parser = subparsers.add_parser("diff", help="Line diff between two versions")
    diff_parser.add_argument("report_id")
    diff_parser.add_argument("from_id", help="Older version id")
    diff_parser.add_argument("to_id", help="Newer version id")

    return parser


COMMANDS = {
    "sanitize": cmd_sanitize,
    "list": cmd_list,
    "export": cmd_export,
    "import": cmd_import,
    "prune": cmd_prune,
    "usage": cmd_usage,
    "diff": cmd_diff,
}


def _configured_settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.backend:
        overrides["storage_backend"] = args.backend
    if args.storage_dir:
        overrides["storage_dir"] = args.storage_dir
    if args.db_url:
        overrides["storage_db_url"] = args.db_url
    return settings.model_copy(update=overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code (0 on success, 1 on error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        store = None
        if args.command != "sanitize":
            store = create_version_store(_configured_settings(args))
        return COMMANDS[args.command](args, store)

    except FileNotFoundError as e:
        print(f"Error: Path not found: {e.filename}", file=sys.stderr)
        return 1
    except ReportVersioningError as e:
        logger.error("cli_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
