#!/usr/bin/env python3
"""
Main entry point for msgintel.

Extracts records from the macOS Messages store and writes them to stdout in
the requested format. Logs go to stderr.
"""
from typing import List, Optional
import argparse
import sqlite3
import sys
import logging

from msgintel.config import get_config
from msgintel.database import SQLiteQueryExecutor
from msgintel.extract.drafts import DraftArtifactReader
from msgintel.extract.pipeline import (
    ATTACHMENTS,
    CONTACTS,
    DRAFTS,
    HIDDEN,
    MESSAGES,
    RECORD_KINDS,
    THREADS,
    ExtractionRequest,
    ExtractionSession,
    date_range_from_strings,
)
from msgintel.extract.renderer import RenderFormat, render
from msgintel.logger_config import setup_logging
from msgintel.permissions import PermissionProbe
from msgintel.utils import Colors
from msgintel.visualization import plot_contact_activity

logger = logging.getLogger("msgintel.cli")

# CLI flag -> record kind
KIND_FLAGS = {
    "messages": MESSAGES,
    "attachments": ATTACHMENTS,
    "contacts": CONTACTS,
    "threads": THREADS,
    "hidden": HIDDEN,
    "drafts": DRAFTS,
}


def _error(message: str) -> None:
    print(f"{Colors.FAIL}Error: {message}{Colors.ENDC}", file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msgintel",
        description="Extract and normalize records from the macOS Messages store (read-only).",
    )

    kinds = parser.add_argument_group("record kinds")
    kinds.add_argument("--messages", action="store_true", help="Messages with text.")
    kinds.add_argument("--attachments", action="store_true", help="Attachments and their messages.")
    kinds.add_argument("--contacts", action="store_true", help="Per-handle activity aggregates.")
    kinds.add_argument("--threads", action="store_true", help="Chats with message counts.")
    kinds.add_argument("--hidden", action="store_true", help="Recently deleted (recoverable) messages.")
    kinds.add_argument("--drafts", action="store_true", help="Unsent drafts from the Drafts directory.")
    kinds.add_argument("--all", action="store_true", help="Every record kind above.")
    kinds.add_argument(
        "--search",
        metavar="TERM",
        default=None,
        help="Messages whose text, guid, handle or caller id contain TERM.",
    )
    kinds.add_argument(
        "--date",
        nargs=2,
        metavar=("START", "END"),
        default=None,
        help="Messages dated between two ISO dates/datetimes (a bare END date is inclusive).",
    )

    parser.add_argument(
        "--output",
        choices=RenderFormat.values(),
        default=RenderFormat.JSON.value,
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to chat.db (defaults to ./chat.db or ~/Library/Messages/chat.db).",
    )
    parser.add_argument(
        "--drafts-dir",
        default=None,
        help="Path to the Drafts directory (default: ~/Library/Messages/Drafts).",
    )
    parser.add_argument(
        "--use-memory",
        action="store_true",
        help="Copy chat.db into RAM (SQLite :memory:) before querying.",
    )
    parser.add_argument(
        "--skip-permission-check",
        action="store_true",
        help="Do not probe chat.db access before extracting.",
    )
    parser.add_argument(
        "--plot-contacts",
        metavar="FILE",
        default=None,
        help="Also write an HTML chart of contact activity to FILE (implies --contacts).",
    )
    parser.add_argument("--log-file", metavar="FILE", default=None, help="Also log to FILE.")
    return parser


def _build_request(args: argparse.Namespace) -> ExtractionRequest:
    """
    Translate parsed flags into an ExtractionRequest.

    Raises:
        ValueError: If --date values are not ISO dates or are out of order.
    """
    if args.all:
        kinds = RECORD_KINDS
    else:
        selected = {kind for flag, kind in KIND_FLAGS.items() if getattr(args, flag)}
        if args.plot_contacts:
            selected.add(CONTACTS)
        kinds = tuple(kind for kind in RECORD_KINDS if kind in selected)

    date_range = date_range_from_strings(*args.date) if args.date else None
    return ExtractionRequest(kinds=kinds, search_term=args.search, date_range=date_range)


def _needs_store(request: ExtractionRequest) -> bool:
    return (
        request.search_term is not None
        or request.date_range is not None
        or any(kind != DRAFTS for kind in request.kinds)
    )


def main(argv: Optional[List[str]] = None):
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    parser = _build_parser()
    args = parser.parse_args(argv)

    setup_logging(log_file=args.log_file)

    try:
        request = _build_request(args)
    except ValueError as e:
        _error(str(e))
        sys.exit(1)

    if request.is_empty:
        parser.print_help()
        sys.exit(0)

    config = get_config(db_path=args.db_path, drafts_path=args.drafts_dir)
    reader = DraftArtifactReader(config.drafts_path)
    fmt = RenderFormat(args.output)

    try:
        if not _needs_store(request):
            session = ExtractionSession(None, reader, store_available=False)
            result = session.run(request)
        else:
            if not config.validate():
                _error("Database file not found or not readable.")
                print("Please ensure chat.db exists in the current directory or at:", file=sys.stderr)
                print(f"  {config.DEFAULT_MESSAGES_PATH / config.DEFAULT_DB_NAME}", file=sys.stderr)
                sys.exit(1)

            if not args.skip_permission_check:
                probe = PermissionProbe(config.db_path)
                if not probe.is_granted():
                    status = probe.status()
                    _error(f"Cannot read {status['path']}: {status['error']}")
                    print(
                        f"Grant Full Disk Access to {status['process']} (pid {status['pid']}) "
                        "in System Settings > Privacy & Security.",
                        file=sys.stderr,
                    )
                    sys.exit(1)

            with SQLiteQueryExecutor(config, use_memory=args.use_memory) as executor:
                session = ExtractionSession(executor, reader, source_db=config.db_path_str)
                result = session.run(request)

        print(render(result, fmt))

        if args.plot_contacts:
            plot_contact_activity(result.sections.get(CONTACTS, []), output_file=args.plot_contacts)

    except (ValueError, OSError, sqlite3.Error) as e:
        _error(str(e))
        logger.exception("Error during extraction")
        sys.exit(1)


if __name__ == '__main__':
    main()
