"""Command-line interface for stakesync."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .capture import capture_page_text, capture_slide_text, read_capture_file
from .config import Config, load_config
from .engine import StateEngine
from .errors import StakesyncError
from .impact import ImpactClient, analyze_slide_impact
from .outlook_export import parse_calendar_csv, parse_email_csv, read_csv_file
from .persistence import LocalStateStore, RemoteStateStore
from .pipeline import (
    add_manual_note,
    capture_page,
    capture_slide,
    external_only,
    import_calendar_export,
    import_email_export,
)
from .store import (
    find_by_email,
    resolve_participants,
    stakeholders_by_recency,
    timeline,
    upsert_stakeholder_by_email,
)
from .surface import Flow, Surface, supports, surface_label
from .watcher import watch

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stakesync",
        description="Track stakeholders and interactions across surfaces",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to config YAML (default: ~/.config/stakesync/config.yaml)",
    )
    parser.add_argument(
        "--surface", "-s",
        default=None,
        help="Surface to act as: web, outlook, onenote, powerpoint (overrides config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import-emails", help="Import an Outlook Inbox CSV export")
    p.add_argument("file", type=Path)
    p = sub.add_parser("import-calendar", help="Import an Outlook Calendar CSV export")
    p.add_argument("file", type=Path)

    p = sub.add_parser("capture-page", help="Capture a document page's text")
    p.add_argument("file", type=Path)
    p.add_argument("--title", default=None)
    p.add_argument("--page-id", default=None)

    p = sub.add_parser("capture-slide", help="Capture a slide's text (shapes separated by blank lines)")
    p.add_argument("file", type=Path)
    p.add_argument("--slide-id", default=None)

    p = sub.add_parser("impact", help="Predict stakeholder reactions to a slide")
    p.add_argument("file", type=Path, help="Slide text file")
    p.add_argument("--emails", type=Path, default=None, help="Inbox CSV for context")

    p = sub.add_parser("add", help="Add or update a stakeholder by email")
    p.add_argument("email")
    p.add_argument("--name", default=None)

    p = sub.add_parser("note", help="Add a note to a stakeholder")
    p.add_argument("email")
    p.add_argument("text")

    sub.add_parser("list", help="List stakeholders, most recently touched first")

    p = sub.add_parser("timeline", help="Show a stakeholder's interactions")
    p.add_argument("email")

    p = sub.add_parser("export", help="Export the full state as JSON")
    p.add_argument("file", type=Path, nargs="?", default=None)

    p = sub.add_parser("import", help="Replace the full state with an exported JSON file")
    p.add_argument("file", type=Path)

    sub.add_parser("reset", help="Clear all stakeholders and interactions")
    sub.add_parser("pull", help="Adopt the remote copy if it is newer")
    sub.add_parser("watch", help="Poll the remote copy and watch the local slot until interrupted")

    return parser


def open_engine(config: Config) -> StateEngine:
    """Engine over the configured local slot and (optional) remote copy."""
    remote = None
    if config.remote_enabled:
        remote = RemoteStateStore(config.api_base_url, timeout=config.request_timeout)
    engine = StateEngine(
        LocalStateStore(config.state_dir),
        remote,
        poll_interval=config.poll_interval,
    )
    engine.load()
    engine.pull()
    return engine


def _require(surface: Surface, flow: Flow) -> None:
    if not supports(surface, flow):
        raise StakesyncError(
            f"'{flow.value}' is not available when running in {surface_label(surface)}"
        )


def _report_batch(result, noun: str) -> None:
    print(f"Imported {result.imported} {noun} ({result.skipped} skipped)")
    if result.dropped:
        print(
            f"Note: only the first {result.total - result.dropped} of {result.total} "
            f"records were processed; {result.dropped} were not imported."
        )


def _run(args: argparse.Namespace, config: Config, engine: StateEngine) -> None:
    surface = config.surface
    include = external_only(config.internal_domains)
    cmd = args.command

    if cmd == "import-emails":
        _require(surface, Flow.CSV_IMPORT)
        emails = parse_email_csv(read_csv_file(args.file))
        result = engine.apply(
            import_email_export, emails,
            surface=surface, include=include, limit=config.batch_limit,
        )
        _report_batch(result, "emails")

    elif cmd == "import-calendar":
        _require(surface, Flow.CSV_IMPORT)
        events = parse_calendar_csv(read_csv_file(args.file))
        result = engine.apply(
            import_calendar_export, events,
            surface=surface, include=include, limit=config.batch_limit,
        )
        _report_batch(result, "events")

    elif cmd == "capture-page":
        _require(surface, Flow.PAGE_CAPTURE)
        capture = capture_page_text(
            read_capture_file(args.file),
            title=args.title or args.file.stem,
            page_id=args.page_id,
        )
        engine.apply(capture_page, capture, surface=surface, include=include)
        print(f"Captured '{capture.title}' ({len(capture.extracted_emails)} emails found)")

    elif cmd == "capture-slide":
        _require(surface, Flow.SLIDE_CAPTURE)
        capture = capture_slide_text(
            read_capture_file(args.file).split("\n\n"), slide_id=args.slide_id
        )
        engine.apply(capture_slide, capture, surface=surface)
        print("Slide captured")

    elif cmd == "impact":
        _require(surface, Flow.IMPACT_ANALYSIS)
        if not config.remote_enabled:
            raise StakesyncError("Impact analysis needs 'api_base_url' in the config")
        slide_text = read_capture_file(args.file)
        emails = parse_email_csv(read_csv_file(args.emails)) if args.emails else []
        client = ImpactClient(config.api_base_url, timeout=config.request_timeout)
        try:
            rows = analyze_slide_impact(engine.current, slide_text, client, emails)
        finally:
            client.close()
        if not rows:
            print("No stakeholders impacted")
        for row in rows:
            line = f"[{row.reaction.upper()}] {row.display_name}"
            print(f"{line}: {row.rationale}" if row.rationale else line)

    elif cmd == "add":
        _, stakeholder = engine.apply(upsert_stakeholder_by_email, args.email, args.name)
        print(f"{stakeholder.display_name} <{stakeholder.email or ''}> ({stakeholder.id})")

    elif cmd == "note":
        stakeholder = find_by_email(engine.current, args.email)
        if stakeholder is None:
            raise StakesyncError(f"No stakeholder with email {args.email}")
        if not args.text.strip():
            raise StakesyncError("Note text is empty")
        engine.apply(add_manual_note, stakeholder.id, args.text)
        print(f"Note added to {stakeholder.display_name}")

    elif cmd == "list":
        stakeholders = stakeholders_by_recency(engine.current)
        if not stakeholders:
            print("No stakeholders yet")
        for s in stakeholders:
            touched = (s.last_interaction_at or s.updated_at)[:10]
            print(f"{s.display_name}\t{s.email or ''}\t{touched}")

    elif cmd == "timeline":
        state = engine.current
        stakeholder = find_by_email(state, args.email)
        if stakeholder is None:
            raise StakesyncError(f"No stakeholder with email {args.email}")
        for note in stakeholder.notes:
            print(f"{note.at[:16].replace('T', ' ')}  note      {note.text}")
        for i in timeline(state, stakeholder.id):
            who = ", ".join(resolve_participants(state, i))
            print(f"{i.at[:16].replace('T', ' ')}  {i.type.value:<8}  {i.title}  [{who}]")

    elif cmd == "export":
        text = engine.export_state()
        if args.file:
            args.file.write_text(text + "\n", encoding="utf-8")
            print(f"Exported to {args.file}")
        else:
            print(text)

    elif cmd == "import":
        state = engine.import_state(args.file.read_text(encoding="utf-8"))
        print(
            f"Imported {len(state.stakeholders)} stakeholders and "
            f"{len(state.interactions)} interactions"
        )

    elif cmd == "reset":
        engine.reset()
        print("State cleared")

    elif cmd == "pull":
        if engine.remote is None:
            raise StakesyncError("No 'api_base_url' configured")
        print("Adopted remote state" if engine.pull() else "Local state is up to date")

    elif cmd == "watch":
        watch(engine)


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = load_config(args.config)
        if args.surface:
            config.surface = Surface.parse(args.surface)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1) from None

    engine = open_engine(config)
    try:
        _run(args, config, engine)
    except (StakesyncError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1) from None
    finally:
        engine.close()
