"""CLI - Command line interface for resume sync."""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import DEFAULT_CONFIG_PATH, Settings, Severity, has_errors, load_settings, validate_settings
from .domain.documents import StructuredDocument
from .errors import ResumeSyncError
from .ingestion.pipeline import IngestionPipeline
from .observability import setup_logging
from .providers import get_task_client
from .reconciliation.engine import ReconciliationEngine
from .reconciliation.records import ReconciliationReport
from .reconciliation.store import ProfileStore
from .tailoring import JobTarget, ResumeTailor
from .web.app import build_store

console = Console()

SAMPLE_DOCUMENT: Dict[str, Any] = {
    "contactInfo": {
        "name": "Alex Rivera",
        "email": "alex@example.com",
        "location": "Austin, TX",
        "github": "github.com/arivera",
        "linkedin": "linkedin.com/in/arivera",
    },
    "experience": [
        {
            "company": "Acme Analytics",
            "position": "Senior Software Engineer",
            "startDate": "Mar 2021",
            "endDate": "Present",
            "bullets": ["Led migration of batch pipelines to streaming", "Mentored four engineers"],
        },
        {
            "company": "Brightside Labs",
            "position": "Software Engineer",
            "startDate": "Jun 2018",
            "endDate": "Feb 2021",
            "bullets": ["Built the billing service"],
        },
    ],
    "education": [
        {
            "institution": "University of Texas at Austin",
            "degree": "B.S.",
            "field": "Computer Science",
            "startDate": "2014",
            "endDate": "2018",
        }
    ],
    "skills": {
        "format": "categorized",
        "categories": [
            {"name": "Programming Languages", "skills": ["Python", "TypeScript", "SQL"]},
            {"name": "Spoken Languages", "skills": ["English", "Spanish"]},
            {"name": "Frameworks", "skills": ["FastAPI", "React"]},
            {"name": "Tools", "skills": ["Docker", "PostgreSQL"]},
        ],
    },
    "projects": [
        {
            "name": "Portfolio Site",
            "description": "Personal site and blog",
            "technologies": ["Astro"],
            "url": "https://arivera.dev",
        }
    ],
}


def _print_config_issues(settings: Settings) -> bool:
    """Print validation issues; returns False when startup should stop."""
    issues = validate_settings(settings)
    for issue in issues:
        icon = "x" if issue.severity == Severity.ERROR else "!"
        style = "red" if issue.severity == Severity.ERROR else "yellow"
        console.print(f"  {icon} [{issue.field}] {issue.message}", style=style, markup=False)
    if has_errors(issues):
        console.print(
            "\nFix the errors above, then try again.\n"
            "   Or copy config/config.yaml to config/config.local.yaml and adjust it",
            style="dim",
        )
        return False
    return True


def _print_report(report: ReconciliationReport) -> None:
    table = Table(title="Profile sync", show_header=True, header_style="bold cyan")
    table.add_column("Entity")
    table.add_column("Added", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    for name, counts in (
        ("experience", report.experience),
        ("education", report.education),
        ("skills", report.skills),
        ("projects", report.projects),
    ):
        table.add_row(name, str(counts.added), str(counts.skipped), str(counts.failed))
    console.print(table)
    if report.profile.updated:
        console.print(f"Profile fields updated: {', '.join(report.profile.fields)}", style="green")
    console.print(report.summary(), style="bold")


async def _with_store(settings: Settings, action):
    store: ProfileStore = build_store(settings)
    await store.start()
    try:
        return await action(store)
    finally:
        await store.stop()


async def _ingest(settings: Settings, path: Path, user_id: Optional[str], sync: bool) -> int:
    pipeline = IngestionPipeline(
        get_task_client(settings),
        engine=settings.engine,
        poll_interval=settings.poll_interval_seconds,
        max_wait=settings.structuring_max_wait_seconds,
        allowed_mime_types=settings.allowed_upload_mime_types,
    )
    mime_type, _ = mimetypes.guess_type(path.name)
    result = await pipeline.ingest_file(path.read_bytes(), mime_type, filename=path.name)

    if result.degraded:
        console.print(f"Structuring degraded: {result.reason}", style="yellow", markup=False)
    console.print_json(json.dumps(result.document.to_wire()))

    if sync:
        if not user_id:
            console.print("--user is required with --sync", style="red")
            return 2
        report = await _with_store(settings, lambda store: ReconciliationEngine(store).reconcile(user_id, result.document))
        _print_report(report)
    return 0


async def _sync(settings: Settings, path: Path, user_id: str) -> int:
    document = StructuredDocument.model_validate(json.loads(path.read_text(encoding="utf-8")))
    report = await _with_store(settings, lambda store: ReconciliationEngine(store).reconcile(user_id, document))
    _print_report(report)
    return 0


async def _seed(settings: Settings, user_id: str) -> int:
    document = StructuredDocument.model_validate(SAMPLE_DOCUMENT).assign_ids()
    report = await _with_store(settings, lambda store: ReconciliationEngine(store).reconcile(user_id, document))
    _print_report(report)
    return 0


async def _show(settings: Settings, user_id: str) -> int:
    snapshot = await _with_store(settings, lambda store: store.snapshot(user_id))
    if snapshot.profile is None and not (snapshot.experience or snapshot.education or snapshot.skills or snapshot.projects):
        console.print(f"No profile data for {user_id}", style="yellow")
        return 1

    if snapshot.profile is not None:
        console.print(
            Panel(
                Text("\n".join(
                    f"{key}: {value}"
                    for key, value in vars(snapshot.profile).items()
                    if value and key != "user_id"
                )),
                title=f"Profile {user_id}",
            )
        )
    sections: List[tuple] = [
        ("Experience", [f"{item.position} @ {item.company} ({item.start_date} - {item.end_date or 'present'})" for item in snapshot.experience]),
        ("Education", [f"{item.degree} {item.institution}".strip() for item in snapshot.education]),
        ("Skills", [f"{item.name} [{item.category}]" for item in snapshot.skills]),
        ("Projects", [f"{item.name} {item.url or ''}".strip() for item in snapshot.projects]),
    ]
    for title, lines in sections:
        if lines:
            console.print(Panel(Text("\n".join(lines)), title=f"{title} ({len(lines)})"))
    return 0


async def _tailor(settings: Settings, path: Path, user_id: str) -> int:
    job = JobTarget.model_validate(json.loads(path.read_text(encoding="utf-8")))

    async def _run(store: ProfileStore):
        tailor = ResumeTailor(
            get_task_client(settings),
            store,
            engine=settings.engine,
            poll_interval=settings.poll_interval_seconds,
            max_wait=settings.tailor_max_wait_seconds,
        )
        return await tailor.tailor(user_id, job)

    result = await _with_store(settings, _run)
    console.print_json(json.dumps(result.to_wire()))
    console.print(f"Match score: {result.match_score}", style="bold")
    return 0


async def _delete(settings: Settings, user_id: str) -> int:
    removed = await _with_store(settings, lambda store: store.delete_user(user_id))
    console.print(f"Removed {removed} records for {user_id}", style="green")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="resume-sync", description="Resume ingestion and profile sync")
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Verbose output (INFO logs)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    ingest = subparsers.add_parser("ingest", help="Extract and structure a resume file")
    ingest.add_argument("file", type=Path)
    ingest.add_argument("--user", "-u", help="User id to sync into (with --sync)")
    ingest.add_argument("--sync", action="store_true", help="Merge the result into the user's profile")

    sync = subparsers.add_parser("sync", help="Merge a structured document JSON file into a profile")
    sync.add_argument("file", type=Path)
    sync.add_argument("--user", "-u", required=True)

    tailor = subparsers.add_parser("tailor", help="Tailor a stored profile to a job posting JSON file")
    tailor.add_argument("file", type=Path)
    tailor.add_argument("--user", "-u", required=True)

    for name, help_text in (
        ("show", "Print a user's stored profile"),
        ("seed", "Insert sample profile data for a user"),
        ("delete", "Delete all profile data for a user"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--user", "-u", required=True)

    subparsers.add_parser("check-config", help="Validate configuration and exit")
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    from dotenv import load_dotenv

    # Load environment variables from .env file
    load_dotenv()

    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except FileNotFoundError:
        console.print(f"Config file not found: {args.config}", style="yellow")
        return 2
    settings.verbose = settings.verbose or args.verbose

    if args.command == "check-config":
        ok = _print_config_issues(settings)
        if ok:
            console.print(f"Configuration OK (provider={settings.provider}, store={settings.store})", style="green")
        return 0 if ok else 1

    if not _print_config_issues(settings):
        return 1

    if args.command == "serve":
        import uvicorn

        from .web.app import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port)
        return 0

    try:
        if args.command == "ingest":
            return asyncio.run(_ingest(settings, args.file, args.user, args.sync))
        if args.command == "sync":
            return asyncio.run(_sync(settings, args.file, args.user))
        if args.command == "show":
            return asyncio.run(_show(settings, args.user))
        if args.command == "seed":
            return asyncio.run(_seed(settings, args.user))
        if args.command == "delete":
            return asyncio.run(_delete(settings, args.user))
        if args.command == "tailor":
            return asyncio.run(_tailor(settings, args.file, args.user))
    except ResumeSyncError as exc:
        console.print(f"Error [{exc.code}]: {exc.message}", style="red", markup=False)
        return 1
    return 2


def main() -> None:
    """Main entry point."""
    raise SystemExit(run())


if __name__ == "__main__":
    main()
