"""CLI entry point for the GEO scan engine."""

import argparse
import asyncio
import json
import logging
import sqlite3
import sys

from src.core import db
from src.core.config import SUPPORTED_LANGUAGES, Settings
from src.core.errors import QueryGenerationError
from src.core.schemas import JobStatus, ProviderSetting, QueryType, ScanJob
from src.pipeline.engine import ScanEngine
from src.pipeline.evaluator import Evaluator
from src.pipeline.query_generator import generate_queries
from src.pipeline.queue import ScanQueue
from src.providers import available_providers, get_provider
from src.providers.gateway import LLMGateway, resolve_credential

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser = argparse.ArgumentParser(
        description="GEO scan engine - track brand visibility in LLM answers",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- add-project ---
    project_parser = subparsers.add_parser(
        "add-project", parents=[common], help="Create a tracked project",
    )
    project_parser.add_argument("--name", required=True, help="Project name")
    project_parser.add_argument("--domain", required=True, help="Brand domain, e.g. acme.com")
    project_parser.add_argument(
        "--brand",
        action="append",
        default=[],
        help="Brand name variation (repeatable)",
    )
    project_parser.add_argument(
        "--keyword",
        action="append",
        default=[],
        help="Target keyword (repeatable)",
    )
    project_parser.add_argument(
        "--language",
        default="en",
        choices=SUPPORTED_LANGUAGES,
        help="Query language (default: en)",
    )

    # --- projects ---
    subparsers.add_parser("projects", parents=[common], help="List tracked projects")

    # --- update-project ---
    update_parser = subparsers.add_parser(
        "update-project", parents=[common], help="Change a project's settings",
    )
    update_parser.add_argument("--project", required=True, help="Project id")
    update_parser.add_argument("--name", help="New project name")
    update_parser.add_argument("--domain", help="New brand domain")
    update_parser.add_argument(
        "--brand",
        action="append",
        help="Brand name variation (repeatable; replaces the current list)",
    )
    update_parser.add_argument(
        "--keyword",
        action="append",
        help="Target keyword (repeatable; replaces the current list)",
    )
    update_parser.add_argument("--language", choices=SUPPORTED_LANGUAGES, help="Query language")

    # --- delete-project ---
    delete_project_parser = subparsers.add_parser(
        "delete-project",
        parents=[common],
        help="Delete a project with its queries and scans",
    )
    delete_project_parser.add_argument("--project", required=True, help="Project id")

    # --- add-query ---
    query_parser = subparsers.add_parser(
        "add-query", parents=[common], help="Add a test query to a project",
    )
    query_parser.add_argument("--project", required=True, help="Project id")
    query_parser.add_argument("--text", required=True, help="Query text")
    query_parser.add_argument(
        "--type",
        default=QueryType.INFORMATIONAL.value,
        choices=[t.value for t in QueryType],
        help="Query intent (default: informational)",
    )

    # --- queries ---
    queries_parser = subparsers.add_parser(
        "queries", parents=[common], help="List a project's queries",
    )
    queries_parser.add_argument("--project", required=True, help="Project id")

    # --- toggle-query ---
    toggle_parser = subparsers.add_parser(
        "toggle-query", parents=[common], help="Include or exclude a query from scans",
    )
    toggle_parser.add_argument("--query", required=True, help="Query id")
    state = toggle_parser.add_mutually_exclusive_group(required=True)
    state.add_argument("--active", dest="active", action="store_true", help="Include in scans")
    state.add_argument("--inactive", dest="active", action="store_false", help="Exclude from scans")

    # --- delete-query ---
    delete_query_parser = subparsers.add_parser(
        "delete-query", parents=[common], help="Delete a query",
    )
    delete_query_parser.add_argument("--query", required=True, help="Query id")

    # --- set-provider ---
    provider_parser = subparsers.add_parser(
        "set-provider", parents=[common], help="Configure an LLM provider",
    )
    provider_parser.add_argument(
        "--provider", required=True, choices=available_providers(), help="Provider id",
    )
    provider_parser.add_argument("--model", help="Model id (default: provider default)")
    provider_parser.add_argument(
        "--api-key",
        default="",
        help="API key (empty falls back to the provider's environment variable)",
    )
    provider_parser.add_argument(
        "--inactive",
        action="store_true",
        help="Store the provider but exclude it from scans",
    )

    # --- generate-queries ---
    generate_parser = subparsers.add_parser(
        "generate-queries",
        parents=[common],
        help="Generate test queries for a project with an LLM",
    )
    generate_parser.add_argument("--project", required=True, help="Project id")
    generate_parser.add_argument(
        "--include-brand",
        action="store_true",
        help="Generate queries that name the brand (sentiment) instead of generic ones",
    )
    generate_parser.add_argument(
        "--save",
        action="store_true",
        help="Store generated queries as active project queries",
    )

    # --- scan ---
    scan_parser = subparsers.add_parser(
        "scan", parents=[common], help="Run scans for one or more projects",
    )
    scan_parser.add_argument(
        "--project",
        action="append",
        required=True,
        help="Project id (repeatable; scans run one at a time)",
    )

    # --- scans ---
    scans_parser = subparsers.add_parser(
        "scans", parents=[common], help="List a project's scans, newest first",
    )
    scans_parser.add_argument("--project", required=True, help="Project id")

    # --- results ---
    results_parser = subparsers.add_parser(
        "results", parents=[common], help="Show results of a scan",
    )
    results_parser.add_argument("--scan", required=True, help="Scan id")
    results_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_add_project(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    brands = args.brand or [args.name]
    project = db.create_project(
        conn,
        name=args.name,
        domain=args.domain,
        brand_variations=brands,
        target_keywords=args.keyword,
        language=args.language,
    )
    print(f"Project created: {project.id}")
    print(f"  Brands: {', '.join(project.brand_variations)}")
    print(f"  Domain: {project.domain}")


def cmd_add_query(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    if db.get_project(conn, args.project) is None:
        msg = f"Project not found: {args.project}"
        raise ValueError(msg)
    query = db.create_query(conn, args.project, args.text, QueryType(args.type))
    print(f"Query added: {query.id} [{query.type.value}] {query.text}")


def cmd_projects(conn: sqlite3.Connection) -> None:
    projects = db.list_projects(conn)
    if not projects:
        print("No projects yet. Create one with add-project.")
        return
    for project in projects:
        print(f"{project.id}  {project.name} ({project.domain}) [{project.language}]")
        print(f"  Brands: {', '.join(project.brand_variations)}")


def cmd_update_project(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    project = db.update_project(
        conn,
        args.project,
        name=args.name,
        domain=args.domain,
        brand_variations=args.brand,
        target_keywords=args.keyword,
        language=args.language,
    )
    print(f"Project updated: {project.id}")
    print(f"  Brands: {', '.join(project.brand_variations)}")
    print(f"  Domain: {project.domain}")


def cmd_delete_project(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    if not db.delete_project(conn, args.project):
        msg = f"Project not found: {args.project}"
        raise ValueError(msg)
    print(f"Project deleted: {args.project}")


def cmd_queries(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    if db.get_project(conn, args.project) is None:
        msg = f"Project not found: {args.project}"
        raise ValueError(msg)
    for query in db.get_project_queries(conn, args.project):
        state = "active" if query.is_active else "inactive"
        print(f"{query.id}  [{query.type.value}, {state}] {query.text}")


def cmd_toggle_query(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    query = db.set_query_active(conn, args.query, args.active)
    state = "active" if query.is_active else "inactive"
    print(f"Query {query.id} is now {state}")


def cmd_delete_query(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    if not db.delete_query(conn, args.query):
        msg = f"Query not found: {args.query}"
        raise ValueError(msg)
    print(f"Query deleted: {args.query}")


def cmd_scans(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    if db.get_project(conn, args.project) is None:
        msg = f"Project not found: {args.project}"
        raise ValueError(msg)
    for scan in db.get_project_scans(conn, args.project):
        score = "-" if scan.overall_score is None else f"{scan.overall_score}/100"
        started = f"{scan.created_at:%Y-%m-%d %H:%M}"
        print(f"{scan.id}  [{scan.status.value}] score={score} started={started}")


def cmd_set_provider(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    model = args.model or get_provider(args.provider).default_model
    setting = ProviderSetting(
        provider=args.provider,
        model=model,
        is_active=not args.inactive,
        api_key=args.api_key,
    )
    db.save_provider_setting(conn, setting)
    state = "inactive" if args.inactive else "active"
    print(f"Provider {args.provider} saved ({model}, {state})")


async def cmd_generate_queries(
    args: argparse.Namespace,
    conn: sqlite3.Connection,
    settings: Settings,
) -> None:
    project = db.get_project(conn, args.project)
    if project is None:
        msg = f"Project not found: {args.project}"
        raise ValueError(msg)

    gen = settings.generation
    setting = db.get_provider_setting(conn, gen.provider) or ProviderSetting(
        provider=gen.provider, model=gen.model
    )
    credential = resolve_credential(setting)
    if not credential:
        msg = f"No API key configured for provider '{gen.provider}'"
        raise ValueError(msg)

    queries = await generate_queries(
        project,
        LLMGateway(),
        gen.provider,
        credential,
        gen.model,
        include_brand=args.include_brand,
        limit=gen.max_queries,
    )
    for query_type, text in queries:
        print(f"  [{query_type.value}] {text}")
        if args.save:
            db.create_query(conn, project.id, text, query_type)

    if args.save:
        print(f"Saved {len(queries)} queries to project {project.id}")


def _print_job(job: ScanJob) -> None:
    line = f"  {job.id} [{job.status.value}] project={job.project_id}"
    if job.scan_id:
        line += f" scan={job.scan_id}"
    if job.error:
        line += f" error={job.error}"
    print(line)


async def cmd_scan(
    args: argparse.Namespace,
    conn: sqlite3.Connection,
    settings: Settings,
) -> int:
    gateway = LLMGateway()
    evaluator = Evaluator(conn, gateway, settings.judge)
    engine = ScanEngine(conn, gateway, evaluator, settings.scan)
    queue = ScanQueue(engine, settings.queue)

    def log_progress(jobs: list[ScanJob]) -> None:
        for job in jobs:
            if job.status is JobStatus.RUNNING:
                p = job.progress
                logger.info("[%d/%d] %s", p.completed, p.total, p.current)

    unsubscribe = queue.subscribe(log_progress)
    for project_id in args.project:
        queue.enqueue(project_id)

    await queue.drain()
    unsubscribe()

    jobs = queue.get_jobs()
    print(f"\n{len(jobs)} scan job(s) finished:")
    for job in jobs:
        _print_job(job)
        if job.scan_id:
            scan = db.get_scan(conn, job.scan_id)
            if scan is not None:
                print(f"    overall score: {scan.overall_score}/100")

    return 0 if all(j.status is JobStatus.COMPLETED for j in jobs) else 1


def cmd_results(args: argparse.Namespace, conn: sqlite3.Connection) -> None:
    scan = db.get_scan(conn, args.scan)
    if scan is None:
        msg = f"Scan not found: {args.scan}"
        raise ValueError(msg)
    results = db.get_scan_results(conn, scan.id)

    if args.export == "json":
        data = {
            "scan": scan.model_dump(mode="json"),
            "results": [r.model_dump(mode="json") for r in results],
        }
        print(json.dumps(data, indent=2))
        return

    print(f"Scan {scan.id} [{scan.status.value}] score={scan.overall_score}")
    for r in results:
        m = r.metrics
        summary = (
            f"visible={m.is_visible} sentiment={m.sentiment_score:+.2f} "
            f"citation={m.citation_found} rank={m.ranking_position} "
            f"strength={m.recommendation_strength:.0f}"
            if m is not None
            else "not evaluated"
        )
        print(f"  {r.provider}: {r.query_text[:60]}")
        print(f"    {summary}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.load(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    conn = db.init_db(settings.database.path)
    exit_code = 0
    try:
        if args.command == "add-project":
            cmd_add_project(args, conn)
        elif args.command == "add-query":
            cmd_add_query(args, conn)
        elif args.command == "projects":
            cmd_projects(conn)
        elif args.command == "update-project":
            cmd_update_project(args, conn)
        elif args.command == "delete-project":
            cmd_delete_project(args, conn)
        elif args.command == "queries":
            cmd_queries(args, conn)
        elif args.command == "toggle-query":
            cmd_toggle_query(args, conn)
        elif args.command == "delete-query":
            cmd_delete_query(args, conn)
        elif args.command == "scans":
            cmd_scans(args, conn)
        elif args.command == "set-provider":
            cmd_set_provider(args, conn)
        elif args.command == "generate-queries":
            asyncio.run(cmd_generate_queries(args, conn, settings))
        elif args.command == "scan":
            exit_code = asyncio.run(cmd_scan(args, conn, settings))
        elif args.command == "results":
            cmd_results(args, conn)
    except (ValueError, LookupError, QueryGenerationError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    finally:
        conn.close()

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
