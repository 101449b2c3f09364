import argparse
from pathlib import Path
from typing import Optional, Tuple

from . import __version__
from .constants import POLICY_ENTITY_NAME, POLICY_SEARCH_FIELDS
from .database import init_database
from .env import SweepSettings, load_env
from .logger import get_logger
from .scanner import missing_field_filter
from .search import SqlSearchService
from .storage import SqlEntityService
from .sweep import BackfillPolicyFieldsStep
from .upgrade import StepResult, UpgradeContext, run_upgrade

logger = get_logger()

SYSTEM_UPDATE_UPGRADE_ID = "SystemUpdate"


def resolve_settings(args: argparse.Namespace) -> SweepSettings:
    """Environment settings with command-line overrides applied."""
    settings = SweepSettings.from_env()
    if getattr(args, "db", None):
        settings.db_path = Path(args.db)
    if getattr(args, "gms_url", None):
        settings.gms_url = args.gms_url
    if getattr(args, "reprocess", False):
        settings.reprocess = True
    if getattr(args, "batch_size", None) is not None:
        if args.batch_size <= 0:
            raise SystemExit("--batch-size must be positive")
        settings.batch_size = args.batch_size
    return settings


def build_services(settings: SweepSettings) -> Tuple[object, object]:
    """Entity and search services for the configured backend."""
    if settings.gms_url:
        from .gms import GmsClient
        client = GmsClient(settings.gms_url, token=settings.gms_token)
        return client, client

    if not settings.db_path.exists():
        raise SystemExit(f"Database not found: {settings.db_path}. Run 'fieldsweep init-db' first.")
    return SqlEntityService(settings.db_path), SqlSearchService(settings.db_path)


def build_step(settings: SweepSettings) -> BackfillPolicyFieldsStep:
    entity_service, search_service = build_services(settings)
    return BackfillPolicyFieldsStep(
        entity_service,
        search_service,
        reprocess_enabled=settings.reprocess,
        batch_size=settings.batch_size,
    )


def cmd_run(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    step = build_step(settings)
    context = UpgradeContext(upgrade_id=SYSTEM_UPDATE_UPGRADE_ID, args={
        "reprocess": settings.reprocess,
        "batchSize": settings.batch_size,
    })

    outcome = run_upgrade([step], context)
    for result in context.step_results:
        details = " ".join(f"{k}={v}" for k, v in result.details.items())
        print(f"[{result.result.value}] {result.step_id} {details}".rstrip())
    if not context.step_results:
        print(f"[SKIPPED] {step.id()}")

    logger.log_metrics_summary()
    return 0 if outcome == StepResult.SUCCEEDED else 1


def cmd_status(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    step = build_step(settings)
    if step.marker.exists(step.id()):
        print(f"{step.id()}: completed")
    else:
        print(f"{step.id()}: pending")
    return 0


def cmd_candidates(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    if settings.gms_url:
        raise SystemExit("Candidate counts are only available for the local database backend")
    _, search_service = build_services(settings)
    count = search_service.count([POLICY_ENTITY_NAME], missing_field_filter(POLICY_SEARCH_FIELDS))
    print(f"{count} {POLICY_ENTITY_NAME} documents missing any of: {', '.join(POLICY_SEARCH_FIELDS)}")
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    init_database(settings.db_path)
    print(f"Initialized {settings.db_path}")
    return 0


def main(argv: Optional[list] = None) -> int:
    # Load .env if present (DATAHUB_GMS_URL, REPROCESS_DEFAULT_POLICY_FIELDS, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="fieldsweep", description="Backfill missing derived search fields")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--log-level", help="Log level (default: FIELDSWEEP_LOG_LEVEL or INFO)")

    def add_backend_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--db", help="Path to SQLite store (default: FIELDSWEEP_DB or data/fieldsweep.db)")
        p.add_argument("--gms-url", help="Use the metadata service at this URL instead of the local store")

    subparsers = parser.add_subparsers(dest="command")
    run = subparsers.add_parser("run", help="Run the policy field backfill")
    add_backend_args(run)
    run.add_argument("--reprocess", action="store_true", help="Ignore a previous completion marker")
    run.add_argument("--batch-size", type=int, help="Scan page size (default: BACKFILL_POLICY_FIELDS_BATCH_SIZE or 5000)")
    run.set_defaults(func=cmd_run)

    st = subparsers.add_parser("status", help="Show whether the backfill has completed")
    add_backend_args(st)
    st.set_defaults(func=cmd_status)

    cand = subparsers.add_parser("candidates", help="Count policy documents still missing fields")
    add_backend_args(cand)
    cand.set_defaults(func=cmd_candidates)

    init = subparsers.add_parser("init-db", help="Create the local SQLite store")
    init.add_argument("--db", help="Path to SQLite store (default: FIELDSWEEP_DB or data/fieldsweep.db)")
    init.set_defaults(func=cmd_init_db)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    try:
        logger.set_level(args.log_level or SweepSettings.from_env().log_level)
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    if hasattr(args, "func"):
        try:
            return args.func(args)
        except ValueError as e:
            raise SystemExit(f"Invalid configuration: {e}")

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
