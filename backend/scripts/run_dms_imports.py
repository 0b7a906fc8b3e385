"""Run DMS booking imports from the command line or a cron job."""

# ruff: noqa: E402  # allow path/bootstrap tweaks before app imports

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import sys
import uuid
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from app.core.config import get_settings
from app.db.session import dispose_engine, get_sessionmaker
from app.integrations.dms import load_diary_fetcher
from app.models import ImportType
from app.schemas.dms_import import ImportResult
from app.security.logging_filters import install_sensitive_filter
from app.services.dms_credential_service import SettingsCredentialProvider
from app.services.dms_import_service import run_dms_import
from app.services.dms_schedule_service import run_due_imports

LOGGER = logging.getLogger("dms_import")


def configure_logging(log_path: Path | None) -> None:
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        handler.setFormatter(formatter)
        root.addHandler(handler)
    install_sensitive_filter("")


def parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import DMS bookings")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--scheduled",
        action="store_true",
        help="Run every organization whose import schedule is due now",
    )
    mode.add_argument(
        "--organization-id", type=uuid.UUID, help="Import a single organization"
    )
    parser.add_argument("--date", type=parse_date, default=None, help="Target date")
    parser.add_argument("--end-date", type=parse_date, default=None, help="End of range")
    parser.add_argument(
        "--booking-id",
        dest="booking_ids",
        action="append",
        default=None,
        help="Only import this booking (repeatable)",
    )
    parser.add_argument(
        "--import-type",
        choices=[ImportType.MANUAL.value, ImportType.TEST.value],
        default=ImportType.MANUAL.value,
    )
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def log_result(organization_id: uuid.UUID, result: ImportResult) -> None:
    LOGGER.info(
        "%s: success=%s found=%s imported=%s skipped=%s failed=%s",
        organization_id,
        result.success,
        result.bookings_found,
        result.bookings_imported,
        result.bookings_skipped,
        result.bookings_failed,
    )
    for entry in result.errors[:10]:
        LOGGER.info("    %s: %s", entry.booking_id, entry.error)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if not settings.dms_diary_fetcher:
        LOGGER.error("DMS_DIARY_FETCHER is not set")
        return 3
    diary_fetcher = load_diary_fetcher(settings.dms_diary_fetcher, settings)
    session_factory = get_sessionmaker()

    try:
        if args.scheduled:
            results = await run_due_imports(session_factory, diary_fetcher=diary_fetcher)
            if not results:
                LOGGER.info("No scheduled imports due")
            for organization_id, result in results.items():
                log_result(organization_id, result)
            return 0 if all(result.success for result in results.values()) else 1

        async with session_factory() as session:
            result = await run_dms_import(
                session,
                credential_provider=SettingsCredentialProvider(session),
                diary_fetcher=diary_fetcher,
                organization_id=args.organization_id,
                target_date=args.date,
                end_date=args.end_date,
                import_type=ImportType(args.import_type),
                triggered_by="cli",
                booking_ids=args.booking_ids,
            )
        log_result(args.organization_id, result)
        return 0 if result.success else 1
    finally:
        await dispose_engine()


def check_arguments(
    parser: argparse.ArgumentParser, args: argparse.Namespace, today: dt.date
) -> argparse.Namespace:
    """Reject incompatible options and fill in the target date."""
    if args.scheduled:
        if args.date or args.end_date or args.booking_ids:
            parser.error(
                "--scheduled cannot be combined with --date, --end-date or --booking-id"
            )
        return args
    args.date = args.date or today
    if args.end_date and args.end_date < args.date:
        parser.error(f"--end-date must not be before {args.date.isoformat()}")
    return args


def main() -> None:
    parser = build_parser()
    args = check_arguments(parser, parser.parse_args(), dt.datetime.now(dt.UTC).date())
    configure_logging(args.log_file)
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
