"""Reconcile one organization's DMS diary into customers, vehicles and inspections."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.integrations.dms import (
    Booking,
    CredentialProvider,
    DiaryFetcher,
    DmsCredentials,
)
from app.models import ImportBatchStatus, ImportType
from app.schemas.dms_import import ImportOptions, ImportResult
from app.services.best_effort import best_effort
from app.services.customer_matcher import find_or_create_customer
from app.services.dms_defaults_service import (
    DefaultResolver,
    resolve_site_id,
    resolve_template_id,
)
from app.services.dms_errors import (
    BookingValidationError,
    ConfigurationError,
    DuplicateBookingError,
    ExternalServiceError,
    StorageError,
)
from app.services.dms_fields import clean, is_terminal_booking_status
from app.services.import_batch_service import (
    create_batch,
    finalize_batch,
    increment_usage,
    record_last_import,
)
from app.services.inspection_service import create_inspection, inspection_exists
from app.services.vehicle_matcher import find_or_create_vehicle

logger = logging.getLogger(__name__)

SYSTEM_ERROR_KEY = "system"


async def fetch_diary(
    fetcher: DiaryFetcher,
    credentials: DmsCredentials,
    start: date,
    end: date | None,
    *,
    timeout: float,
) -> list[Booking]:
    """Fetch diary bookings, raising ``ExternalServiceError`` on any failure."""
    try:
        response = await asyncio.wait_for(
            fetcher.fetch_bookings(credentials, start, end_date=end), timeout
        )
    except TimeoutError as exc:
        raise ExternalServiceError(
            f"Failed to fetch bookings from DMS: timed out after {timeout}s"
        ) from exc
    except Exception as exc:
        raise ExternalServiceError(f"Failed to fetch bookings from DMS: {exc}") from exc
    if not response.success:
        raise ExternalServiceError(response.error or "Failed to fetch bookings from DMS")
    return list(response.bookings)


@dataclass(slots=True, frozen=True)
class _RunContext:
    organization_id: uuid.UUID
    batch_id: uuid.UUID
    site_id: uuid.UUID
    template_id: uuid.UUID
    external_source: str
    wanted: frozenset[str] | None


@dataclass(slots=True, frozen=True)
class _Created:
    customer: bool
    vehicle: bool


class DmsImporter:
    """Runs a booking reconciliation for one organization and date range.

    Collaborators are injected so the run can be driven by fakes in tests
    and by the settings-backed implementations in production. ``run`` never
    raises; every outcome is reported through the returned ``ImportResult``.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        credential_provider: CredentialProvider,
        diary_fetcher: DiaryFetcher,
        template_resolver: DefaultResolver = resolve_template_id,
        site_resolver: DefaultResolver = resolve_site_id,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._credentials = credential_provider
        self._fetcher = diary_fetcher
        self._resolve_template = template_resolver
        self._resolve_site = site_resolver
        self._settings = settings or get_settings()

    async def run(self, options: ImportOptions) -> ImportResult:
        result = ImportResult()
        log_context = {
            "organization_id": str(options.organization_id),
            "date": options.target_date.isoformat(),
            "import_type": options.import_type.value,
        }
        logger.info("Starting DMS import %s", log_context)

        try:
            batch_id = await create_batch(self._session, options)
        except SQLAlchemyError:
            logger.exception("Failed to create import record %s", log_context)
            await self._session.rollback()
            result.add_error(SYSTEM_ERROR_KEY, "Failed to create import record")
            return result
        result.import_id = batch_id

        site_id: uuid.UUID | None = None
        try:
            credentials = await self._load_credentials(options.organization_id)
            template_id = await self._resolve_template(
                self._session, options.organization_id
            )
            if template_id is None:
                raise ConfigurationError("No active template found for organization")
            site_id = options.site_id or await self._resolve_site(
                self._session, options.organization_id
            )
            if site_id is None:
                raise ConfigurationError("No site found for organization")

            bookings = await self._fetch(credentials, options.target_date, options.end_date)
            result.bookings_found = len(bookings)
            logger.info(
                "Fetched %s bookings import=%s", result.bookings_found, batch_id
            )

            context = _RunContext(
                organization_id=options.organization_id,
                batch_id=batch_id,
                site_id=site_id,
                template_id=template_id,
                external_source=self._settings.dms_external_source,
                wanted=frozenset(options.booking_ids) if options.booking_ids else None,
            )
            for booking in bookings:
                await self._import_booking(booking, context, result)
        except Exception as exc:
            logger.exception("DMS import failed %s", log_context)
            await self._session.rollback()
            message = str(exc) or exc.__class__.__name__
            result.add_error(SYSTEM_ERROR_KEY, message)
            await self._finish(
                options, batch_id, ImportBatchStatus.FAILED, result, site_id, message
            )
            return result

        status = (
            ImportBatchStatus.PARTIAL
            if result.bookings_failed > 0
            else ImportBatchStatus.COMPLETED
        )
        result.success = True
        first_error = result.errors[0].error if result.errors else None
        await self._finish(options, batch_id, status, result, site_id, first_error)
        logger.info(
            "DMS import %s %s found=%s imported=%s skipped=%s failed=%s",
            status.value,
            log_context,
            result.bookings_found,
            result.bookings_imported,
            result.bookings_skipped,
            result.bookings_failed,
        )
        return result

    async def _load_credentials(self, organization_id: uuid.UUID) -> DmsCredentials:
        answer = await self._credentials.get_credentials(organization_id)
        if not answer.configured or answer.credentials is None:
            raise ConfigurationError(answer.error or "DMS credentials not configured")
        return answer.credentials

    async def _fetch(
        self, credentials: DmsCredentials, start: date, end: date | None
    ) -> list[Booking]:
        return await fetch_diary(
            self._fetcher,
            credentials,
            start,
            end,
            timeout=self._settings.dms_fetch_timeout_seconds,
        )

    async def _import_booking(
        self, booking: Booking, context: _RunContext, result: ImportResult
    ) -> None:
        booking_id = clean(booking.booking_id) or ""
        if context.wanted is not None and booking_id not in context.wanted:
            result.bookings_skipped += 1
            return
        if is_terminal_booking_status(booking.status):
            logger.debug("Skipping booking %s with status %s", booking_id, booking.status)
            result.bookings_skipped += 1
            return

        try:
            if not booking_id:
                raise BookingValidationError("Booking id is required")
            if await inspection_exists(
                self._session,
                organization_id=context.organization_id,
                external_source=context.external_source,
                external_id=booking_id,
            ):
                result.bookings_skipped += 1
                return
            created = await self._reconcile(booking, context)
            await self._session.commit()
        except DuplicateBookingError as exc:
            await self._session.rollback()
            if await self._already_imported(booking_id, context):
                logger.info("Booking %s imported concurrently, skipping", booking_id)
                result.bookings_skipped += 1
                return
            cause = StorageError(
                f"Failed to create health check: {exc.__cause__ or exc}"
            )
            self._record_failure(result, booking_id, cause)
            return
        except Exception as exc:
            await self._session.rollback()
            self._record_failure(result, booking_id, exc)
            return

        result.bookings_imported += 1
        result.health_checks_created += 1
        if created.customer:
            result.customers_created += 1
        if created.vehicle:
            result.vehicles_created += 1

    async def _reconcile(self, booking: Booking, context: _RunContext) -> _Created:
        customer = await find_or_create_customer(
            self._session,
            organization_id=context.organization_id,
            booking=booking,
            external_source=context.external_source,
        )
        vehicle = await find_or_create_vehicle(
            self._session,
            organization_id=context.organization_id,
            customer_id=customer.customer_id,
            booking=booking,
            external_source=context.external_source,
        )
        await create_inspection(
            self._session,
            organization_id=context.organization_id,
            site_id=context.site_id,
            customer_id=customer.customer_id,
            vehicle_id=vehicle.vehicle_id,
            booking=booking,
            template_id=context.template_id,
            import_batch_id=context.batch_id,
            external_source=context.external_source,
        )
        return _Created(customer=customer.created, vehicle=vehicle.created)

    async def _already_imported(self, booking_id: str, context: _RunContext) -> bool:
        try:
            return await inspection_exists(
                self._session,
                organization_id=context.organization_id,
                external_source=context.external_source,
                external_id=booking_id,
            )
        except SQLAlchemyError:
            logger.warning(
                "Could not re-check booking %s after conflict", booking_id, exc_info=True
            )
            await self._session.rollback()
            return False

    @staticmethod
    def _record_failure(
        result: ImportResult, booking_id: str, exc: Exception
    ) -> None:
        logger.warning("Failed to import booking %s: %s", booking_id, exc)
        result.bookings_failed += 1
        result.add_error(booking_id or "unknown", str(exc) or exc.__class__.__name__)

    async def _finish(
        self,
        options: ImportOptions,
        batch_id: uuid.UUID,
        status: ImportBatchStatus,
        result: ImportResult,
        site_id: uuid.UUID | None,
        last_error: str | None,
    ) -> None:
        """Persist the outcome. Failures here are logged and never raised."""
        try:
            await finalize_batch(
                self._session, batch_id, status=status, result=result, site_id=site_id
            )
        except SQLAlchemyError:
            logger.exception("Failed to finalize import batch %s", batch_id)
            await self._session.rollback()

        organization_id = options.organization_id

        async def _bookkeeping() -> None:
            await record_last_import(
                self._session, organization_id, status=status, error=last_error
            )

        await best_effort(
            self._session,
            "last import bookkeeping",
            _bookkeeping,
            organization_id=str(organization_id),
        )
        if status is not ImportBatchStatus.FAILED:
            await increment_usage(
                self._session,
                organization_id,
                bookings_imported=result.bookings_imported,
            )
        try:
            await self._session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to commit import bookkeeping %s", batch_id)
            await self._session.rollback()


async def run_dms_import(
    session: AsyncSession,
    *,
    credential_provider: CredentialProvider,
    diary_fetcher: DiaryFetcher,
    organization_id: uuid.UUID,
    target_date: date,
    import_type: ImportType,
    end_date: date | None = None,
    site_id: uuid.UUID | None = None,
    triggered_by: str | None = None,
    booking_ids: list[str] | None = None,
) -> ImportResult:
    """Convenience entry point wiring the default resolvers."""
    importer = DmsImporter(
        session,
        credential_provider=credential_provider,
        diary_fetcher=diary_fetcher,
    )
    return await importer.run(
        ImportOptions(
            organization_id=organization_id,
            site_id=site_id,
            target_date=target_date,
            end_date=end_date,
            import_type=import_type,
            triggered_by=triggered_by,
            booking_ids=booking_ids,
        )
    )


__all__ = ["DmsImporter", "SYSTEM_ERROR_KEY", "fetch_diary", "run_dms_import"]
