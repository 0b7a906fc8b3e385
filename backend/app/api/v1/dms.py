"""DMS import endpoints: trigger, preview, status, history and unactioned bookings."""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.security import Principal
from app.integrations.dms import CredentialProvider, DiaryFetcher
from app.models import ImportType
from app.schemas.dms_import import (
    DmsImportRequest,
    ImportBatchDetail,
    ImportHistoryPage,
    ImportOptions,
    ImportPreview,
    ImportResult,
    ImportStatusResponse,
    UnactionedPage,
)
from app.services import dms_preview_service, import_batch_service, inspection_service
from app.services.dms_errors import ConfigurationError, ExternalServiceError
from app.services.dms_import_service import DmsImporter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/import", response_model=ImportResult, summary="Run a DMS import")
async def trigger_import(
    payload: DmsImportRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[Principal, Depends(deps.get_current_principal)],
    credential_provider: Annotated[
        CredentialProvider, Depends(deps.get_credential_provider)
    ],
    diary_fetcher: Annotated[DiaryFetcher, Depends(deps.get_diary_fetcher)],
) -> ImportResult:
    organization_id = principal.organization_id
    import_date = payload.import_date or datetime.now(UTC).date()

    available = await credential_provider.get_credentials(organization_id)
    if not available.configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="DMS integration not configured",
        )

    if not payload.skip_limit_check:
        usage = await import_batch_service.check_daily_limit(
            session, organization_id, import_date
        )
        if usage.reached:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Daily import limit reached",
                    "daily_limit": usage.limit,
                    "imports_today": usage.imported_today,
                    "message": (
                        f"You have reached the daily import limit of {usage.limit} "
                        "health checks."
                    ),
                },
            )

    try:
        options = ImportOptions(
            organization_id=organization_id,
            site_id=payload.site_id,
            target_date=import_date,
            end_date=payload.end_date,
            import_type=ImportType.MANUAL,
            triggered_by=principal.user_id,
            booking_ids=payload.booking_ids,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc

    importer = DmsImporter(
        session,
        credential_provider=credential_provider,
        diary_fetcher=diary_fetcher,
    )
    return await importer.run(options)


@router.get(
    "/preview",
    response_model=ImportPreview,
    summary="Preview what an import would create",
)
async def preview(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[Principal, Depends(deps.get_current_principal)],
    credential_provider: Annotated[
        CredentialProvider, Depends(deps.get_credential_provider)
    ],
    diary_fetcher: Annotated[DiaryFetcher, Depends(deps.get_diary_fetcher)],
    import_date: Annotated[dt.date | None, Query(alias="date")] = None,
    end_date: dt.date | None = None,
) -> ImportPreview:
    target_date = import_date or datetime.now(UTC).date()
    if end_date is not None and end_date < target_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before date",
        )
    try:
        return await dms_preview_service.preview_import(
            session,
            principal.organization_id,
            credential_provider=credential_provider,
            diary_fetcher=diary_fetcher,
            target_date=target_date,
            end_date=end_date,
        )
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    except ExternalServiceError as exc:
        logger.warning("DMS preview fetch failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc


@router.get(
    "/import/status",
    response_model=ImportStatusResponse,
    summary="Latest import for the organization",
)
async def import_status(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[Principal, Depends(deps.get_current_principal)],
) -> ImportStatusResponse:
    batch = await import_batch_service.get_latest_batch(
        session, principal.organization_id
    )
    if batch is None:
        return ImportStatusResponse(has_history=False)
    return ImportStatusResponse(
        has_history=True, latest_import=import_batch_service.read_batch(batch)
    )


@router.get(
    "/import/history", response_model=ImportHistoryPage, summary="Import history"
)
async def import_history(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[Principal, Depends(deps.get_current_principal)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> ImportHistoryPage:
    batches, pagination = await import_batch_service.list_batches(
        session, principal.organization_id, page=page, limit=limit
    )
    return ImportHistoryPage(
        history=[import_batch_service.summarize_batch(batch) for batch in batches],
        pagination=pagination,
    )


@router.get(
    "/import/{import_id}",
    response_model=ImportBatchDetail,
    response_model_by_alias=True,
    summary="Import details",
)
async def import_detail(
    import_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[Principal, Depends(deps.get_current_principal)],
) -> ImportBatchDetail:
    batch = await import_batch_service.get_batch(
        session, principal.organization_id, import_id
    )
    if batch is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Import not found"
        )
    inspections = await import_batch_service.list_batch_inspections(session, batch.id)
    return ImportBatchDetail(
        batch=import_batch_service.read_batch(batch), health_checks=inspections
    )


@router.get(
    "/unactioned",
    response_model=UnactionedPage,
    summary="Imported health checks awaiting arrival",
)
async def unactioned(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[Principal, Depends(deps.get_current_principal)],
    site_id: uuid.UUID | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> UnactionedPage:
    items, total = await inspection_service.list_unactioned(
        session,
        principal.organization_id,
        site_id=site_id,
        page=page,
        limit=limit,
    )
    return UnactionedPage(
        health_checks=items,
        pagination=import_batch_service.paginate(page=page, limit=limit, total=total),
    )
