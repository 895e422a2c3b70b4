from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.api import deps
from cashsouk.core.context import set_application_id
from cashsouk.core.limiter import limiter, upload_rate_limit
from cashsouk.core.permissions import PermissionCode
from cashsouk.db.session import get_db
from cashsouk.schemas.application import (
    ApplicationCreateRequest,
    ApplicationDetailResponse,
    ApplicationDTO,
    ApplicationStatusUpdateRequest,
    ApplicationStepUpdateRequest,
    DocumentDownloadUrlResponse,
    DocumentUploadUrlRequest,
    DocumentUploadUrlResponse,
)
from cashsouk.services import applications
from cashsouk.services.storage import service as storage_service

router = APIRouter(prefix="/applications", tags=["applications"])

require_issuer = deps.require_permission(PermissionCode.APPLICATION_APPLY)

APPLICATION_ERROR_STATUS = {
    "application_not_found": status.HTTP_404_NOT_FOUND,
    "product_not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "invalid_status": status.HTTP_409_CONFLICT,
    "invalid_status_transition": status.HTTP_409_CONFLICT,
    "product_deleted": status.HTTP_409_CONFLICT,
    "product_version_changed": status.HTTP_409_CONFLICT,
}

DOCUMENT_ERROR_STATUS = {"document_not_found": status.HTTP_404_NOT_FOUND}


async def _load(db: AsyncSession, actor: deps.Actor, application_id: UUID):
    set_application_id(str(application_id))
    try:
        return await applications.get_application_for_actor(db, actor, application_id)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc


@router.post(
    "",
    response_model=ApplicationDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start an application on a product",
)
async def create_application(
    payload: ApplicationCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    try:
        application = await applications.create_application(db, actor, payload)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc
    await db.commit()
    return await applications.application_detail(db, application)


@router.get("", summary="List an organization's applications")
async def list_applications(
    organization_id: str = Query(..., min_length=1),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    try:
        rows, total = await applications.list_applications(
            db, actor, organization_id=organization_id, page=page, page_size=page_size
        )
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc
    return {
        "applications": [ApplicationDTO.model_validate(row).model_dump(mode="json") for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/{application_id}", response_model=ApplicationDetailResponse, summary="Get an application")
async def get_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    return await applications.application_detail(db, application)


@router.patch("/{application_id}/step", response_model=ApplicationDetailResponse, summary="Save a step")
async def update_application_step(
    application_id: UUID,
    payload: ApplicationStepUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    try:
        application = await applications.update_step(db, application, payload, actor_id=actor.user_id)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc
    await db.commit()
    return await applications.application_detail(db, application)


@router.patch("/{application_id}/status", response_model=ApplicationDetailResponse, summary="Submit or resubmit")
async def update_application_status(
    application_id: UUID,
    payload: ApplicationStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    try:
        application = await applications.update_status(db, application, payload.status, actor_id=actor.user_id)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc
    await db.commit()
    return await applications.application_detail(db, application)


@router.post("/{application_id}/archive", response_model=ApplicationDetailResponse, summary="Archive an application")
async def archive_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    try:
        application = await applications.archive_application(db, application, actor_id=actor.user_id)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc
    await db.commit()
    return await applications.application_detail(db, application)


@router.post(
    "/{application_id}/documents/upload-url",
    response_model=DocumentUploadUrlResponse,
    summary="Issue an upload URL for a supporting document",
)
@limiter.limit(upload_rate_limit)
async def request_document_upload_url(
    request: Request,
    application_id: UUID,
    payload: DocumentUploadUrlRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    try:
        return storage_service.issue_document_upload(str(application.id), payload)
    except storage_service.StorageError as exc:
        raise deps.service_error(exc) from exc


@router.delete("/{application_id}/documents", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a document")
async def delete_document(
    application_id: UUID,
    key: str = Query(..., min_length=1, max_length=1024),
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    try:
        storage_service.delete_document(str(application.id), key)
    except storage_service.StorageError as exc:
        raise deps.service_error(exc) from exc


@router.get(
    "/{application_id}/documents/download-url",
    response_model=DocumentDownloadUrlResponse,
    summary="Issue a short-lived link to view a document",
)
async def request_document_download_url(
    application_id: UUID,
    key: str = Query(..., min_length=1, max_length=1024),
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load(db, actor, application_id)
    try:
        return storage_service.issue_document_download(str(application.id), key)
    except storage_service.StorageError as exc:
        raise deps.service_error(exc, DOCUMENT_ERROR_STATUS) from exc
