from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.api import deps
from cashsouk.api.v1.routers.applications import DOCUMENT_ERROR_STATUS
from cashsouk.core.context import set_application_id
from cashsouk.core.permissions import PermissionCode
from cashsouk.db.session import get_db
from cashsouk.schemas.application import DocumentDownloadUrlResponse
from cashsouk.schemas.review import (
    ApplicationReviewResponse,
    ItemReviewActionRequest,
    ReviewAction,
    ReviewActionRequest,
    ReviewSection,
)
from cashsouk.services import application_reviews, applications
from cashsouk.services.storage import service as storage_service

router = APIRouter(prefix="/admin/applications/{application_id}/review", tags=["application-review"])

require_reviewer = deps.require_permission(PermissionCode.APPLICATION_REVIEW)

REVIEW_ERROR_STATUS = {
    "application_not_reviewable": status.HTTP_409_CONFLICT,
    "sections_not_approved": status.HTTP_409_CONFLICT,
    "review_item_not_found": status.HTTP_404_NOT_FOUND,
    "note_required": status.HTTP_400_BAD_REQUEST,
}

_ACTIONS = {
    "approve": ReviewAction.APPROVE,
    "reject": ReviewAction.REJECT,
    "request-amendment": ReviewAction.REQUEST_AMENDMENT,
}


def _action(name: str) -> ReviewAction:
    action = _ACTIONS.get(name)
    if action is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown review action")
    return action


async def _load(db: AsyncSession, application_id: UUID):
    set_application_id(str(application_id))
    application = await applications.get_application(db, application_id)
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


@router.get("", response_model=ApplicationReviewResponse, summary="Review state of an application")
async def get_review(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: deps.Actor = Depends(require_reviewer),
):
    application = await _load(db, application_id)
    return await application_reviews.get_review(db, application)


@router.get(
    "/documents/download-url",
    response_model=DocumentDownloadUrlResponse,
    summary="View a supporting document under review",
)
async def document_download_url(
    application_id: UUID,
    key: str = Query(..., min_length=1, max_length=1024),
    db: AsyncSession = Depends(get_db),
    _: deps.Actor = Depends(require_reviewer),
):
    application = await _load(db, application_id)
    try:
        return storage_service.issue_document_download(str(application.id), key)
    except storage_service.StorageError as exc:
        raise deps.service_error(exc, DOCUMENT_ERROR_STATUS) from exc


@router.post(
    "/sections/{section}/{action}",
    response_model=ApplicationReviewResponse,
    summary="Approve, reject or send back one review section",
)
async def review_section(
    application_id: UUID,
    section: ReviewSection,
    action: str,
    payload: ReviewActionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_reviewer),
):
    review_action = _action(action)
    application = await _load(db, application_id)
    try:
        await application_reviews.act_on_section(
            db,
            application,
            section,
            review_action,
            payload.note if payload else None,
            actor_id=actor.user_id,
        )
    except application_reviews.ReviewError as exc:
        raise deps.service_error(exc, REVIEW_ERROR_STATUS) from exc
    await db.commit()
    return await application_reviews.get_review(db, application)


@router.post(
    "/items/{action}",
    response_model=ApplicationReviewResponse,
    summary="Approve, reject or send back one invoice or document",
)
async def review_item(
    application_id: UUID,
    action: str,
    payload: ItemReviewActionRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_reviewer),
):
    review_action = _action(action)
    application = await _load(db, application_id)
    try:
        await application_reviews.act_on_item(
            db,
            application,
            payload.item_type,
            payload.item_id,
            review_action,
            payload.note,
            actor_id=actor.user_id,
        )
    except application_reviews.ReviewError as exc:
        raise deps.service_error(exc, REVIEW_ERROR_STATUS) from exc
    await db.commit()
    return await application_reviews.get_review(db, application)


@router.post(
    "/{action}",
    response_model=ApplicationReviewResponse,
    summary="Approve, reject or send back the whole application",
)
async def review_application(
    application_id: UUID,
    action: str,
    payload: ReviewActionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_reviewer),
):
    review_action = _action(action)
    application = await _load(db, application_id)
    try:
        application = await application_reviews.act_on_application(
            db,
            application,
            review_action,
            payload.note if payload else None,
            actor_id=actor.user_id,
        )
    except application_reviews.ReviewError as exc:
        raise deps.service_error(exc, REVIEW_ERROR_STATUS) from exc
    await db.commit()
    return await application_reviews.get_review(db, application)
