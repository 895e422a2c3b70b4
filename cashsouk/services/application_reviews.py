from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.core.logging import get_review_logger
from cashsouk.models.application import Application
from cashsouk.models.application_review import (
    ApplicationReview,
    ApplicationReviewEvent,
    ApplicationReviewItem,
    ApplicationReviewNote,
)
from cashsouk.models.invoice import Invoice
from cashsouk.schemas.application import ApplicationStatus
from cashsouk.schemas.common import FinancingRecordStatus
from cashsouk.schemas.review import (
    ApplicationReviewResponse,
    ReviewAction,
    ReviewEventDTO,
    ReviewItemDTO,
    ReviewItemType,
    ReviewNoteDTO,
    ReviewScope,
    ReviewSection,
    ReviewSectionDTO,
    ReviewStatus,
)
from cashsouk.services import review_state
from cashsouk.services.audit import record_audit_log
from cashsouk.services.contracts import transition_financing_records


@dataclass(frozen=True)
class ReviewError(ValueError):
    code: str
    message: str
    details: dict

    def __str__(self) -> str:
        return self.message


def _note_or_error(action: ReviewAction, note: str | None) -> str | None:
    try:
        return review_state.normalize_note(action, note)
    except review_state.ReviewNoteRequired as exc:
        raise ReviewError(
            code="note_required",
            message=str(exc),
            details={"action": action.value},
        ) from exc


def _require_reviewable(application: Application) -> None:
    if not review_state.is_reviewable(application.status):
        raise ReviewError(
            code="application_not_reviewable",
            message="Application is not awaiting review",
            details={"status": application.status},
        )


def _mark_under_review(application: Application) -> None:
    if application.status in {ApplicationStatus.SUBMITTED.value, ApplicationStatus.RESUBMITTED.value}:
        application.status = ApplicationStatus.UNDER_REVIEW.value


async def _section_rows(db: AsyncSession, application_id: UUID) -> list[ApplicationReview]:
    stmt = select(ApplicationReview).where(ApplicationReview.application_id == application_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def ensure_review_sections(
    db: AsyncSession, application: Application, *, reset_amendments: bool = False
) -> None:
    """Create the PENDING section rows an application is reviewed under.

    On resubmission, sections sent back for amendment return to PENDING.
    """
    rows = await _section_rows(db, application.id)
    existing = {row.section: row for row in rows}
    for section in review_state.REVIEW_SECTIONS:
        row = existing.get(section.value)
        if row is None:
            db.add(
                ApplicationReview(
                    application_id=application.id,
                    section=section.value,
                    status=ReviewStatus.PENDING.value,
                )
            )
        elif reset_amendments and row.status == ReviewStatus.AMENDMENT_REQUESTED.value:
            row.status = ReviewStatus.PENDING.value
            db.add(row)


def _append_event(
    db: AsyncSession,
    application: Application,
    *,
    scope: ReviewScope,
    scope_key: str,
    action: ReviewAction,
    old_status: str | None,
    reviewer_id: str | None,
    note: str | None,
) -> ApplicationReviewEvent:
    event = ApplicationReviewEvent(
        application_id=application.id,
        event_type=review_state.event_type(scope, action),
        scope=scope.value,
        scope_key=scope_key,
        old_status=old_status,
        new_status=review_state.ACTION_STATUS[action].value,
        reviewer_user_id=reviewer_id,
        note=note,
    )
    db.add(event)
    if action is ReviewAction.REQUEST_AMENDMENT and note:
        db.add(
            ApplicationReviewNote(
                application_id=application.id,
                scope=scope.value,
                scope_key=scope_key,
                action_type=action.value,
                note=note,
                author_user_id=reviewer_id,
            )
        )
    record_audit_log(
        db,
        org_id=application.issuer_organization_id,
        actor_id=reviewer_id,
        action=f"application_review.{event.event_type.lower()}",
        resource_type="application",
        resource_id=str(application.id),
        old_value={"scope": scope.value, "scope_key": scope_key, "status": old_status},
        new_value={"scope": scope.value, "scope_key": scope_key, "status": event.new_status, "note": note},
    )
    get_review_logger().info(
        "review action",
        extra={"fields": {"event_type": event.event_type, "scope_key": scope_key, "new_status": event.new_status}},
    )
    return event


async def act_on_section(
    db: AsyncSession,
    application: Application,
    section: ReviewSection,
    action: ReviewAction,
    note: str | None = None,
    *,
    actor_id: str | None,
) -> ApplicationReview:
    note = _note_or_error(action, note)
    _require_reviewable(application)
    stmt = select(ApplicationReview).where(
        ApplicationReview.application_id == application.id,
        ApplicationReview.section == section.value,
    )
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        row = ApplicationReview(application_id=application.id, section=section.value)
    old_status = row.status or ReviewStatus.PENDING.value
    row.status = review_state.ACTION_STATUS[action].value
    row.reviewer_user_id = actor_id
    row.reviewed_at = datetime.now(timezone.utc)
    db.add(row)
    _mark_under_review(application)
    db.add(application)
    _append_event(
        db,
        application,
        scope=ReviewScope.SECTION,
        scope_key=section.value,
        action=action,
        old_status=old_status,
        reviewer_id=actor_id,
        note=note,
    )
    await db.flush()
    return row


async def _ensure_item_exists(
    db: AsyncSession, application: Application, item_type: ReviewItemType, item_id: str
) -> None:
    if item_type is ReviewItemType.INVOICE:
        try:
            invoice_id = UUID(item_id)
        except ValueError:
            invoice_id = None
        found = False
        if invoice_id is not None:
            stmt = select(Invoice.id).where(Invoice.application_id == application.id, Invoice.id == invoice_id)
            found = (await db.execute(stmt)).scalar_one_or_none() is not None
    else:
        keys = {key for key, _ in review_state.iter_document_items(application.supporting_documents)}
        found = item_id in keys
    if not found:
        raise ReviewError(
            code="review_item_not_found",
            message="Review item not found on this application",
            details={"item_type": item_type.value, "item_id": item_id},
        )


async def act_on_item(
    db: AsyncSession,
    application: Application,
    item_type: ReviewItemType,
    item_id: str,
    action: ReviewAction,
    note: str | None = None,
    *,
    actor_id: str | None,
) -> ApplicationReviewItem:
    note = _note_or_error(action, note)
    _require_reviewable(application)
    await _ensure_item_exists(db, application, item_type, item_id)
    stmt = select(ApplicationReviewItem).where(
        ApplicationReviewItem.application_id == application.id,
        ApplicationReviewItem.item_type == item_type.value,
        ApplicationReviewItem.item_id == item_id,
    )
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        row = ApplicationReviewItem(application_id=application.id, item_type=item_type.value, item_id=item_id)
    old_status = row.status or ReviewStatus.PENDING.value
    row.status = review_state.ACTION_STATUS[action].value
    row.reviewer_user_id = actor_id
    row.reviewed_at = datetime.now(timezone.utc)
    db.add(row)
    _mark_under_review(application)
    db.add(application)
    _append_event(
        db,
        application,
        scope=ReviewScope.ITEM,
        scope_key=f"{item_type.value}:{item_id}",
        action=action,
        old_status=old_status,
        reviewer_id=actor_id,
        note=note,
    )
    await db.flush()
    return row


async def act_on_application(
    db: AsyncSession,
    application: Application,
    action: ReviewAction,
    note: str | None = None,
    *,
    actor_id: str | None,
) -> Application:
    """Approve, reject or send back the whole application.

    Approval re-reads the section rows; whatever the console showed, every
    section must be APPROVED in the database.
    """
    note = _note_or_error(action, note)
    _require_reviewable(application)
    if action is ReviewAction.APPROVE:
        rows = await _section_rows(db, application.id)
        statuses = review_state.section_statuses((row.section, row.status) for row in rows)
        if not review_state.all_sections_approved(statuses):
            raise ReviewError(
                code="sections_not_approved",
                message="All review sections must be approved before approving the application",
                details={"sections": {section.value: status.value for section, status in statuses.items()}},
            )

    old_status = application.status
    if action is ReviewAction.APPROVE:
        application.status = ApplicationStatus.APPROVED.value
        await transition_financing_records(
            db,
            application,
            from_statuses=[FinancingRecordStatus.DRAFT, FinancingRecordStatus.SUBMITTED],
            to_status=FinancingRecordStatus.APPROVED,
        )
    elif action is ReviewAction.REJECT:
        application.status = ApplicationStatus.REJECTED.value
        await transition_financing_records(
            db,
            application,
            from_statuses=[FinancingRecordStatus.DRAFT, FinancingRecordStatus.SUBMITTED],
            to_status=FinancingRecordStatus.REJECTED,
        )
    else:
        application.status = ApplicationStatus.AMENDMENT_REQUESTED.value
    db.add(application)
    _append_event(
        db,
        application,
        scope=ReviewScope.APPLICATION,
        scope_key=str(application.id),
        action=action,
        old_status=old_status,
        reviewer_id=actor_id,
        note=note,
    )
    await db.flush()
    await db.refresh(application)
    return application


async def get_review(db: AsyncSession, application: Application) -> ApplicationReviewResponse:
    sections = await _section_rows(db, application.id)
    items = (
        await db.execute(
            select(ApplicationReviewItem).where(ApplicationReviewItem.application_id == application.id)
        )
    ).scalars().all()
    events = (
        await db.execute(
            select(ApplicationReviewEvent)
            .where(ApplicationReviewEvent.application_id == application.id)
            .order_by(ApplicationReviewEvent.created_at.asc())
        )
    ).scalars().all()
    notes = (
        await db.execute(
            select(ApplicationReviewNote)
            .where(ApplicationReviewNote.application_id == application.id)
            .order_by(ApplicationReviewNote.created_at.asc())
        )
    ).scalars().all()
    statuses = review_state.section_statuses((row.section, row.status) for row in sections)
    by_section = {row.section: row for row in sections}
    section_dtos = [
        ReviewSectionDTO.model_validate(by_section[section.value])
        if section.value in by_section
        else ReviewSectionDTO(section=section.value, status=ReviewStatus.PENDING.value)
        for section in review_state.REVIEW_SECTIONS
    ]
    return ApplicationReviewResponse(
        application_id=application.id,
        application_status=application.status,
        sections=section_dtos,
        items=[ReviewItemDTO.model_validate(item) for item in items],
        events=[ReviewEventDTO.model_validate(event) for event in events],
        notes=[ReviewNoteDTO.model_validate(note) for note in notes],
        can_approve=review_state.can_approve_application(application.status, statuses),
    )
