from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.api.deps import Actor
from cashsouk.models.application import Application
from cashsouk.models.invoice import Invoice
from cashsouk.models.product import Product
from cashsouk.schemas.application import (
    ApplicationCreateRequest,
    ApplicationDetailResponse,
    ApplicationStatus,
    ApplicationStepUpdateRequest,
    FinancingStructureType,
)
from cashsouk.schemas.common import FinancingRecordStatus
from cashsouk.services import products as products_service
from cashsouk.services.application_reviews import ensure_review_sections
from cashsouk.services.audit import model_snapshot, record_audit_log
from cashsouk.services.contracts import get_contract, transition_financing_records
from cashsouk.workflow.step_catalog import StepKey, parse_step_key, step_key_from_id, step_spec
from cashsouk.workflow.structure_filter import StructureChoice

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = {ApplicationStatus.DRAFT.value, ApplicationStatus.AMENDMENT_REQUESTED.value}

# Transitions an issuer may make; everything else belongs to review.
ISSUER_STATUS_TRANSITIONS = {
    ApplicationStatus.DRAFT.value: ApplicationStatus.SUBMITTED.value,
    ApplicationStatus.AMENDMENT_REQUESTED.value: ApplicationStatus.RESUBMITTED.value,
}


@dataclass(frozen=True)
class ApplicationError(ValueError):
    code: str
    message: str
    details: dict

    def __str__(self) -> str:
        return self.message


def _application_snapshot(application: Application) -> dict:
    return model_snapshot(application, exclude={"created_at", "updated_at"})


def _record_audit_log(
    db: AsyncSession,
    *,
    actor_id: str | None,
    action: str,
    application: Application,
    old_value: dict | None,
) -> None:
    record_audit_log(
        db,
        org_id=application.issuer_organization_id,
        actor_id=actor_id,
        action=action,
        resource_type="application",
        resource_id=str(application.id),
        old_value=old_value,
        new_value=_application_snapshot(application),
    )


def _product_version_mismatch(application: Application, product: Product | None) -> bool:
    if product is None:
        return False
    return int(application.product_version or 0) != int(product.version)


def _ensure_editable(application: Application) -> None:
    if application.status not in EDITABLE_STATUSES:
        raise ApplicationError(
            code="invalid_status",
            message="Only DRAFT or AMENDMENT_REQUESTED applications can be edited",
            details={"status": application.status},
        )


async def get_application(db: AsyncSession, application_id: UUID) -> Application | None:
    result = await db.execute(select(Application).where(Application.id == application_id))
    return result.scalar_one_or_none()


async def get_application_for_actor(db: AsyncSession, actor: Actor, application_id: UUID) -> Application:
    application = await get_application(db, application_id)
    if application is None:
        raise ApplicationError(
            code="application_not_found",
            message="Application not found",
            details={"application_id": str(application_id)},
        )
    if not actor.belongs_to(application.issuer_organization_id):
        raise ApplicationError(
            code="forbidden",
            message="You do not have access to this application",
            details={},
        )
    return application


async def list_applications(
    db: AsyncSession, actor: Actor, *, organization_id: str, page: int = 1, page_size: int = 20
) -> tuple[list[Application], int]:
    if not actor.belongs_to(organization_id):
        raise ApplicationError(code="forbidden", message="You do not have access to this organization", details={})
    conditions = [
        Application.issuer_organization_id == organization_id,
        Application.status != ApplicationStatus.ARCHIVED.value,
    ]
    total = int((await db.execute(select(func.count()).select_from(Application).where(*conditions))).scalar_one())
    stmt = (
        select(Application)
        .where(*conditions)
        .order_by(Application.updated_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def application_detail(db: AsyncSession, application: Application) -> ApplicationDetailResponse:
    """Application plus how its product snapshot compares with the live product."""
    product = None
    if application.product_id is not None:
        product = await products_service.get_product(db, application.product_id, include_deleted=True)
    deleted = product is None or product.deleted_at is not None
    detail = ApplicationDetailResponse.model_validate(application)
    return detail.model_copy(
        update={
            "is_version_mismatch": not deleted and _product_version_mismatch(application, product),
            "latest_product_version": None if deleted else int(product.version),
            "product_deleted": deleted,
        }
    )


async def create_application(
    db: AsyncSession, actor: Actor, payload: ApplicationCreateRequest
) -> Application:
    if not actor.belongs_to(payload.issuer_organization_id):
        raise ApplicationError(code="forbidden", message="You do not have access to this organization", details={})
    product = await products_service.get_product(db, payload.product_id)
    if product is None:
        raise ApplicationError(
            code="product_not_found",
            message="Product not found",
            details={"product_id": str(payload.product_id)},
        )
    application = Application(
        issuer_organization_id=payload.issuer_organization_id,
        product_id=product.id,
        product_version=int(product.version),
        status=ApplicationStatus.DRAFT.value,
        last_completed_step=1,
        financing_type={"product_id": str(product.id)},
        created_by_user_id=actor.user_id,
    )
    db.add(application)
    await db.flush()
    _record_audit_log(db, actor_id=actor.user_id, action="application.created", application=application, old_value=None)
    await db.flush()
    await db.refresh(application)
    return application


def _resolve_step(product: Product, step_id: str) -> StepKey:
    key = (
        parse_step_key((product.step_key_map or {}).get(step_id))
        or step_key_from_id(step_id)
        or parse_step_key(step_id)
    )
    if key is None:
        raise ApplicationError(
            code="invalid_step_id",
            message=f"Invalid step ID: {step_id}",
            details={"step_id": step_id},
        )
    return key


async def _apply_structure(db: AsyncSession, application: Application, data: dict) -> None:
    """Link the application to the contract its financing structure needs."""
    choice = StructureChoice.parse(data)
    if choice is None:
        raise ApplicationError(
            code="invalid_financing_structure",
            message="structure_type must be one of new_contract, existing_contract, invoice_only",
            details={"structure_type": data.get("structure_type")},
        )
    current = await get_contract(db, application.contract_id) if application.contract_id else None

    if choice.structure_type is FinancingStructureType.EXISTING_CONTRACT:
        try:
            contract_id = UUID(choice.existing_contract_id or "")
        except ValueError:
            contract_id = None
        contract = await get_contract(db, contract_id) if contract_id else None
        if (
            contract is None
            or contract.status != FinancingRecordStatus.APPROVED.value
            or contract.issuer_organization_id != application.issuer_organization_id
        ):
            raise ApplicationError(
                code="contract_not_eligible",
                message="Only approved contracts of the same organization can be reused",
                details={"existing_contract_id": choice.existing_contract_id},
            )
        application.contract_id = contract.id
    elif choice.structure_type is FinancingStructureType.INVOICE_ONLY:
        application.contract_id = None
    elif current is not None and current.status == FinancingRecordStatus.APPROVED.value:
        # A reused contract is dropped; the application's own contract is created lazily.
        application.contract_id = None

    await db.execute(
        update(Invoice)
        .where(Invoice.application_id == application.id)
        .values(contract_id=application.contract_id)
        .execution_options(synchronize_session=False)
    )
    application.financing_structure = choice.to_payload()


async def update_step(
    db: AsyncSession,
    application: Application,
    payload: ApplicationStepUpdateRequest,
    *,
    actor_id: str | None,
) -> Application:
    _ensure_editable(application)
    product = None
    if application.product_id is not None:
        product = await products_service.get_product(db, application.product_id)
    if product is None:
        raise ApplicationError(
            code="product_deleted",
            message="The product for this application no longer exists. Please start a new application.",
            details={"product_id": str(application.product_id) if application.product_id else None},
        )
    if _product_version_mismatch(application, product):
        raise ApplicationError(
            code="product_version_changed",
            message="The product has changed. Please start a new application.",
            details={"product_version": product.version, "product_version_snapshot": application.product_version},
        )
    key = _resolve_step(product, payload.step_id)
    spec = step_spec(key)
    old_snapshot = _application_snapshot(application)

    if key is StepKey.FINANCING_STRUCTURE:
        await _apply_structure(db, application, payload.data)
    elif spec.data_column is not None:
        setattr(application, spec.data_column, payload.data)

    if payload.force_rewind_to_step is not None:
        application.last_completed_step = payload.force_rewind_to_step
    elif payload.step_number >= int(application.last_completed_step or 1):
        application.last_completed_step = payload.step_number

    db.add(application)
    _record_audit_log(
        db, actor_id=actor_id, action=f"application.step.{key.value}", application=application, old_value=old_snapshot
    )
    await db.flush()
    await db.refresh(application)
    return application


async def update_status(
    db: AsyncSession,
    application: Application,
    status: ApplicationStatus | str,
    *,
    actor_id: str | None,
) -> Application:
    target = ApplicationStatus(status).value
    if ISSUER_STATUS_TRANSITIONS.get(application.status) != target:
        raise ApplicationError(
            code="invalid_status_transition",
            message=f"Cannot move application from {application.status} to {target}",
            details={"from": application.status, "to": target},
        )
    old_snapshot = _application_snapshot(application)
    application.status = target
    application.submitted_at = datetime.now(timezone.utc)
    await transition_financing_records(
        db,
        application,
        from_statuses=[FinancingRecordStatus.DRAFT],
        to_status=FinancingRecordStatus.SUBMITTED,
    )
    await ensure_review_sections(
        db, application, reset_amendments=target == ApplicationStatus.RESUBMITTED.value
    )
    db.add(application)
    _record_audit_log(
        db, actor_id=actor_id, action=f"application.{target.lower()}", application=application, old_value=old_snapshot
    )
    await db.flush()
    await db.refresh(application)
    logger.info(
        "application submitted",
        extra={"fields": {"application_id": str(application.id), "status": target}},
    )
    return application


async def archive_application(db: AsyncSession, application: Application, *, actor_id: str | None) -> Application:
    if application.status == ApplicationStatus.ARCHIVED.value:
        return application
    _ensure_editable(application)
    old_snapshot = _application_snapshot(application)
    application.status = ApplicationStatus.ARCHIVED.value
    db.add(application)
    _record_audit_log(db, actor_id=actor_id, action="application.archived", application=application, old_value=old_snapshot)
    await db.flush()
    await db.refresh(application)
    return application
