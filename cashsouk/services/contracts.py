from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.models.application import Application
from cashsouk.models.contract import Contract
from cashsouk.models.invoice import Invoice
from cashsouk.schemas.common import FinancingRecordStatus
from cashsouk.schemas.contract import ContractUpdateRequest
from cashsouk.services.audit import model_snapshot, record_audit_log

LOCKED_CONTRACT_STATUSES = {FinancingRecordStatus.APPROVED.value, FinancingRecordStatus.REJECTED.value}


@dataclass(frozen=True)
class ContractError(ValueError):
    code: str
    message: str
    details: dict

    def __str__(self) -> str:
        return self.message


def _contract_snapshot(contract: Contract) -> dict:
    return model_snapshot(contract, exclude={"created_at", "updated_at"})


async def get_contract(db: AsyncSession, contract_id: UUID) -> Contract | None:
    result = await db.execute(select(Contract).where(Contract.id == contract_id))
    return result.scalar_one_or_none()


async def list_approved_contracts(db: AsyncSession, org_id: str) -> list[Contract]:
    stmt = (
        select(Contract)
        .where(
            Contract.issuer_organization_id == org_id,
            Contract.status == FinancingRecordStatus.APPROVED.value,
        )
        .order_by(Contract.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_contract_for_application(
    db: AsyncSession, application: Application, *, actor_id: str | None
) -> Contract:
    """Return the application's contract, creating a draft on first need."""
    if application.contract_id is not None:
        existing = await get_contract(db, application.contract_id)
        if existing is not None:
            return existing

    contract = Contract(
        issuer_organization_id=application.issuer_organization_id,
        status=FinancingRecordStatus.DRAFT.value,
        contract_details={},
        customer_details={},
    )
    db.add(contract)
    await db.flush()
    application.contract_id = contract.id
    db.add(application)
    record_audit_log(
        db,
        org_id=application.issuer_organization_id,
        actor_id=actor_id,
        action="contract.created",
        resource_type="contract",
        resource_id=str(contract.id),
        new_value=_contract_snapshot(contract),
    )
    await db.flush()
    await db.refresh(contract)
    return contract


async def update_contract(
    db: AsyncSession, contract: Contract, payload: ContractUpdateRequest, *, actor_id: str | None
) -> Contract:
    if contract.status in LOCKED_CONTRACT_STATUSES:
        raise ContractError(
            code="contract_locked",
            message="Approved or rejected contracts cannot be edited",
            details={"status": contract.status},
        )
    old_snapshot = _contract_snapshot(contract)
    if payload.contract_details is not None:
        contract.contract_details = payload.contract_details
    if payload.customer_details is not None:
        contract.customer_details = payload.customer_details
    db.add(contract)
    record_audit_log(
        db,
        org_id=contract.issuer_organization_id,
        actor_id=actor_id,
        action="contract.updated",
        resource_type="contract",
        resource_id=str(contract.id),
        old_value=old_snapshot,
        new_value=_contract_snapshot(contract),
    )
    await db.flush()
    await db.refresh(contract)
    return contract


async def transition_financing_records(
    db: AsyncSession,
    application: Application,
    *,
    from_statuses: Iterable[FinancingRecordStatus],
    to_status: FinancingRecordStatus,
) -> None:
    """Move the application's invoices and own contract between statuses.

    A reused contract is already APPROVED and never in ``from_statuses``.
    """
    sources = [status.value for status in from_statuses]
    await db.execute(
        update(Invoice)
        .where(Invoice.application_id == application.id, Invoice.status.in_(sources))
        .values(status=to_status.value)
        .execution_options(synchronize_session=False)
    )
    if application.contract_id is None:
        return
    contract = await get_contract(db, application.contract_id)
    if contract is not None and contract.status in sources:
        contract.status = to_status.value
        db.add(contract)
