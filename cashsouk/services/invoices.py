from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.models.application import Application
from cashsouk.models.invoice import Invoice
from cashsouk.schemas.application import FinancingStructureType
from cashsouk.schemas.common import FinancingRecordStatus
from cashsouk.schemas.invoice import InvoiceDTO
from cashsouk.services.audit import model_snapshot, record_audit_log
from cashsouk.services.contracts import get_contract

MAX_FINANCING_RATIO = Decimal("0.8")
TWOPLACES = Decimal("0.01")


@dataclass(frozen=True)
class InvoiceError(ValueError):
    code: str
    message: str
    details: dict

    def __str__(self) -> str:
        return self.message


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def invoice_value(details: dict | None) -> Decimal:
    return _decimal((details or {}).get("value")) or Decimal("0")


def max_financing_amount(details: dict | None) -> Decimal | None:
    value = _decimal((details or {}).get("value"))
    if value is None:
        return None
    return (value * MAX_FINANCING_RATIO).quantize(TWOPLACES)


def invoice_dto(invoice: Invoice) -> InvoiceDTO:
    dto = InvoiceDTO.model_validate(invoice)
    return dto.model_copy(update={"max_financing_amount": max_financing_amount(invoice.details)})


def _invoice_snapshot(invoice: Invoice) -> dict:
    return model_snapshot(invoice, exclude={"created_at", "updated_at"})


def _target_contract_id(application: Application) -> UUID | None:
    structure = (application.financing_structure or {}).get("structure_type")
    if structure == FinancingStructureType.INVOICE_ONLY.value:
        return None
    return application.contract_id


async def get_invoice(db: AsyncSession, invoice_id: UUID) -> Invoice | None:
    result = await db.execute(select(Invoice).where(Invoice.id == invoice_id))
    return result.scalar_one_or_none()


async def list_invoices(db: AsyncSession, application_id: UUID) -> list[Invoice]:
    stmt = (
        select(Invoice)
        .where(Invoice.application_id == application_id)
        .order_by(Invoice.created_at.asc(), Invoice.id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _check_facility(
    db: AsyncSession, contract_id: UUID | None, details: dict, *, exclude_invoice_id: UUID | None = None
) -> None:
    """Invoices on a contract may not exceed its available facility."""
    if contract_id is None:
        return
    contract = await get_contract(db, contract_id)
    available = _decimal((contract.contract_details or {}).get("available_facility")) if contract else None
    if available is None:
        return
    stmt = select(Invoice).where(Invoice.contract_id == contract_id)
    if exclude_invoice_id is not None:
        stmt = stmt.where(Invoice.id != exclude_invoice_id)
    linked = (await db.execute(stmt)).scalars().all()
    total = sum((invoice_value(invoice.details) for invoice in linked), Decimal("0")) + invoice_value(details)
    if total > available:
        raise InvoiceError(
            code="facility_limit_exceeded",
            message="Invoice total exceeds the contract's available facility",
            details={"available_facility": str(available), "requested_total": str(total)},
        )


def _ensure_editable(invoice: Invoice) -> None:
    if invoice.status != FinancingRecordStatus.DRAFT.value:
        raise InvoiceError(
            code="invoice_locked",
            message="Only DRAFT invoices can be changed",
            details={"status": invoice.status},
        )


async def create_invoice(
    db: AsyncSession, application: Application, details: dict, *, actor_id: str | None
) -> Invoice:
    contract_id = _target_contract_id(application)
    await _check_facility(db, contract_id, details)
    invoice = Invoice(
        application_id=application.id,
        contract_id=contract_id,
        status=FinancingRecordStatus.DRAFT.value,
        details=details,
    )
    db.add(invoice)
    await db.flush()
    record_audit_log(
        db,
        org_id=application.issuer_organization_id,
        actor_id=actor_id,
        action="invoice.created",
        resource_type="invoice",
        resource_id=str(invoice.id),
        new_value=_invoice_snapshot(invoice),
    )
    await db.flush()
    await db.refresh(invoice)
    return invoice


async def update_invoice(
    db: AsyncSession, application: Application, invoice: Invoice, details: dict, *, actor_id: str | None
) -> Invoice:
    _ensure_editable(invoice)
    old_snapshot = _invoice_snapshot(invoice)
    contract_id = _target_contract_id(application)
    await _check_facility(db, contract_id, details, exclude_invoice_id=invoice.id)
    invoice.details = details
    invoice.contract_id = contract_id
    db.add(invoice)
    record_audit_log(
        db,
        org_id=application.issuer_organization_id,
        actor_id=actor_id,
        action="invoice.updated",
        resource_type="invoice",
        resource_id=str(invoice.id),
        old_value=old_snapshot,
        new_value=_invoice_snapshot(invoice),
    )
    await db.flush()
    await db.refresh(invoice)
    return invoice


async def delete_invoice(
    db: AsyncSession, application: Application, invoice: Invoice, *, actor_id: str | None
) -> None:
    _ensure_editable(invoice)
    record_audit_log(
        db,
        org_id=application.issuer_organization_id,
        actor_id=actor_id,
        action="invoice.deleted",
        resource_type="invoice",
        resource_id=str(invoice.id),
        old_value=_invoice_snapshot(invoice),
    )
    await db.delete(invoice)
    await db.flush()
