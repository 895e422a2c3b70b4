from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.api import deps
from cashsouk.api.v1.routers.applications import APPLICATION_ERROR_STATUS, require_issuer
from cashsouk.db.session import get_db
from cashsouk.schemas.invoice import InvoiceCreateRequest, InvoiceDTO, InvoiceListResponse, InvoiceUpdateRequest
from cashsouk.services import applications, invoices

router = APIRouter(prefix="/invoices", tags=["invoices"])

INVOICE_ERROR_STATUS = {"invoice_locked": status.HTTP_409_CONFLICT}


async def _load_application(db: AsyncSession, actor: deps.Actor, application_id: UUID):
    try:
        return await applications.get_application_for_actor(db, actor, application_id)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc


async def _require_invoice(db: AsyncSession, actor: deps.Actor, invoice_id: UUID):
    invoice = await invoices.get_invoice(db, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    application = await _load_application(db, actor, invoice.application_id)
    return application, invoice


@router.get("", response_model=InvoiceListResponse, summary="List an application's invoices")
async def list_invoices(
    application_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load_application(db, actor, application_id)
    rows = await invoices.list_invoices(db, application.id)
    return InvoiceListResponse(invoices=[invoices.invoice_dto(row) for row in rows], total=len(rows))


@router.post("", response_model=InvoiceDTO, status_code=status.HTTP_201_CREATED, summary="Add an invoice")
async def create_invoice(
    payload: InvoiceCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application = await _load_application(db, actor, payload.application_id)
    try:
        invoice = await invoices.create_invoice(db, application, payload.details, actor_id=actor.user_id)
    except invoices.InvoiceError as exc:
        raise deps.service_error(exc, INVOICE_ERROR_STATUS) from exc
    await db.commit()
    return invoices.invoice_dto(invoice)


@router.patch("/{invoice_id}", response_model=InvoiceDTO, summary="Edit a draft invoice")
async def update_invoice(
    invoice_id: UUID,
    payload: InvoiceUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application, invoice = await _require_invoice(db, actor, invoice_id)
    try:
        invoice = await invoices.update_invoice(db, application, invoice, payload.details, actor_id=actor.user_id)
    except invoices.InvoiceError as exc:
        raise deps.service_error(exc, INVOICE_ERROR_STATUS) from exc
    await db.commit()
    return invoices.invoice_dto(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a draft invoice")
async def delete_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    application, invoice = await _require_invoice(db, actor, invoice_id)
    try:
        await invoices.delete_invoice(db, application, invoice, actor_id=actor.user_id)
    except invoices.InvoiceError as exc:
        raise deps.service_error(exc, INVOICE_ERROR_STATUS) from exc
    await db.commit()
