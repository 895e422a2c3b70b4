from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.api import deps
from cashsouk.api.v1.routers.applications import APPLICATION_ERROR_STATUS, require_issuer
from cashsouk.db.session import get_db
from cashsouk.schemas.contract import (
    ContractCreateRequest,
    ContractDTO,
    ContractListResponse,
    ContractUpdateRequest,
)
from cashsouk.services import applications, contracts

router = APIRouter(prefix="/contracts", tags=["contracts"])


async def _require_contract(db: AsyncSession, actor: deps.Actor, contract_id: UUID):
    contract = await contracts.get_contract(db, contract_id)
    if contract is None or not actor.belongs_to(contract.issuer_organization_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
    return contract


@router.get("/approved", response_model=ContractListResponse, summary="Approved contracts available for reuse")
async def list_approved_contracts(
    organization_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    if not actor.belongs_to(organization_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this organization")
    rows = await contracts.list_approved_contracts(db, organization_id)
    return ContractListResponse(contracts=[ContractDTO.model_validate(row) for row in rows], total=len(rows))


@router.get("/{contract_id}", response_model=ContractDTO, summary="Get a contract")
async def get_contract(
    contract_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    return await _require_contract(db, actor, contract_id)


@router.post(
    "",
    response_model=ContractDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create the application's contract if it has none",
)
async def create_contract(
    payload: ContractCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    try:
        application = await applications.get_application_for_actor(db, actor, payload.application_id)
    except applications.ApplicationError as exc:
        raise deps.service_error(exc, APPLICATION_ERROR_STATUS) from exc
    contract = await contracts.create_contract_for_application(db, application, actor_id=actor.user_id)
    await db.commit()
    return contract


@router.patch("/{contract_id}", response_model=ContractDTO, summary="Save contract and customer details")
async def update_contract(
    contract_id: UUID,
    payload: ContractUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(require_issuer),
):
    contract = await _require_contract(db, actor, contract_id)
    try:
        contract = await contracts.update_contract(db, contract, payload, actor_id=actor.user_id)
    except contracts.ContractError as exc:
        raise deps.service_error(exc, {"contract_locked": status.HTTP_409_CONFLICT}) from exc
    await db.commit()
    return contract
