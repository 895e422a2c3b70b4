from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from cashsouk.schemas.common import FinancingRecordStatus


class ContractCreateRequest(BaseModel):
    application_id: UUID


class ContractUpdateRequest(BaseModel):
    contract_details: dict[str, Any] | None = None
    customer_details: dict[str, Any] | None = None


class ContractDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    issuer_organization_id: str
    status: FinancingRecordStatus
    contract_details: dict[str, Any] | None = None
    customer_details: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContractListResponse(BaseModel):
    contracts: list[ContractDTO]
    total: int
