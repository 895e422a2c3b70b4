from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cashsouk.schemas.common import FinancingRecordStatus


class InvoiceCreateRequest(BaseModel):
    application_id: UUID
    details: dict[str, Any] = Field(default_factory=dict)


class InvoiceUpdateRequest(BaseModel):
    details: dict[str, Any]


class InvoiceDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    application_id: UUID
    contract_id: UUID | None = None
    status: FinancingRecordStatus
    details: dict[str, Any] = Field(default_factory=dict)
    max_financing_amount: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceDTO]
    total: int
