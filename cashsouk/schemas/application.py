from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESUBMITTED = "RESUBMITTED"
    AMENDMENT_REQUESTED = "AMENDMENT_REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class FinancingStructureType(str, Enum):
    NEW_CONTRACT = "new_contract"
    EXISTING_CONTRACT = "existing_contract"
    INVOICE_ONLY = "invoice_only"


class ApplicationCreateRequest(BaseModel):
    product_id: UUID
    issuer_organization_id: str = Field(min_length=1, max_length=64)


class ApplicationStepUpdateRequest(BaseModel):
    step_id: str = Field(min_length=1, max_length=255)
    step_number: int = Field(ge=1)
    data: dict[str, Any] = Field(default_factory=dict)
    force_rewind_to_step: int | None = Field(default=None, ge=1)


class ApplicationStatusUpdateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: ApplicationStatus


class ApplicationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    issuer_organization_id: str
    product_id: UUID | None = None
    product_version: int
    status: ApplicationStatus
    last_completed_step: int
    financing_type: dict[str, Any] | None = None
    financing_structure: dict[str, Any] | None = None
    company_details: dict[str, Any] | None = None
    business_details: dict[str, Any] | None = None
    supporting_documents: dict[str, Any] | list[Any] | None = None
    declarations: dict[str, Any] | list[Any] | None = None
    contract_id: UUID | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationDetailResponse(ApplicationDTO):
    is_version_mismatch: bool = False
    latest_product_version: int | None = None
    product_deleted: bool = False


class DocumentUploadUrlRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    content_type: str = Field(min_length=1, max_length=100)
    file_size: int = Field(gt=0)
    existing_key: str | None = Field(default=None, max_length=1024)


class DocumentUploadUrlResponse(BaseModel):
    upload_url: str
    key: str
    method: str = "PUT"
    headers: dict[str, str] = Field(default_factory=dict)
    expires_in: int


class DocumentDownloadUrlResponse(BaseModel):
    download_url: str
    key: str
    expires_in: int
