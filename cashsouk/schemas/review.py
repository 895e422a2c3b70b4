from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReviewSection(str, Enum):
    FINANCIAL = "FINANCIAL"
    JUSTIFICATION = "JUSTIFICATION"
    DOCUMENTS = "DOCUMENTS"


class ReviewStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    AMENDMENT_REQUESTED = "AMENDMENT_REQUESTED"


class ReviewItemType(str, Enum):
    INVOICE = "INVOICE"
    DOCUMENT = "DOCUMENT"


class ReviewAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_AMENDMENT = "REQUEST_AMENDMENT"


class ReviewScope(str, Enum):
    SECTION = "SECTION"
    ITEM = "ITEM"
    APPLICATION = "APPLICATION"


class ReviewActionRequest(BaseModel):
    note: str | None = Field(default=None, max_length=5000)


class ItemReviewActionRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    item_type: ReviewItemType
    item_id: str = Field(min_length=1, max_length=512)
    note: str | None = Field(default=None, max_length=5000)


class ReviewSectionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    section: str
    status: str
    reviewer_user_id: str | None = None
    reviewed_at: datetime | None = None


class ReviewItemDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_type: str
    item_id: str
    status: str
    reviewer_user_id: str | None = None
    reviewed_at: datetime | None = None


class ReviewEventDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    scope: str
    scope_key: str
    old_status: str | None = None
    new_status: str
    reviewer_user_id: str | None = None
    note: str | None = None
    created_at: datetime | None = None


class ReviewNoteDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scope: str
    scope_key: str
    action_type: str
    note: str
    author_user_id: str | None = None
    created_at: datetime | None = None


class ApplicationReviewResponse(BaseModel):
    application_id: UUID
    application_status: str
    sections: list[ReviewSectionDTO]
    items: list[ReviewItemDTO]
    events: list[ReviewEventDTO]
    notes: list[ReviewNoteDTO]
    can_approve: bool
