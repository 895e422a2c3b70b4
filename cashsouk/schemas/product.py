from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StepDefinitionSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1, max_length=255)
    name: str = Field(default="", max_length=255)
    config: dict[str, Any] = Field(default_factory=dict)


class ProductCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    workflow: list[StepDefinitionSchema] = Field(min_length=1)


class ProductUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    workflow: list[StepDefinitionSchema] | None = None


class ProductDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    version: int
    workflow: list[dict[str, Any]]
    step_key_map: dict[str, str] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductListResponse(BaseModel):
    products: list[ProductDTO]
    total: int
    page: int
    page_size: int
