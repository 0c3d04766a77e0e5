"""Pydantic schemas for the product catalog and downloads."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProductUpsert(BaseModel):
    """Schema for creating or updating a product by SKU."""

    sku: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    software_type: str = Field("plugin", pattern=r"^(plugin|theme)$")
    tags: list[str] = Field(default_factory=list)
    requires_wp: str | None = Field(None, max_length=20)
    tested_up_to: str | None = Field(None, max_length=20)
    downloadable: bool = True


class ProductFileIn(BaseModel):
    """One release archive in a file set replacement."""

    file_key: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    file_path: str = Field(..., min_length=1)
    enabled: bool = True


class ProductFilesReplace(BaseModel):
    files: list[ProductFileIn]


class ProductFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    file_key: str
    name: str
    file_path: str
    enabled: bool
    position: int


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sku: str
    name: str
    software_type: str
    tags: list[str]
    requires_wp: str | None
    tested_up_to: str | None
    downloadable: bool
    created_at: datetime
    updated_at: datetime
    files: list[ProductFileResponse] = Field(default_factory=list)


class EntitlementGrant(BaseModel):
    """Schema for granting an owner download access to a product."""

    owner_id: str = Field(..., min_length=1, max_length=255)
    order_key: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=1, max_length=255)


class EntitlementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: str
    product_id: UUID
    order_key: str
    email: str
    created_at: datetime


class DownloadVersion(BaseModel):
    version: str
    file_id: str
    name: str
    download_url: str


class DownloadProduct(BaseModel):
    """A purchased product with all downloadable versions."""

    product_id: str
    name: str
    sku: str
    type: str
    requires: str | None
    tested_up_to: str | None
    versions: list[DownloadVersion]
    latest_version: str | None
    latest_stable_version: str | None


class DownloadsResponse(BaseModel):
    products: list[DownloadProduct]
    repository_url: str
