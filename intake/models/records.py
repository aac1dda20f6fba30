"""
Record shapes accepted for bulk ingestion and the tables they land in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductRecord(BaseModel):
    """
    A client-submitted product row.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    brand: Optional[str] = Field(default=None, max_length=128)
    category: Optional[str] = Field(default=None, max_length=128)
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    warranty_months: Optional[int] = Field(default=None, ge=0)


class DatasheetRecord(BaseModel):
    """
    A technical datasheet attached to a product.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    product_code: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    url: Optional[str] = Field(default=None, max_length=1024)
    language: Optional[str] = Field(default=None, max_length=8)
    content: Optional[str] = None


@dataclass(frozen=True)
class StagingTarget:
    """Where a record kind is staged, where it ends up and how it merges."""

    name: str
    staging_table: str
    canonical_table: str
    key_column: str
    record_model: type[BaseModel]
    merge_routine: str

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.record_model.model_fields)


PRODUCTS = StagingTarget(
    name="products",
    staging_table="product_temp",
    canonical_table="product",
    key_column="code",
    record_model=ProductRecord,
    merge_routine="DebbugProductos",
)

DATASHEETS = StagingTarget(
    name="datasheets",
    staging_table="datasheet_temp",
    canonical_table="datasheet",
    key_column="product_code",
    record_model=DatasheetRecord,
    merge_routine="DebbugDatasheets",
)
