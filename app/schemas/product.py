"""Pydantic schemas for product endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

ProductName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
ProductDescription = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]


class ProductCreate(BaseModel):
    name: ProductName
    description: ProductDescription
    tags: list[str] = []
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class ProductUpdate(BaseModel):
    """Fields a client may change on an existing product. Anything else is ignored."""

    name: ProductName | None = None
    description: ProductDescription | None = None
    tags: list[str] | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    tags: list[str]
    price: float
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TagSuggestionRequest(BaseModel):
    name: str = ""
    description: str = ""


class TagSuggestionResponse(BaseModel):
    suggested_tags: list[str]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
