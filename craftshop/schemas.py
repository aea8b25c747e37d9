"""
Pydantic schemas for the craftshop API.

Record models are deliberately permissive: every known field is optional
and unknown fields pass through untouched.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

# Strict so stored values are exactly what the client sent.
Number = Union[StrictInt, StrictFloat]
RecordId = Union[StrictStr, StrictInt]


class Record(BaseModel):
    model_config = ConfigDict(extra="allow")

    record_id: Optional[RecordId] = Field(default=None, alias="_id")

    def to_document(self) -> dict:
        """Only the fields the client actually sent."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class InventoryItem(Record):
    description: Optional[str] = None
    quantity: Optional[Number] = None
    price: Optional[Number] = None


class Customer(Record):
    name: Optional[str] = None
    contact: Optional[str] = None
    location: Optional[str] = None


class Sale(Record):
    """A sale or a work-in-progress project (status "in-progress" etc.)."""

    description: Optional[str] = None
    customer: Optional[str] = None
    price: Optional[Number] = None
    status: Optional[str] = None
    dueDate: Optional[str] = None


class GalleryItem(Record):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class Idea(Record):
    title: Optional[str] = None
    description: Optional[str] = None


COLLECTION_MODELS: dict[str, type[Record]] = {
    "inventory": InventoryItem,
    "customers": Customer,
    "sales": Sale,
    "gallery": GalleryItem,
    "ideas": Idea,
}


class SuccessResponse(BaseModel):
    success: Literal[True] = True


class UpdateResponse(BaseModel):
    success: bool
    modifiedCount: int


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool
    message: str
    username: Optional[str] = None


class LogoutResponse(BaseModel):
    success: bool
    message: str


class AuthStatusResponse(BaseModel):
    authenticated: bool
    username: Optional[str] = None
    authEnabled: bool = True


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    database: Literal["Connected", "Disconnected"]


class VersionResponse(BaseModel):
    version: str
    timestamp: str
    build: str
    environment: str
