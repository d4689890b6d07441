"""
Database Schemas for LuminaMarket

Each Pydantic model describes the documents of one MongoDB collection:
- User -> "users"
- Item -> "items"
- Order -> "orders"

Unknown fields are dropped and values are coerced to the declared types.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class User(BaseModel):
    uid: str = Field(..., min_length=1, description="External identity key")
    email: Optional[str] = Field(None, description="Email address")
    displayName: Optional[str] = Field(None, description="Display name")
    photoURL: Optional[str] = Field(None, description="Avatar URL")
    role: str = Field("user", description="Role of the account")
    phone: Optional[str] = Field(None, description="Phone number")
    address: Optional[str] = Field(None, description="Shipping address")
    lastLogin: Optional[datetime] = Field(None, description="Time of the latest sync")


class UserSync(BaseModel):
    """Body of a user sync. Only the fields actually sent are written."""

    uid: str = Field(..., min_length=1)
    email: Optional[str] = None
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class Item(BaseModel):
    name: str = Field(..., min_length=1, description="Item name")
    description: Optional[str] = Field(None, description="Short description")
    price: float = Field(..., description="Unit price")
    image: Optional[str] = Field(None, description="Image URL")
    category: Optional[str] = Field(None, description="Catalog category")
    stock: Union[int, float] = Field(0, description="Units in stock")
    rating: float = Field(5, description="Average rating")


class OrderLineItem(BaseModel):
    id: Optional[str] = Field(None, description="Item id at purchase time")
    name: Optional[str] = Field(None, description="Snapshot of item name at purchase time")
    price: Optional[float] = Field(None, description="Unit price at purchase time")
    quantity: Optional[Union[int, float]] = Field(None, description="Quantity ordered")
    image: Optional[str] = Field(None, description="Snapshot of item image")


class Order(BaseModel):
    items: List[OrderLineItem] = Field(default_factory=list, description="Line items")
    totalAmount: Optional[float] = Field(None, description="Order total as stated by the client")
    userEmail: Optional[str] = Field(None, description="Email of the buyer")
    status: str = Field("pending", description="pending | paid | shipped")
