"""
Pydantic schemas for Order operations
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import re

from foodhub.models.order import OrderStatus
from foodhub.models.payment import PaymentMethod, PaymentStatus

TRACKING_CODE_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9-]*$')


class OrderItemCreate(BaseModel):
    """One cart line submitted with a new order"""
    food_item_id: int = Field(..., gt=0, description="Referenced menu item")
    quantity: int = Field(..., gt=0, description="Units ordered")
    unit_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Price per unit at order time")


class OrderCreate(BaseModel):
    """Schema for placing a new order"""
    session_id: str = Field(..., min_length=1, max_length=100, description="Customer session identifier")
    total_amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Order total")
    tracking_code: str = Field(..., min_length=1, max_length=50, description="Client generated tracking code")
    customer_note: Optional[str] = Field(None, max_length=500, description="Free-text note for the kitchen")
    items: List[OrderItemCreate] = Field(..., description="Ordered items")

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Session identifier is required')
        return v

    @field_validator('tracking_code')
    @classmethod
    def validate_tracking_code(cls, v):
        v = v.strip()
        if not TRACKING_CODE_PATTERN.match(v):
            raise ValueError('Tracking code may only contain letters, digits and hyphens')
        return v

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        if not v:
            raise ValueError('Order must contain at least one item')
        return v


class StatusTransitionRequest(BaseModel):
    """Schema for moving an order to its next status"""
    status: OrderStatus = Field(..., description="Target status")
    note: Optional[str] = Field(None, max_length=500, description="Recorded on the history entry")


class PaymentConfirmation(BaseModel):
    note: Optional[str] = Field(None, max_length=500)


class OrderItemResponse(BaseModel):
    id: int
    food_item_id: int
    food_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class StatusHistoryResponse(BaseModel):
    id: int
    status: OrderStatus
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for assembled order responses"""
    id: int
    session_id: str
    total_amount: Decimal
    status: OrderStatus
    tracking_code: str
    customer_note: str
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    history: List[StatusHistoryResponse] = []
    next_statuses: List[OrderStatus] = []

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    """Schema for paginated order list responses"""
    orders: List[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
