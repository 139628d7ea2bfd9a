"""
Pydantic schemas for payment records and bank transfer details
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
import re

from foodhub.models.payment import PaymentMethod, PaymentStatus


class BankDetailCreate(BaseModel):
    bank_name: str = Field(..., min_length=1, max_length=100)
    account_number: str = Field(..., min_length=6, max_length=20)
    account_name: str = Field(..., min_length=1, max_length=100)

    @field_validator('account_number')
    @classmethod
    def validate_account_number(cls, v):
        if not re.match(r'^\d+$', v):
            raise ValueError('Account number must contain digits only')
        return v

    @field_validator('bank_name', 'account_name')
    @classmethod
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Value is required')
        return v


class BankDetailUpdate(BaseModel):
    is_active: bool


class BankDetailResponse(BaseModel):
    id: int
    bank_name: str
    account_number: str
    account_name: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
    """Payment reference submitted by the customer after paying"""
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Amount paid")
    payment_method: PaymentMethod = Field(PaymentMethod.BANK_TRANSFER, description="How the order was paid")
    reference: str = Field(..., min_length=1, max_length=100, description="Transfer or receipt reference")

    @field_validator('reference')
    @classmethod
    def validate_reference(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Payment reference is required')
        return v


class PaymentRecordResponse(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    status: PaymentStatus
    payment_method: PaymentMethod
    reference: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
