"""
Pydantic schemas for menu (food item) operations
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from foodhub.models.food_item import FoodCategory


class FoodItemBase(BaseModel):
    """Base food item schema"""
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    description: str = Field("", max_length=500, description="Short description")
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Unit price")
    category: FoodCategory = Field(FoodCategory.OTHERS, description="Menu category")
    image_url: str = Field("", max_length=1000, description="Optional image URL")
    available: bool = Field(True, description="Whether customers can order it")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v

    @field_validator('description', 'image_url')
    @classmethod
    def strip_text(cls, v):
        return v.strip()


class FoodItemCreate(FoodItemBase):
    """Schema for creating a menu item"""
    pass


class FoodItemUpdate(BaseModel):
    """Schema for partially updating a menu item"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    category: Optional[FoodCategory] = None
    image_url: Optional[str] = Field(None, max_length=1000)
    available: Optional[bool] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v


class AvailabilityUpdate(BaseModel):
    available: bool


class FoodItemResponse(FoodItemBase):
    """Schema for food item responses"""
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
