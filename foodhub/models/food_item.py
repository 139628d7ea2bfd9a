"""
Food item model for the menu catalog
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Numeric, CheckConstraint
from sqlalchemy.sql import func
from foodhub.database import Base


class FoodCategory(str, enum.Enum):
    RICE = "Rice"
    SNACKS = "Snacks"
    DRINKS = "Drinks"
    SWALLOW = "Swallow"
    PROTEIN = "Protein"
    OTHERS = "Others"


CATEGORY_VALUES = [c.value for c in FoodCategory]


class FoodItem(Base):
    """Menu entry that customers can order"""
    __tablename__ = "food_items"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_food_items_price_positive"),
        CheckConstraint(
            "category IN (%s)" % ", ".join(f"'{c}'" for c in CATEGORY_VALUES),
            name="ck_food_items_category",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(Text, nullable=False, default="")
    category = Column(String(20), nullable=False, default=FoodCategory.OTHERS.value, index=True)
    available = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<FoodItem(id={self.id}, name='{self.name}', price={self.price}, available={self.available})>"
