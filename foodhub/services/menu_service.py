"""
Menu service for the food catalog
Reads are public for available items; every write requires an admin
"""

from sqlalchemy.orm import Session
from decimal import Decimal
from typing import List, Optional
import logging

from foodhub.auth.auth_handler import Actor
from foodhub.auth.policy import require_admin
from foodhub.models.food_item import FoodItem, FoodCategory
from foodhub.models.order import OrderItem
from foodhub.schemas.food_item import FoodItemCreate, FoodItemUpdate
from foodhub.utils.error_handler import atomic, storage_guard, NotFoundError, ResourceInUseError

logger = logging.getLogger(__name__)

SAMPLE_MENU = [
    ("Jollof Rice", "Classic Nigerian jollof rice with tomato sauce and spices", "1500.00", FoodCategory.RICE),
    ("Fried Rice", "Chinese-style fried rice with mixed vegetables", "1500.00", FoodCategory.RICE),
    ("Chicken Wings", "Crispy fried chicken wings with special sauce", "2000.00", FoodCategory.PROTEIN),
    ("Beef Stew", "Rich and spicy beef stew with vegetables", "1800.00", FoodCategory.PROTEIN),
    ("Pounded Yam", "Smooth pounded yam served with soup", "1200.00", FoodCategory.SWALLOW),
    ("Eba", "Garri-based swallow served with soup", "800.00", FoodCategory.SWALLOW),
    ("Coca Cola", "Refreshing carbonated drink", "200.00", FoodCategory.DRINKS),
    ("Water", "Pure bottled water", "100.00", FoodCategory.DRINKS),
    ("Chin Chin", "Crispy fried snack", "500.00", FoodCategory.SNACKS),
    ("Meat Pie", "Flaky pastry filled with spiced minced meat", "300.00", FoodCategory.SNACKS),
]


def seed_menu(db: Session) -> int:
    """Insert the sample menu when the catalog is empty; returns rows added"""
    if db.query(FoodItem.id).first():
        return 0
    with atomic(db):
        for name, description, price, category in SAMPLE_MENU:
            db.add(FoodItem(name=name, description=description, price=Decimal(price), category=category.value))
    logger.info(f"Seeded menu with {len(SAMPLE_MENU)} items")
    return len(SAMPLE_MENU)


class MenuService:
    """Service for food catalog operations"""

    def __init__(self, db: Session):
        self.db = db

    async def list_menu(
        self,
        actor: Actor,
        category: Optional[FoodCategory] = None,
        include_unavailable: bool = False,
    ) -> List[FoodItem]:
        if include_unavailable:
            require_admin(actor, "view unavailable menu items")
        with storage_guard(self.db):
            query = self.db.query(FoodItem)
            if not include_unavailable:
                query = query.filter(FoodItem.available.is_(True))
            if category:
                query = query.filter(FoodItem.category == FoodCategory(category).value)
            return query.order_by(FoodItem.category, FoodItem.name).all()

    async def get_food_item(self, item_id: int, actor: Actor) -> FoodItem:
        with storage_guard(self.db):
            item = self.db.query(FoodItem).filter(FoodItem.id == item_id).first()
        if not item or (not item.available and not actor.is_admin):
            raise NotFoundError("Food item not found")
        return item

    async def create_food_item(self, item_data: FoodItemCreate, actor: Actor) -> FoodItem:
        require_admin(actor, "add menu items")
        item = FoodItem(
            name=item_data.name,
            description=item_data.description,
            price=item_data.price,
            category=item_data.category.value,
            image_url=item_data.image_url,
            available=item_data.available,
        )
        with atomic(self.db):
            self.db.add(item)
        self.db.refresh(item)
        logger.info(f"Created menu item {item.name} (id={item.id}) by {actor.label}")
        return item

    async def update_food_item(self, item_id: int, item_data: FoodItemUpdate, actor: Actor) -> FoodItem:
        require_admin(actor, "edit menu items")
        item = await self.get_food_item(item_id, actor)

        update_data = item_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is None:
                continue
            if field == "category":
                value = FoodCategory(value).value
            elif isinstance(value, str):
                value = value.strip()
            setattr(item, field, value)

        with atomic(self.db):
            self.db.add(item)
        self.db.refresh(item)
        logger.info(f"Updated menu item {item.id} fields {sorted(update_data)} by {actor.label}")
        return item

    async def set_availability(self, item_id: int, available: bool, actor: Actor) -> FoodItem:
        require_admin(actor, "change availability")
        item = await self.get_food_item(item_id, actor)
        with atomic(self.db):
            item.available = available
        self.db.refresh(item)
        logger.info(f"Menu item {item.id} availability set to {available} by {actor.label}")
        return item

    async def delete_food_item(self, item_id: int, actor: Actor) -> None:
        """Delete an item that no order references; referenced items must be marked unavailable instead"""
        require_admin(actor, "delete menu items")
        item = await self.get_food_item(item_id, actor)
        with atomic(self.db):
            in_use = self.db.query(OrderItem.id).filter(OrderItem.food_item_id == item.id).first()
            if in_use:
                raise ResourceInUseError(
                    "Food item appears in existing orders; mark it unavailable instead"
                )
            self.db.delete(item)
        logger.info(f"Deleted menu item {item_id} by {actor.label}")
