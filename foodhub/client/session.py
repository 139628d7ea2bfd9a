"""
Customer-side session and cart
Passed explicitly to the API client instead of living in ambient storage
"""

import secrets
import string
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from foodhub.config import TRACKING_CODE_PREFIX

TRACKING_ALPHABET = string.ascii_uppercase + string.digits


def generate_tracking_code(prefix: str = TRACKING_CODE_PREFIX, length: int = 6) -> str:
    """Short human-shareable code such as FPI-7QK2ZD"""
    return prefix + "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))


@dataclass
class CartItem:
    food_item_id: int
    name: str
    price: Decimal
    quantity: int = 1
    image_url: str = ""

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class EmptyCartError(ValueError):
    pass


@dataclass
class Cart:
    """Cart lines keyed by food item; adding an item twice merges quantities"""
    lines: Dict[int, CartItem] = field(default_factory=dict)

    def add(self, food_item: dict, quantity: int = 1) -> CartItem:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        food_item_id = int(food_item["id"])
        line = self.lines.get(food_item_id)
        if line:
            line.quantity += quantity
        else:
            line = CartItem(
                food_item_id=food_item_id,
                name=food_item["name"],
                price=Decimal(str(food_item["price"])),
                quantity=quantity,
                image_url=food_item.get("image_url") or "",
            )
            self.lines[food_item_id] = line
        return line

    def update_quantity(self, food_item_id: int, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line"""
        if food_item_id not in self.lines:
            return
        if quantity <= 0:
            self.remove(food_item_id)
        else:
            self.lines[food_item_id].quantity = quantity

    def remove(self, food_item_id: int) -> None:
        self.lines.pop(food_item_id, None)

    def clear(self) -> None:
        self.lines.clear()

    @property
    def items(self) -> List[CartItem]:
        return list(self.lines.values())

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines.values()), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines.values())

    @property
    def is_empty(self) -> bool:
        return not self.lines


@dataclass
class CustomerSession:
    """Anonymous customer identity plus its cart and placed tracking codes"""
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    cart: Cart = field(default_factory=Cart)
    placed_orders: List[str] = field(default_factory=list)

    @property
    def headers(self) -> dict:
        return {"X-Session-Id": self.session_id}

    def to_order_payload(self, tracking_code: str, customer_note: Optional[str] = None) -> dict:
        """Body for POST /api/v1/orders/"""
        if self.cart.is_empty:
            raise EmptyCartError("Cart is empty")
        return {
            "session_id": self.session_id,
            "total_amount": str(self.cart.total),
            "tracking_code": tracking_code,
            "customer_note": customer_note or "",
            "items": [
                {
                    "food_item_id": line.food_item_id,
                    "quantity": line.quantity,
                    "unit_price": str(line.price),
                }
                for line in self.cart.items
            ],
        }
