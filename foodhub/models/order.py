"""
Order ledger models: orders, their line items and the status history
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from foodhub.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAYMENT_RECEIVED = "payment_received"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


STATUS_VALUES = [s.value for s in OrderStatus]
_STATUS_CHECK = "status IN (%s)" % ", ".join(f"'{s}'" for s in STATUS_VALUES)


class Order(Base):
    """Customer order placed from an anonymous session"""
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_orders_total_amount_positive"),
        CheckConstraint(_STATUS_CHECK, name="ck_orders_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(100), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(30), default=OrderStatus.PENDING.value, nullable=False, index=True)
    tracking_code = Column(String(50), unique=True, index=True, nullable=False)
    customer_note = Column(Text, nullable=False, default="")
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(30), nullable=True)
    payment_reference = Column(String(100), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by=lambda: [OrderStatusHistory.created_at, OrderStatusHistory.id],
    )
    payments = relationship(
        "PaymentRecord",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PaymentRecord.id",
    )

    @property
    def next_statuses(self):
        from foodhub.services.order_state import allowed_targets
        return allowed_targets(self.status)

    def __repr__(self):
        return f"<Order(id={self.id}, tracking_code='{self.tracking_code}', status='{self.status}')>"


class OrderItem(Base):
    """Line item with the unit price frozen at order time"""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price > 0", name="ck_order_items_unit_price_positive"),
        UniqueConstraint("order_id", "food_item_id", name="uq_order_items_order_food"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    food_item_id = Column(Integer, ForeignKey("food_items.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")
    food_item = relationship("FoodItem", lazy="joined")

    @property
    def food_name(self):
        return self.food_item.name if self.food_item is not None else None

    @property
    def subtotal(self):
        return self.unit_price * self.quantity

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, food_item_id={self.food_item_id}, quantity={self.quantity})>"


class OrderStatusHistory(Base):
    """Append-only record of every status an order has held"""
    __tablename__ = "order_status_history"
    __table_args__ = (
        CheckConstraint(_STATUS_CHECK, name="ck_order_status_history_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(30), nullable=False, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="history")

    def __repr__(self):
        return f"<OrderStatusHistory(id={self.id}, order_id={self.order_id}, status='{self.status}')>"


from foodhub.models.payment import PaymentRecord  # noqa: E402,F401 target of Order.payments
