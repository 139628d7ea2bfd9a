"""
Payment records submitted against orders
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from foodhub.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"
    CARD_PAYMENT = "card_payment"


PAYMENT_STATUS_VALUES = [s.value for s in PaymentStatus]
PAYMENT_METHOD_VALUES = [m.value for m in PaymentMethod]


def _in_check(column: str, values: list) -> str:
    return "%s IN (%s)" % (column, ", ".join(f"'{v}'" for v in values))


class PaymentRecord(Base):
    """A customer's claim of payment; the reference is unique across all orders"""
    __tablename__ = "payment_history"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_history_amount_positive"),
        CheckConstraint(_in_check("status", PAYMENT_STATUS_VALUES), name="ck_payment_history_status"),
        CheckConstraint(_in_check("payment_method", PAYMENT_METHOD_VALUES), name="ck_payment_history_method"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PROCESSING.value)
    payment_method = Column(String(30), nullable=False)
    reference = Column(String(100), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="payments")

    def __repr__(self):
        return f"<PaymentRecord(id={self.id}, order_id={self.order_id}, reference='{self.reference}', status='{self.status}')>"
