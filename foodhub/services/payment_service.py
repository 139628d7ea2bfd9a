"""
Payment service: recording customer payment references against orders
An admin confirms the money arrived with the confirm-payment transition
"""

from sqlalchemy.orm import Session
from typing import List
import logging

from foodhub.auth.auth_handler import Actor
from foodhub.auth.policy import can_read_order
from foodhub.models.order import Order, OrderStatus
from foodhub.models.payment import PaymentRecord, PaymentMethod, PaymentStatus
from foodhub.services.event_bus import OrderEventBus, event_bus, UPDATE
from foodhub.services.order_service import parse_amount, publish_order_event
from foodhub.utils.error_handler import (
    atomic, storage_guard, OrderValidationError, DuplicatePaymentReferenceError, NotFoundError
)

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for payment records"""

    def __init__(self, db: Session, bus: OrderEventBus = event_bus):
        self.db = db
        self.bus = bus

    async def record_payment(
        self,
        order_id: int,
        amount,
        payment_method,
        reference: str,
        actor: Actor,
    ) -> PaymentRecord:
        """
        Attach a payment reference to an order and mark the order's payment as processing.

        Raises OrderValidationError for a non-positive amount, an unknown
        method or a cancelled order, and DuplicatePaymentReferenceError when
        the reference was already used on any order.
        """
        amount = parse_amount(amount, "payment amount")
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise OrderValidationError(f"Unknown payment method '{payment_method}'")
        reference = (reference or "").strip()
        if not reference:
            raise OrderValidationError("payment reference is required")

        with atomic(self.db):
            order = (
                self.db.query(Order)
                .filter(Order.id == order_id)
                .with_for_update()
                .first()
            )
            if not order or not can_read_order(actor, order):
                raise NotFoundError("Order not found")
            if order.status == OrderStatus.CANCELLED.value:
                raise OrderValidationError("Cannot record a payment for a cancelled order")
            if self.db.query(PaymentRecord.id).filter(PaymentRecord.reference == reference).first():
                raise DuplicatePaymentReferenceError("Duplicate payment reference")

            payment = PaymentRecord(
                order_id=order.id,
                amount=amount,
                status=PaymentStatus.PROCESSING.value,
                payment_method=method.value,
                reference=reference,
            )
            self.db.add(payment)
            order.payment_status = PaymentStatus.PROCESSING.value
            order.payment_method = method.value
            order.payment_reference = reference

        self.db.refresh(payment)
        self.db.refresh(order)
        logger.info(f"Recorded {method.value} payment {reference} of {amount} for order {order.tracking_code} by {actor.label}")
        await publish_order_event(self.bus, UPDATE, order, old_status=order.status)
        return payment

    async def list_payments(self, order_id: int, actor: Actor) -> List[PaymentRecord]:
        with storage_guard(self.db):
            order = self.db.query(Order).filter(Order.id == order_id).first()
            if not order or not can_read_order(actor, order):
                raise NotFoundError("Order not found")
            return (
                self.db.query(PaymentRecord)
                .filter(PaymentRecord.order_id == order.id)
                .order_by(PaymentRecord.id.asc())
                .all()
            )
