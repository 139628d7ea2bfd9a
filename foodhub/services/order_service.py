"""
Order service: the order creation transaction, status transitions and ledger reads
All writes to orders, order items and status history go through this module
"""

from sqlalchemy.orm import Session, selectinload
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Tuple
import logging
import math

from foodhub.auth.auth_handler import Actor
from foodhub.auth.policy import require_admin, can_read_order
from foodhub.config import VERIFY_ORDER_TOTAL
from foodhub.models.food_item import FoodItem
from foodhub.models.order import Order, OrderItem, OrderStatus, OrderStatusHistory
from foodhub.models.payment import PaymentStatus
from foodhub.schemas.order import OrderResponse
from foodhub.services import order_state
from foodhub.services.event_bus import OrderEventBus, OrderEvent, event_bus, INSERT, UPDATE
from foodhub.utils.error_handler import (
    atomic, storage_guard, OrderValidationError, DuplicateTrackingCodeError,
    ReferentialIntegrityError, NotFoundError
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def parse_amount(value, label: str) -> Decimal:
    """Money value rounded to cents; anything that is not positive after rounding is rejected"""
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise OrderValidationError(f"invalid {label}")
    if amount <= 0:
        raise OrderValidationError(f"invalid {label}")
    return amount


async def publish_order_event(bus: OrderEventBus, event_type: str, order: Order, old_status: Optional[str] = None) -> None:
    """Publish the committed order state to the change feed"""
    snapshot = OrderResponse.model_validate(order).model_dump(mode="json")
    delivered = await bus.publish(OrderEvent(event_type=event_type, order=snapshot, old_status=old_status))
    logger.debug(f"Published {event_type} for order {order.tracking_code} to {delivered} subscriber(s)")


def _normalize_line(line) -> Tuple[int, int, Decimal]:
    """Accept schema objects, dicts or (food_item_id, quantity, unit_price) tuples"""
    if isinstance(line, dict):
        food_item_id, quantity, unit_price = line.get("food_item_id"), line.get("quantity"), line.get("unit_price")
    elif isinstance(line, (tuple, list)):
        food_item_id, quantity, unit_price = line
    else:
        food_item_id, quantity, unit_price = line.food_item_id, line.quantity, line.unit_price

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise OrderValidationError("invalid item quantity")
    if food_item_id is None:
        raise OrderValidationError("item is missing its food item reference")
    return food_item_id, quantity, parse_amount(unit_price, "item unit price")


class OrderService:
    """Service for order ledger operations"""

    def __init__(self, db: Session, bus: OrderEventBus = event_bus):
        self.db = db
        self.bus = bus

    async def create_order(
        self,
        session_id: str,
        total_amount,
        tracking_code: str,
        items: list,
        customer_note: Optional[str] = None,
        verify_total: Optional[bool] = None,
    ) -> Order:
        """
        Atomically create an order, one row per item and the initial history entry.

        Raises OrderValidationError, DuplicateTrackingCodeError,
        ReferentialIntegrityError or TransientStorageError; nothing is
        written when any of them is raised.
        """
        if verify_total is None:
            verify_total = VERIFY_ORDER_TOTAL

        total = parse_amount(total_amount, "total amount")
        if not session_id or not str(session_id).strip():
            raise OrderValidationError("session identifier is required")
        if not tracking_code or not str(tracking_code).strip():
            raise OrderValidationError("tracking code is required")
        if not items:
            raise OrderValidationError("Order must contain at least one item")

        lines = [_normalize_line(line) for line in items]
        food_ids = [food_item_id for food_item_id, _, _ in lines]
        if len(set(food_ids)) != len(food_ids):
            raise OrderValidationError("Each food item may appear only once per order")

        if verify_total:
            expected = sum((unit_price * quantity for _, quantity, unit_price in lines), Decimal("0"))
            if expected.quantize(CENT) != total:
                raise OrderValidationError(
                    f"total amount {total} does not match item subtotals {expected.quantize(CENT)}"
                )

        with atomic(self.db):
            if self.db.query(Order.id).filter(Order.tracking_code == tracking_code).first():
                raise DuplicateTrackingCodeError("duplicate tracking id")

            known = {
                row.id for row in self.db.query(FoodItem.id).filter(FoodItem.id.in_(food_ids)).all()
            }
            missing = [food_item_id for food_item_id in food_ids if food_item_id not in known]
            if missing:
                raise ReferentialIntegrityError(
                    f"Unknown food item(s): {', '.join(str(m) for m in missing)}"
                )

            order = Order(
                session_id=str(session_id).strip(),
                total_amount=total,
                tracking_code=tracking_code,
                customer_note=customer_note or "",
                status=order_state.INITIAL_STATUS.value,
            )
            self.db.add(order)
            self.db.flush()

            for food_item_id, quantity, unit_price in lines:
                self.db.add(OrderItem(
                    order_id=order.id,
                    food_item_id=food_item_id,
                    quantity=quantity,
                    unit_price=unit_price,
                ))
            self.db.add(OrderStatusHistory(
                order_id=order.id,
                status=order_state.INITIAL_STATUS.value,
                note="Order created",
            ))

        self.db.refresh(order)
        logger.info(f"Created order {order.tracking_code} (id={order.id}) with {len(lines)} item(s), total {total}")
        await publish_order_event(self.bus, INSERT, order)
        return order

    async def transition_order_status(
        self,
        order_id: int,
        target_status,
        actor: Actor,
        note: Optional[str] = None,
    ) -> Order:
        """Move an order along the status graph, updating it and appending history in one transaction"""
        return await self._transition(order_id, target_status, actor, note)

    async def confirm_payment(self, order_id: int, actor: Actor, note: Optional[str] = None) -> Order:
        """
        Record a payment as received (pending -> payment_received).

        Payment records still awaiting review are marked completed in the
        same transaction as the status change.
        """
        def complete_payments(order: Order) -> None:
            for payment in order.payments:
                if payment.status in (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value):
                    payment.status = PaymentStatus.COMPLETED.value
            order.payment_status = PaymentStatus.COMPLETED.value

        return await self._transition(
            order_id,
            OrderStatus.PAYMENT_RECEIVED,
            actor,
            note=f"Payment confirmed: {note or 'No additional notes'}",
            on_locked=complete_payments,
        )

    async def _transition(
        self,
        order_id: int,
        target_status,
        actor: Actor,
        note: Optional[str] = None,
        on_locked: Optional[Callable[[Order], None]] = None,
    ) -> Order:
        require_admin(actor, "change order status")
        try:
            target = OrderStatus(target_status)
        except ValueError:
            raise OrderValidationError(f"Unknown status '{target_status}'")

        with atomic(self.db):
            order = (
                self.db.query(Order)
                .filter(Order.id == order_id)
                .with_for_update()
                .first()
            )
            if not order:
                raise NotFoundError("Order not found")

            old_status = order.status
            order_state.ensure_transition(old_status, target)
            order.status = target.value
            self.db.add(OrderStatusHistory(order_id=order.id, status=target.value, note=note))
            if on_locked is not None:
                on_locked(order)

        self.db.refresh(order)
        logger.info(f"Order {order.tracking_code} moved {old_status} -> {target.value} by {actor.label}")
        await publish_order_event(self.bus, UPDATE, order, old_status=old_status)
        return order

    async def get_order(self, order_id: int, actor: Actor) -> Order:
        with storage_guard(self.db):
            order = self._with_details().filter(Order.id == order_id).first()
        if not order or not can_read_order(actor, order):
            raise NotFoundError("Order not found")
        return order

    async def get_order_by_tracking_code(self, tracking_code: str, actor: Actor) -> Order:
        """Lookup for the tracking page; other sessions' orders look nonexistent"""
        with storage_guard(self.db):
            order = self._with_details().filter(Order.tracking_code == tracking_code).first()
        if not order or not can_read_order(actor, order):
            raise NotFoundError("Order not found")
        return order

    async def get_order_history(self, order_id: int, actor: Actor) -> List[OrderStatusHistory]:
        order = await self.get_order(order_id, actor)
        with storage_guard(self.db):
            return (
                self.db.query(OrderStatusHistory)
                .filter(OrderStatusHistory.order_id == order.id)
                .order_by(OrderStatusHistory.created_at.asc(), OrderStatusHistory.id.asc())
                .all()
            )

    async def list_session_orders(self, session_id: str) -> List[Order]:
        with storage_guard(self.db):
            return (
                self._with_details()
                .filter(Order.session_id == session_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .all()
            )

    async def list_orders(
        self,
        actor: Actor,
        status: Optional[str] = None,
        session_id: Optional[str] = None,
        active_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        """Paginated admin listing, newest first"""
        require_admin(actor, "list all orders")
        if page < 1 or page_size < 1:
            raise OrderValidationError("page and page_size must be positive")

        with storage_guard(self.db):
            query = self.db.query(Order)
            if status:
                try:
                    query = query.filter(Order.status == OrderStatus(status).value)
                except ValueError:
                    raise OrderValidationError(f"Unknown status '{status}'")
            if session_id:
                query = query.filter(Order.session_id == session_id)
            if active_only:
                query = query.filter(Order.status.in_(order_state.ACTIVE_STATUSES))

            total = query.count()
            offset = (page - 1) * page_size
            orders = (
                query.options(selectinload(Order.items), selectinload(Order.history))
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset(offset)
                .limit(page_size)
                .all()
            )

        return {
            "orders": orders,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size),
        }

    def _with_details(self):
        return self.db.query(Order).options(selectinload(Order.items), selectinload(Order.history))
