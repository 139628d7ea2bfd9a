"""
Order endpoints: placing, tracking, listing and status transitions, plus the live change feed
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session
from typing import Optional, List
from contextlib import suppress
import asyncio
import logging

from foodhub.database import get_db
from foodhub.models.order import OrderStatus
from foodhub.schemas.order import (
    OrderCreate, OrderResponse, OrderListResponse, StatusTransitionRequest,
    StatusHistoryResponse, PaymentConfirmation
)
from foodhub.schemas.payment import PaymentCreate, PaymentRecordResponse
from foodhub.services.order_service import OrderService
from foodhub.services.payment_service import PaymentService
from foodhub.services.order_state import ACTIVE_STATUSES
from foodhub.services.event_bus import event_bus
from foodhub.services.activity_logger import ActivityLogger
from foodhub.auth.auth_handler import Actor, get_actor, admin_required, session_required, auth_handler
from foodhub.utils.error_handler import FoodHubError
from foodhub.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=OrderResponse, status_code=201)
@limiter.limit("10/minute")
async def create_order(
    request: Request,
    order: OrderCreate,
    db: Session = Depends(get_db)
):
    """Place a new order with its items"""
    try:
        service = OrderService(db)
        return await service.create_order(
            session_id=order.session_id,
            total_amount=order.total_amount,
            tracking_code=order.tracking_code,
            items=order.items,
            customer_note=order.customer_note,
        )

    except (HTTPException, FoodHubError):
        raise
    except Exception as e:
        logger.error(f"Failed to create order: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create order")


@router.get("/", response_model=OrderListResponse)
@limiter.limit("30/minute")
async def list_orders(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    session_id: Optional[str] = Query(None, description="Filter by customer session"),
    active_only: bool = Query(False, description="Only orders that are not delivered or cancelled"),
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Paginated list of orders, newest first"""
    service = OrderService(db)
    result = await service.list_orders(
        actor,
        status=status.value if status else None,
        session_id=session_id,
        active_only=active_only,
        page=page,
        page_size=page_size,
    )
    return OrderListResponse(**result)


@router.get("/mine", response_model=List[OrderResponse])
@limiter.limit("30/minute")
async def list_my_orders(
    request: Request,
    actor: Actor = Depends(session_required),
    db: Session = Depends(get_db)
):
    """Orders placed from the caller's session"""
    if not actor.session_id:
        raise HTTPException(status_code=400, detail="X-Session-Id header required")
    return await OrderService(db).list_session_orders(actor.session_id)


@router.get("/track/{tracking_code}", response_model=OrderResponse)
@limiter.limit("60/minute")
async def track_order(
    request: Request,
    tracking_code: str,
    actor: Actor = Depends(session_required),
    db: Session = Depends(get_db)
):
    """Look up an order by its tracking code"""
    return await OrderService(db).get_order_by_tracking_code(tracking_code, actor)


@router.websocket("/feed")
async def order_feed(
    websocket: WebSocket,
    session_id: Optional[str] = None,
    token: Optional[str] = None,
    active_only: bool = False,
):
    """Push one JSON message per order change visible to the caller"""
    if token:
        try:
            actor = auth_handler.actor_from_token(token)
        except HTTPException:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        subscription = await event_bus.subscribe(statuses=ACTIVE_STATUSES if active_only else None)
    elif session_id:
        actor = Actor(kind="customer", session_id=session_id)
        subscription = await event_bus.subscribe(session_id=session_id)
    else:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"Order feed opened for {actor.label}")

    async def forward():
        while True:
            event = await subscription.get()
            await websocket.send_json(event.to_message())

    forwarder = asyncio.create_task(forward())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        forwarder.cancel()
        with suppress(asyncio.CancelledError):
            await forwarder
        await event_bus.unsubscribe(subscription)
        logger.info(f"Order feed closed for {actor.label}")


@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
async def get_order(
    request: Request,
    order_id: int,
    actor: Actor = Depends(session_required),
    db: Session = Depends(get_db)
):
    """Get a specific order by ID"""
    return await OrderService(db).get_order(order_id, actor)


@router.get("/{order_id}/history", response_model=List[StatusHistoryResponse])
@limiter.limit("30/minute")
async def get_order_history(
    request: Request,
    order_id: int,
    actor: Actor = Depends(session_required),
    db: Session = Depends(get_db)
):
    """Status history of an order, oldest first"""
    return await OrderService(db).get_order_history(order_id, actor)


@router.post("/{order_id}/payments", response_model=PaymentRecordResponse, status_code=201)
@limiter.limit("10/minute")
async def record_payment(
    request: Request,
    order_id: int,
    payment: PaymentCreate,
    actor: Actor = Depends(session_required),
    db: Session = Depends(get_db)
):
    """Attach a bank transfer or other payment reference to an order"""
    return await PaymentService(db).record_payment(
        order_id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        reference=payment.reference,
        actor=actor,
    )


@router.get("/{order_id}/payments", response_model=List[PaymentRecordResponse])
@limiter.limit("30/minute")
async def list_payments(
    request: Request,
    order_id: int,
    actor: Actor = Depends(session_required),
    db: Session = Depends(get_db)
):
    """Payments recorded against an order, oldest first"""
    return await PaymentService(db).list_payments(order_id, actor)


@router.post("/{order_id}/status", response_model=OrderResponse)
@limiter.limit("30/minute")
async def transition_order_status(
    request: Request,
    order_id: int,
    transition: StatusTransitionRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Move an order to its next status"""
    activity_logger = ActivityLogger(db)
    try:
        order = await OrderService(db).transition_order_status(
            order_id, transition.status, actor, note=transition.note
        )
    except FoodHubError as e:
        await activity_logger.log_request(
            request, actor.label, "order.transition", order_id,
            status_code=e.status_code, error_message=e.message
        )
        raise

    await activity_logger.log_request(request, actor.label, "order.transition", order.tracking_code)
    return order


@router.post("/{order_id}/confirm-payment", response_model=OrderResponse)
@limiter.limit("30/minute")
async def confirm_payment(
    request: Request,
    order_id: int,
    confirmation: Optional[PaymentConfirmation] = None,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Mark a bank transfer as received"""
    note = confirmation.note if confirmation else None
    order = await OrderService(db).confirm_payment(order_id, actor, note=note)

    await ActivityLogger(db).log_request(request, actor.label, "order.confirm_payment", order.tracking_code)
    return order
