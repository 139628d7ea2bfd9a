"""
Menu endpoints: public browsing and admin catalog management
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from foodhub.database import get_db
from foodhub.models.food_item import FoodCategory
from foodhub.schemas.food_item import FoodItemCreate, FoodItemUpdate, FoodItemResponse, AvailabilityUpdate
from foodhub.services.menu_service import MenuService
from foodhub.services.activity_logger import ActivityLogger
from foodhub.auth.auth_handler import Actor, get_actor, admin_required
from foodhub.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[FoodItemResponse])
@limiter.limit("60/minute")
async def list_menu(
    request: Request,
    category: Optional[FoodCategory] = Query(None, description="Filter by category"),
    include_unavailable: bool = Query(False, description="Admins only: include hidden items"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """List menu items"""
    return await MenuService(db).list_menu(actor, category=category, include_unavailable=include_unavailable)


@router.get("/{item_id}", response_model=FoodItemResponse)
@limiter.limit("60/minute")
async def get_food_item(
    request: Request,
    item_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return await MenuService(db).get_food_item(item_id, actor)


@router.post("/", response_model=FoodItemResponse, status_code=201)
@limiter.limit("20/minute")
async def create_food_item(
    request: Request,
    item: FoodItemCreate,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Add an item to the menu"""
    created = await MenuService(db).create_food_item(item, actor)
    await ActivityLogger(db).log_request(request, actor.label, "menu.create", created.id, status_code=201)
    return created


@router.put("/{item_id}", response_model=FoodItemResponse)
@limiter.limit("20/minute")
async def update_food_item(
    request: Request,
    item_id: int,
    item: FoodItemUpdate,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Update an existing menu item"""
    updated = await MenuService(db).update_food_item(item_id, item, actor)
    await ActivityLogger(db).log_request(request, actor.label, "menu.update", item_id)
    return updated


@router.patch("/{item_id}/availability", response_model=FoodItemResponse)
@limiter.limit("30/minute")
async def set_availability(
    request: Request,
    item_id: int,
    availability: AvailabilityUpdate,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Show or hide a menu item"""
    updated = await MenuService(db).set_availability(item_id, availability.available, actor)
    await ActivityLogger(db).log_request(request, actor.label, "menu.availability", item_id)
    return updated


@router.delete("/{item_id}")
@limiter.limit("10/minute")
async def delete_food_item(
    request: Request,
    item_id: int,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Delete a menu item that no order references"""
    await MenuService(db).delete_food_item(item_id, actor)
    await ActivityLogger(db).log_request(request, actor.label, "menu.delete", item_id)
    return {"message": "Food item deleted successfully"}
