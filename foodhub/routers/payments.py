"""
Bank transfer details shown at checkout
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List
import logging

from foodhub.database import get_db
from foodhub.models.bank_detail import BankDetail
from foodhub.schemas.payment import BankDetailCreate, BankDetailUpdate, BankDetailResponse
from foodhub.services.activity_logger import ActivityLogger
from foodhub.auth.auth_handler import Actor, admin_required
from foodhub.utils.error_handler import atomic, storage_guard
from foodhub.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/bank-details", response_model=List[BankDetailResponse])
@limiter.limit("30/minute")
async def list_bank_details(
    request: Request,
    db: Session = Depends(get_db)
):
    """Active accounts customers can pay into"""
    with storage_guard(db):
        return (
            db.query(BankDetail)
            .filter(BankDetail.is_active.is_(True))
            .order_by(BankDetail.bank_name)
            .all()
        )


@router.post("/bank-details", response_model=BankDetailResponse, status_code=201)
@limiter.limit("10/minute")
async def create_bank_detail(
    request: Request,
    detail: BankDetailCreate,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    bank_detail = BankDetail(**detail.model_dump(), created_by=actor.admin_id)
    with atomic(db):
        db.add(bank_detail)
    db.refresh(bank_detail)

    logger.info(f"Added bank account {bank_detail.bank_name} (id={bank_detail.id}) by {actor.label}")
    await ActivityLogger(db).log_request(request, actor.label, "payments.bank_detail.create", bank_detail.id, status_code=201)
    return bank_detail


@router.patch("/bank-details/{detail_id}", response_model=BankDetailResponse)
@limiter.limit("10/minute")
async def update_bank_detail(
    request: Request,
    detail_id: int,
    update: BankDetailUpdate,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Activate or retire a bank account"""
    with atomic(db):
        bank_detail = db.query(BankDetail).filter(BankDetail.id == detail_id).first()
        if not bank_detail:
            raise HTTPException(status_code=404, detail="Bank detail not found")
        bank_detail.is_active = update.is_active
    db.refresh(bank_detail)

    logger.info(f"Bank account {detail_id} is_active={update.is_active} by {actor.label}")
    await ActivityLogger(db).log_request(request, actor.label, "payments.bank_detail.update", detail_id)
    return bank_detail
