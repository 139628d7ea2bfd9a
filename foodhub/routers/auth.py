"""
Authentication endpoints for admin login
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status, Request
from sqlalchemy.orm import Session
from datetime import timedelta
from typing import List, Optional
import logging

from foodhub.config import ACCESS_TOKEN_EXPIRE_MINUTES
from foodhub.database import get_db
from foodhub.schemas.admin import AdminLogin, AdminResponse, TokenResponse, ActivityLogResponse
from foodhub.services.admin_service import AdminService
from foodhub.services.activity_logger import ActivityLogger
from foodhub.auth.auth_handler import AuthHandler, Actor, admin_required
from foodhub.utils.error_handler import FoodHubError, storage_guard
from foodhub.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")  # Prevent brute force attacks
async def login(
    request: Request,
    login_data: AdminLogin,
    db: Session = Depends(get_db)
):
    """Authenticate an admin and return an access token"""
    try:
        admin_service = AdminService(db)
        auth_handler = AuthHandler()
        activity_logger = ActivityLogger(db)

        admin = await admin_service.authenticate(login_data.username, login_data.password)

        if not admin:
            await activity_logger.log_activity(
                endpoint="/api/v1/auth/login",
                method="POST",
                status_code=401,
                actor=login_data.username,
                action="auth.login_failed",
                ip_address=request.client.host if request.client else None,
                error_message=f"Failed login attempt for: {login_data.username}"
            )

            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username or password"
            )

        token_data = {
            "sub": str(admin.id),
            "username": admin.username,
            "role": "admin"
        }
        access_token = auth_handler.create_access_token(
            data=token_data,
            expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        )

        await activity_logger.log_activity(
            endpoint="/api/v1/auth/login",
            method="POST",
            status_code=200,
            actor=f"admin:{admin.username}",
            action="auth.login",
            ip_address=request.client.host if request.client else None
        )

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            admin=AdminResponse.model_validate(admin)
        )

    except (HTTPException, FoodHubError):
        raise
    except Exception as e:
        logger.error(f"Login failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )


@router.get("/me", response_model=AdminResponse)
@limiter.limit("30/minute")
async def get_current_admin(
    request: Request,
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Get the authenticated admin"""
    admin = await AdminService(db).get_admin_by_id(actor.admin_id)
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Admin not found"
        )
    return admin


@router.get("/activity", response_model=List[ActivityLogResponse])
@limiter.limit("30/minute")
async def list_activity(
    request: Request,
    limit: int = Query(100, ge=1, le=500, description="Maximum entries to return"),
    action: Optional[str] = Query(None, description="Filter by action, e.g. order.transition"),
    actor: Actor = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Recent audit entries, newest first"""
    with storage_guard(db):
        return ActivityLogger(db).get_recent_activities(limit=limit, action=action)
