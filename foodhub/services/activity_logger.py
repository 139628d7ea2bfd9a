"""
Activity logging service for auditing admin actions
"""

from fastapi import Request
from sqlalchemy.orm import Session
from foodhub.models.activity_log import ActivityLog
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Service for recording admin activity and failures"""

    def __init__(self, db: Session):
        self.db = db

    async def log_activity(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        actor: Optional[str] = None,
        action: Optional[str] = None,
        target: Optional[str] = None,
        ip_address: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> Optional[ActivityLog]:
        """Log an activity; a failure here is logged and never propagated"""

        try:
            activity_log = ActivityLog(
                endpoint=endpoint,
                method=method,
                status_code=status_code,
                actor=actor,
                action=action,
                target=target,
                ip_address=ip_address,
                error_message=error_message
            )

            self.db.add(activity_log)
            self.db.commit()
            self.db.refresh(activity_log)

            return activity_log

        except Exception as e:
            logger.error(f"Failed to log activity {action}: {e}")
            self.db.rollback()
            return None

    async def log_request(
        self,
        request: Request,
        actor: str,
        action: str,
        target=None,
        status_code: int = 200,
        error_message: Optional[str] = None
    ) -> Optional[ActivityLog]:
        """Log an activity for the current request"""
        return await self.log_activity(
            endpoint=str(request.url.path),
            method=request.method,
            status_code=status_code,
            actor=actor,
            action=action,
            target=str(target) if target is not None else None,
            ip_address=request.client.host if request.client else None,
            error_message=error_message
        )

    def get_recent_activities(self, limit: int = 100, action: Optional[str] = None) -> list[ActivityLog]:
        """Get recent activities, newest first"""
        query = self.db.query(ActivityLog)
        if action:
            query = query.filter(ActivityLog.action == action)
        return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
