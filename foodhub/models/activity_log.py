"""
Activity log model for auditing admin actions and failures
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from foodhub.database import Base


class ActivityLog(Base):
    """One row per admin mutation, login attempt or unhandled error"""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    endpoint = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False)
    status_code = Column(Integer, nullable=False)
    actor = Column(String(100), nullable=True)
    action = Column(String(100), nullable=True)
    target = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, action='{self.action}', actor='{self.actor}', status={self.status_code})>"
