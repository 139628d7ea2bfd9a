"""
Pydantic schemas for admin authentication
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class AdminLogin(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)


class AdminResponse(BaseModel):
    id: int
    username: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminResponse


class ActivityLogResponse(BaseModel):
    id: int
    endpoint: str
    method: str
    status_code: int
    actor: Optional[str] = None
    action: Optional[str] = None
    target: Optional[str] = None
    ip_address: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
