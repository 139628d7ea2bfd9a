"""
Admin service for dashboard authentication
"""

from sqlalchemy.orm import Session
from sqlalchemy.sql import func
from typing import Optional
import logging

from foodhub.models.admin import AdminCredential
from foodhub.auth.auth_handler import AuthHandler
from foodhub.utils.error_handler import atomic, storage_guard

logger = logging.getLogger(__name__)


class AdminService:
    """Service for admin credential operations"""

    def __init__(self, db: Session):
        self.db = db
        self.auth_handler = AuthHandler()

    async def get_admin_by_id(self, admin_id: int) -> Optional[AdminCredential]:
        with storage_guard(self.db):
            return self.db.query(AdminCredential).filter(AdminCredential.id == admin_id).first()

    async def authenticate(self, username: str, password: str) -> Optional[AdminCredential]:
        """Return the admin on a correct password, None otherwise"""
        with storage_guard(self.db):
            admin = self.db.query(AdminCredential).filter(
                AdminCredential.username == username.strip().lower()
            ).first()

        if not admin or not admin.is_active:
            return None
        if not self.auth_handler.verify_password(password, admin.password_hash):
            return None

        with atomic(self.db):
            admin.last_login = func.now()
        self.db.refresh(admin)
        logger.info(f"Admin logged in: {admin.username}")
        return admin

    async def create_admin(self, username: str, password: str) -> AdminCredential:
        admin = AdminCredential(
            username=username.strip().lower(),
            password_hash=self.auth_handler.get_password_hash(password),
        )
        with atomic(self.db):
            self.db.add(admin)
        self.db.refresh(admin)
        logger.info(f"Created admin account: {admin.username}")
        return admin


async def ensure_default_admin(db: Session, username: str, password: Optional[str]) -> Optional[AdminCredential]:
    """Create the configured admin at startup if a password is set and the account is missing"""
    if not password:
        logger.warning("ADMIN_PASSWORD not set; no default admin account will be created")
        return None
    existing = db.query(AdminCredential).filter(AdminCredential.username == username.strip().lower()).first()
    if existing:
        return existing
    return await AdminService(db).create_admin(username, password)
