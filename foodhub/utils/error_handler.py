"""
Error taxonomy and handling utilities for the ordering API
"""

import uuid
import traceback
import logging
from contextlib import contextmanager
from typing import Optional
from datetime import datetime
from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError, DisconnectionError
from sqlalchemy.orm import Session

from foodhub.config import DEBUG

logger = logging.getLogger(__name__)


class ErrorContext:
    """Context object for tracking error information across the request lifecycle"""

    def __init__(self, request: Request):
        self.request_id = str(uuid.uuid4())
        self.request = request
        self.endpoint = str(request.url.path)
        self.method = request.method
        self.client_ip = self._get_client_ip()
        self.timestamp = datetime.utcnow()

    def _get_client_ip(self) -> Optional[str]:
        """Extract client IP from request headers"""
        if "x-forwarded-for" in self.request.headers:
            return self.request.headers["x-forwarded-for"].split(",")[0].strip()
        elif "x-real-ip" in self.request.headers:
            return self.request.headers["x-real-ip"]
        elif self.request.client:
            return self.request.client.host
        return None


class FoodHubError(Exception):
    """Base class for failures surfaced to callers with a stable error code"""
    status_code = 500
    error_code = "INTERNAL_ERROR"
    retryable = False

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class OrderValidationError(FoodHubError):
    status_code = 422
    error_code = "VALIDATION_ERROR"


class DuplicateTrackingCodeError(FoodHubError):
    """Tracking code already used; the caller should generate a new one and retry"""
    status_code = 409
    error_code = "DUPLICATE_TRACKING_ID"
    retryable = True


class DuplicatePaymentReferenceError(FoodHubError):
    """Payment reference already recorded against some order"""
    status_code = 409
    error_code = "DUPLICATE_PAYMENT_REFERENCE"


class ReferentialIntegrityError(FoodHubError):
    """Order references a food item that does not exist"""
    status_code = 422
    error_code = "REFERENTIAL_INTEGRITY"


class NotFoundError(FoodHubError):
    status_code = 404
    error_code = "NOT_FOUND"


class ForbiddenError(FoodHubError):
    status_code = 403
    error_code = "FORBIDDEN"


class IllegalTransitionError(FoodHubError):
    status_code = 409
    error_code = "ILLEGAL_TRANSITION"

    def __init__(self, current: str, target: str, allowed: list):
        self.current = current
        self.target = target
        self.allowed = allowed
        allowed_text = ", ".join(allowed) if allowed else "none"
        super().__init__(
            f"Cannot move order from '{current}' to '{target}' (allowed: {allowed_text})"
        )


class ResourceInUseError(FoodHubError):
    status_code = 409
    error_code = "RESOURCE_IN_USE"


class TransientStorageError(FoodHubError):
    """Storage unreachable or timed out; safe to retry with backoff"""
    status_code = 503
    error_code = "STORAGE_UNAVAILABLE"
    retryable = True


def translate_storage_error(error: SQLAlchemyError) -> Optional[FoodHubError]:
    """Map a SQLAlchemy failure onto the error taxonomy, or None if it has no mapping"""
    if isinstance(error, IntegrityError):
        message = str(error.orig).lower()
        if "tracking_code" in message:
            return DuplicateTrackingCodeError("duplicate tracking id", error)
        if "foreign key" in message:
            return ReferentialIntegrityError("Order references a food item that does not exist", error)
        if ("payment_history" in message or "payment_reference" in message) and "unique" in message:
            return DuplicatePaymentReferenceError("Duplicate payment reference", error)
        if "order_items" in message and "unique" in message:
            return OrderValidationError("Each food item may appear only once per order", error)
        return OrderValidationError("Data violates a ledger constraint", error)
    if isinstance(error, (OperationalError, DisconnectionError)):
        return TransientStorageError("Order storage is temporarily unavailable", error)
    if getattr(error, "connection_invalidated", False):
        return TransientStorageError("Order storage connection was lost", error)
    return None


@contextmanager
def atomic(db: Session):
    """Run a block as one transaction: commit on success, roll back and translate on failure"""
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        translated = translate_storage_error(e)
        if translated is not None:
            logger.warning(f"Transaction rolled back: {translated.error_code}: {e}")
            raise translated from e
        logger.error(f"Database transaction failed: {e}")
        raise
    except Exception:
        db.rollback()
        raise


@contextmanager
def storage_guard(db: Session):
    """Translate storage failures on read paths"""
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        translated = translate_storage_error(e)
        if translated is not None:
            raise translated from e
        raise


class ErrorHandler:
    """Centralized error response rendering"""

    @staticmethod
    def create_error_response(
        error_context: ErrorContext,
        error: FoodHubError,
        include_details: bool = False
    ) -> JSONResponse:
        """Create a standardized error response"""

        error_data = {
            "error": {
                "code": error.error_code,
                "message": error.message,
                "retryable": error.retryable,
                "request_id": error_context.request_id,
                "timestamp": error_context.timestamp.isoformat(),
                "endpoint": error_context.endpoint,
                "method": error_context.method
            }
        }

        if isinstance(error, IllegalTransitionError):
            error_data["error"]["current_status"] = error.current
            error_data["error"]["target_status"] = error.target
            error_data["error"]["allowed"] = error.allowed

        if include_details and error.original_error is not None:
            error_data["error"]["details"] = {
                "original_error": str(error.original_error),
                "error_type": type(error.original_error).__name__,
            }

        ErrorHandler._log_error(error_context, error)

        headers = {"Retry-After": "1"} if isinstance(error, TransientStorageError) else None
        return JSONResponse(
            status_code=error.status_code,
            content=error_data,
            headers=headers
        )

    @staticmethod
    def _log_error(error_context: ErrorContext, error: FoodHubError):
        """Log error with request context; server-side failures carry the stack trace"""
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            f"Error {error_context.request_id}: {error.error_code} in {error_context.method} {error_context.endpoint}: {error.message}",
            extra={
                "request_id": error_context.request_id,
                "endpoint": error_context.endpoint,
                "method": error_context.method,
                "status_code": error.status_code,
                "client_ip": error_context.client_ip,
                "error_type": type(error).__name__,
                "stack_trace": traceback.format_exc() if error.status_code >= 500 else None
            }
        )


async def foodhub_error_handler(request: Request, exc: FoodHubError) -> JSONResponse:
    """FastAPI exception handler for the domain error hierarchy"""
    return ErrorHandler.create_error_response(ErrorContext(request), exc, include_details=DEBUG)
