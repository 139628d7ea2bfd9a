"""
FoodHub - Campus Food Ordering API
Menu browsing, order placement and tracking, and the admin order pipeline
"""

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import uvicorn
from contextlib import asynccontextmanager
import logging
import traceback
import uuid
from datetime import datetime

from foodhub.config import SEED_MENU, ADMIN_USERNAME, ADMIN_PASSWORD
from foodhub.database import engine, Base, SessionLocal, get_db
from foodhub.models import food_item, order, payment, admin, activity_log, bank_detail  # noqa: F401 register tables
from foodhub.routers import orders, menu, auth, payments
from foodhub.services.activity_logger import ActivityLogger
from foodhub.services.admin_service import ensure_default_admin
from foodhub.services.event_bus import event_bus
from foodhub.services.menu_service import seed_menu
from foodhub.utils.error_handler import FoodHubError, foodhub_error_handler
from foodhub.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("Starting FoodHub API...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    db = SessionLocal()
    try:
        if SEED_MENU:
            seed_menu(db)
        await ensure_default_admin(db, ADMIN_USERNAME, ADMIN_PASSWORD)
    finally:
        db.close()

    event_bus.connect()

    yield

    logger.info(f"Shutting down FoodHub API ({event_bus.subscriber_count} feed subscriber(s) open)")
    await event_bus.close()


app = FastAPI(
    title="FoodHub Campus Food Ordering API",
    description="Order food on campus, track it live, and run the kitchen queue",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(FoodHubError, foodhub_error_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["authentication"])
app.include_router(menu.router, prefix="/api/v1/menu", tags=["menu"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(payments.router, prefix="/api/v1/payments", tags=["payments"])


@app.get("/")
@limiter.limit("10/minute")
async def root(request: Request):
    """Root endpoint with API information - publicly accessible"""
    return {
        "message": "FoodHub Campus Food Ordering API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health")
@limiter.limit("30/minute")
async def health_check(request: Request):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "feed_subscribers": event_bus.subscriber_count,
        "timestamp": datetime.utcnow().isoformat()
    }


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures with a tracking id and return a generic 500"""
    error_id = str(uuid.uuid4())

    logger.error(
        f"Unhandled exception {error_id}: {type(exc).__name__} in {request.method} {request.url.path}",
        extra={
            "error_id": error_id,
            "endpoint": str(request.url.path),
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
            "stack_trace": traceback.format_exc()
        },
        exc_info=True
    )

    # Recording the failure must not mask the original error
    db_factory = request.app.dependency_overrides.get(get_db, get_db)
    db_session = db_factory()
    db = next(db_session)
    try:
        await ActivityLogger(db).log_activity(
            endpoint=str(request.url.path),
            method=request.method,
            status_code=500,
            action="error",
            error_message=f"[{error_id}] {str(exc)}"
        )
    finally:
        db_session.close()

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
                "error_id": error_id,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
