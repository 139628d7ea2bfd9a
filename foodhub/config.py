"""
Runtime configuration for the FoodHub ordering API
Values come from the environment (a local .env is loaded by main.py)
"""

import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./foodhub.db")

# Admin authentication
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Startup behaviour
SEED_MENU = _flag("SEED_MENU", "true")
RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "true")

# Ordering rules
VERIFY_ORDER_TOTAL = _flag("VERIFY_ORDER_TOTAL", "false")
TRACKING_CODE_PREFIX = os.getenv("TRACKING_CODE_PREFIX", "FPI-")

# Change feed
EVENT_QUEUE_SIZE = int(os.getenv("EVENT_QUEUE_SIZE", "100"))
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
ORDER_EVENTS_CHANNEL = os.getenv("ORDER_EVENTS_CHANNEL", "order_events")

# Error responses carry the underlying storage error when on
DEBUG = _flag("DEBUG", "false")
