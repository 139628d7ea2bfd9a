"""
Shared slowapi limiter; the app registers it on app.state in main.py
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from foodhub.config import RATE_LIMIT_ENABLED

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
