"""Shared rate limiter (per client address)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ridehail.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.api_rate_limit])
