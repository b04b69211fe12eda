from slowapi import Limiter
from slowapi.util import get_remote_address
from hireveno.config import get_settings

# Shared by every router, registered on the app in main.py
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)
