from .dependencies import get_current_admin, get_current_user, get_optional_user_id
from .jwt_handler import create_access_token, verify_access_token
from .rate_limiter import limiter, user_id_or_ip
from .webhook_signature import verify_webhook_signature

__all__ = [
    "create_access_token",
    "verify_access_token",
    "verify_webhook_signature",
    "get_current_user",
    "get_current_admin",
    "get_optional_user_id",
    "limiter",
    "user_id_or_ip",
]
