from slowapi import Limiter
from slowapi.util import get_remote_address
from charmcircle.core.config import settings

# Global Rate Limiter instance keyed by remote address
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI
)
