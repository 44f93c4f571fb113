"""
Admin token check and per-client rate limiting for the public store views
"""

from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Dict, List, Optional
import time
from collections import defaultdict

from app.core.config import settings

WINDOW_SECONDS = 60

# Request timestamps per client IP inside the current window
rate_limiter: Dict[str, List[float]] = defaultdict(list)
_last_sweep = 0.0

security = HTTPBearer()

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Admin and editor routes share one bearer token"""
    if credentials.credentials != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def _sweep(now: float) -> None:
    """Forget clients whose last request fell out of the window"""
    global _last_sweep
    if now - _last_sweep < WINDOW_SECONDS:
        return
    _last_sweep = now
    cutoff = now - WINDOW_SECONDS
    for client_ip in [ip for ip, stamps in rate_limiter.items() if not stamps or stamps[-1] <= cutoff]:
        del rate_limiter[client_ip]

def rate_limit_check(client_ip: str, limit: Optional[int] = None) -> bool:
    """Sliding one-minute window per client; False once the client is over the limit"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    now = time.time()
    _sweep(now)

    cutoff = now - WINDOW_SECONDS
    recent = [stamp for stamp in rate_limiter.get(client_ip, []) if stamp > cutoff]
    if len(recent) >= limit:
        rate_limiter[client_ip] = recent
        return False

    recent.append(now)
    rate_limiter[client_ip] = recent
    return True

def get_client_ip(request) -> str:
    """Client address, honouring the reverse proxy headers in front of the API"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host
