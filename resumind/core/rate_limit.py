from __future__ import annotations

import hashlib

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from resumind.core.config import settings


def caller_key(request: Request) -> str:
    """Bucket callers by presented API key when there is one, else by address."""
    presented = (request.headers.get("X-API-Key") or "").strip()
    if presented:
        digest = hashlib.sha256(presented.encode("utf-8")).hexdigest()[:16]
        return f"key:{digest}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=caller_key)


def analysis_rate_limit():
    if not settings.rate_limit_enabled:

        def passthrough(func):
            return func

        return passthrough
    return limiter.limit(settings.rate_limit)
