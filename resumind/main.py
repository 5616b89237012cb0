import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi import _rate_limit_exceeded_handler
import sentry_sdk

from resumind.api.v1.analysis import router as analysis_router
from resumind.api.v1.health import router as health_router
from resumind.core.config import settings
from resumind.core.lifespan import lifespan
from resumind.core.rate_limit import limiter
from resumind.storage.kv_store import KeyValueStoreError

logger = logging.getLogger(__name__)

logging.basicConfig(level=settings.log_level, format="%(message)s")
if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn)

app = FastAPI(title="Resumind API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(KeyValueStoreError)
async def record_store_error_handler(request: Request, exc: KeyValueStoreError):
    logger.error("record_store_unavailable path=%s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Record store is unavailable. Please try again later."})


app.include_router(health_router, prefix="/v1", tags=["Health"])
app.include_router(analysis_router, prefix="/v1", tags=["Analysis"])
