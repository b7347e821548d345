"""
Main FastAPI application for the song generation API.
Serves health, generation (NDJSON streaming) and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.routes import generate, health
from app.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger("app.access")

app = FastAPI(
    title="Song Generation API",
    description="Credit-backed AI song generation with live progress streaming",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Job-Id", settings.request_id_header],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    # For NDJSON responses this is time to first byte, not stream length
    if request.url.path not in ("/health", "/metrics"):
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
                "user_id": request.headers.get(settings.user_id_header),
            },
        )
    return response


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(generate.router)
app.include_router(metrics_router)
