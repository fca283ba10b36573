from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import time
import uuid

from .config import settings
from .database import create_tables
from .errors import AvailabilityError
from .utils.logging_config import setup_logging, set_request_context, clear_request_context, get_logger
from .utils.rate_limiter import limiter

from .routers import availability, health

logger = get_logger("unit_availability.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)
    logger.info(f"Starting unit availability service ({settings.environment})")

    create_tables()
    logger.info("Database ready")

    yield

    logger.info("Shutting down unit availability service")


app = FastAPI(
    title="Unit Availability API",
    description="Per-unit, per-day availability scheduling",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id, request.headers.get("X-Actor"))
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.api_request(
                request.method,
                request.url.path,
                response.status_code,
                round((time.perf_counter() - started) * 1000, 2),
            )
            return response
        finally:
            clear_request_context()


app.add_middleware(RequestIdMiddleware)


@app.exception_handler(AvailabilityError)
async def availability_error_handler(request: Request, exc: AvailabilityError):
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(level, f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, try again later", "code": "rate_limited", "retryable": True}
    )


app.include_router(health.router)
app.include_router(availability.router)


@app.get("/")
async def root():
    return {
        "message": "Unit Availability API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running"
    }
