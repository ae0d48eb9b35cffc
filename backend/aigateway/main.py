"""
AI Gateway Backend - FastAPI Application
"""
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aigateway.api import chat, images, parameters
from aigateway.core.config import settings
from aigateway.core.logging import get_logger, setup_logging
from aigateway.services.context import ConversationContextManager
from aigateway.services.gateway import (
    AIServiceError,
    ErrorCode,
    ParameterValidationError,
    ProviderNotFoundError,
    RateLimitError,
    RateLimiterManager,
    StreamingDispatcher,
    UnsupportedCapabilityError,
    build_registry,
)
from aigateway.services.parameters import ParameterService

logger = get_logger(__name__)

# HTTP status for each provider failure code; anything else is a bad gateway
AI_ERROR_STATUS = {
    ErrorCode.MISSING_API_KEY: 400,
    ErrorCode.UNAUTHORIZED: 502,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.CONTENT_BLOCKED: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("Starting AI Gateway", version="1.0.0")

    app.state.parameters = ParameterService()
    app.state.rate_limiters = RateLimiterManager()
    app.state.registry = build_registry(settings, app.state.parameters, app.state.rate_limiters)
    app.state.context_manager = ConversationContextManager()
    app.state.dispatcher = StreamingDispatcher()
    app.state.rate_limiters.start_cleanup_task(settings.RATE_LIMIT_CLEANUP_INTERVAL)

    yield

    # Shutdown
    await app.state.rate_limiters.stop_cleanup_task()
    logger.info("Shutting down AI Gateway")


app = FastAPI(
    title="AI Gateway API",
    description="Multi-provider AI chat and image gateway",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat.router, prefix="/api/ai", tags=["chat"])
app.include_router(images.router, prefix="/api/ai/images", tags=["images"])
app.include_router(parameters.router, prefix="/api/parameters", tags=["parameters"])


# ========================================
# Error handlers
# ========================================

def _error(status_code: int, code: str, message: str, headers: dict | None = None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message, **extra}},
        headers=headers,
    )


@app.exception_handler(ProviderNotFoundError)
async def provider_not_found_handler(request: Request, exc: ProviderNotFoundError):
    return _error(404, "PROVIDER_NOT_FOUND", str(exc), provider=exc.provider, capability=exc.capability)


@app.exception_handler(UnsupportedCapabilityError)
async def unsupported_capability_handler(request: Request, exc: UnsupportedCapabilityError):
    return _error(400, "UNSUPPORTED_CAPABILITY", str(exc), provider=exc.provider, capability=exc.capability)


@app.exception_handler(ParameterValidationError)
async def parameter_validation_handler(request: Request, exc: ParameterValidationError):
    return _error(
        400,
        "VALIDATION_ERROR",
        str(exc),
        provider=exc.provider,
        details=[e.model_dump(by_alias=True, mode="json") for e in exc.errors],
    )


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError):
    return _error(
        429,
        "RATE_LIMIT_EXCEEDED",
        str(exc),
        headers={"Retry-After": str(exc.retry_after)},
        retryAfter=exc.retry_after,
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request: Request, exc: AIServiceError):
    status_code = AI_ERROR_STATUS.get(exc.code, 502)
    logger.warning(
        "AI service error",
        provider=exc.provider,
        code=exc.code_value,
        status_code=status_code,
        error=exc.message,
    )
    return _error(status_code, exc.code_value, exc.message, provider=exc.provider)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "ai-gateway"}
