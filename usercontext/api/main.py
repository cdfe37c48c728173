"""
FastAPI Application Entry Point.

This module creates and configures the FastAPI application instance.
It handles:
1. Application initialization
2. Router registration
3. Middleware configuration
4. Exception handlers
5. Startup/shutdown events

Run with: uvicorn usercontext.api.main:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from usercontext.core.config import get_settings
from usercontext.core.logging_config import setup_logging, get_logger
from usercontext.core.exceptions import UserContextException
from usercontext.core.audit import AuditMiddleware
from usercontext.api.routes import memory_router, context_router, health_router
from usercontext.database.connection import reset_database
from usercontext.memory import get_memory_store, reset_memory_store
from usercontext.services.context_service import reset_context_service


# Initialize logging before anything else
settings = get_settings()
setup_logging(settings.log_level, settings.log_dir)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: build the memory store (creates tables when persistent)
    - Shutdown: release storage connections
    """
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")
    logger.info(f"Persistent memory: {settings.memory_persistent}")
    logger.info(f"Audit Logging: {settings.enable_audit_logging}")

    store = get_memory_store()
    logger.info(f"Memory store ready: backend={store.backend.name}")

    yield  # Application runs here

    logger.info(f"Shutting down {settings.app_name}")
    reset_context_service()
    reset_memory_store()
    reset_database()


app = FastAPI(
    title="User Context API",
    description="""
    Per-user memory for a conversational health assistant.

    ## Features

    - **Memory records**: risk factors, conditions, interests, recent questions, key insights
    - **Deep-merge patches**: send only the fields you change
    - **Per-user consistency**: concurrent updates to one user are serialized
    - **Persistent storage**: records survive restarts
    """,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ============================================================
# Middleware Configuration
# ============================================================

if settings.enable_audit_logging:
    app.add_middleware(AuditMiddleware)
    logger.info("Audit logging middleware enabled")


# ============================================================
# Exception Handlers
# ============================================================

@app.exception_handler(UserContextException)
async def user_context_exception_handler(request: Request, exc: UserContextException):
    """Handle all custom application exceptions."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message} ({exc.details})")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Handle uncaught exceptions globally.

    Detailed error information is only included in development mode.
    """
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "details": str(exc) if settings.is_development() else None,
            "timestamp": datetime.utcnow().isoformat()
        }
    )


# ============================================================
# Routers
# ============================================================

app.include_router(health_router)
app.include_router(memory_router)
app.include_router(context_router)


@app.get("/", include_in_schema=False)
async def root():
    """Point clients at the documentation."""
    return {
        "message": "User Context API",
        "version": "0.1.0",
        "documentation": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "usercontext.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development()
    )
