"""
Workdesk - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import billing_router, chat_router, credits_router, register_exception_handlers
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .services import init_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown."""
    setup_logging(settings)

    services = init_services()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(
        f"LLM provider: {settings.llm_provider if services.chat.llm_provider else 'not configured'}"
    )
    yield
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Productivity workspace with an AI chat assistant and metered credits",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(chat_router)
app.include_router(credits_router)
app.include_router(billing_router)


@app.get("/")
async def root():
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "storage": settings.storage_type,
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "workdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
