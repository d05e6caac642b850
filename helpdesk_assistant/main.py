"""
Helpdesk Assistant - Main Application
=====================================

Conversational support assistant for the help-desk platform.

Modules:
- Assistant: Durable chat sessions, provider fallback, escalation to tickets
- Knowledge: Article suggestions and grounded solutions for ticket drafts

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and business rules
- Infrastructure: Database, generative providers, external services
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# Configuration and Core
from helpdesk_assistant.config import settings
from helpdesk_assistant.core import ApplicationException

# Infrastructure
from helpdesk_assistant.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from helpdesk_assistant.infrastructure.llm import build_provider_clients

# Module Routers
from helpdesk_assistant.assistant.interfaces import assistant_router
from helpdesk_assistant.knowledge.interfaces import knowledge_router

# Logging and metrics
from helpdesk_assistant.shared.infrastructure.logging import setup_logging, get_logger
from helpdesk_assistant.shared.infrastructure.grafana import init_grafana_exporter
from helpdesk_assistant.shared.api.middleware import (
    CorrelationIDMiddleware,
    MetricsMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Build provider clients in fallback order
    4. Initialize Grafana exporter

    SHUTDOWN:
    1. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk Assistant", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use Alembic in production)
    # If the database is down the server still starts; store-backed
    # endpoints answer 503 until it is back.
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Initializing provider clients")
    providers = build_provider_clients(settings)
    if not providers:
        logger.warning("No generative provider configured - assistant replies will fail with 503")

    if settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id:
        init_grafana_exporter(
            host=settings.grafana_host,
            api_key=settings.grafana_api_key,
            instance_id=settings.grafana_instance_id
        )
        logger.info("Grafana OTLP exporter initialized")
    else:
        logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    # Store shared state for dependency injection
    app.state.settings = settings
    app.state.providers = providers

    logger.info("Helpdesk Assistant started", extra={
        "providers": [p.provider_name for p in providers]
    })

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Assistant")
    await close_database()
    logger.info("Helpdesk Assistant shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk Assistant API",
    description="""
    ## Conversational Support Assistant

    ### Assistant Module

    - `POST /assistant/session` - Start or resume a chat session
    - `POST /assistant/message` - Send a message and get the assistant's reply
    - `POST /assistant/escalate` - Turn the conversation into a support ticket
    - `GET /assistant/session/{id}/messages` - Read a session transcript

    Replies are generated by the configured providers in priority order,
    falling back across models and providers on availability errors.

    ### Knowledge Module

    - `POST /knowledge/suggest` - Articles relevant to a ticket draft
    - `POST /knowledge/ai-solution` - Solution grounded in the knowledge base

    The authenticated user is identified by the `X-User-ID` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(assistant_router)
app.include_router(knowledge_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service health",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "providers": ["gemini", "openai"]
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database connectivity and the configured providers.
    """
    checks = {
        "database": "connected",
        "providers": [p.provider_name for p in getattr(request.app.state, "providers", [])]
    }

    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = f"error: {str(e)}"

    return {
        "status": "healthy" if checks["database"] == "connected" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Helpdesk Assistant",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "assistant": {
                "prefix": "/assistant",
                "endpoints": [
                    "POST /assistant/session - Start or resume a session",
                    "POST /assistant/message - Send a message",
                    "POST /assistant/escalate - Create a ticket from the chat",
                    "GET /assistant/session/{id}/messages - Get transcript"
                ]
            },
            "knowledge": {
                "prefix": "/knowledge",
                "endpoints": [
                    "POST /knowledge/suggest - Suggest articles",
                    "POST /knowledge/ai-solution - Grounded solution"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk_assistant.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
