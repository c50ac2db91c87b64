"""
FastAPI application entry point for the Telehealth Admin Service.

This module configures and creates the FastAPI application with:
- Structured JSON Logging: Request/response logging with request ids
- Dependency Injection: Services and repositories injected via Depends()
- Exception Handling: Consistent error responses via setup_exception_handlers()
- CORS Middleware: The admin dashboard runs on its own origin
- Lifespan Management: Database initialization, monitoring auto-flush start/stop

Architecture Overview:
    ┌─────────────────────────────────────────────────────────────┐
    │                     FastAPI Application                      │
    ├─────────────────────────────────────────────────────────────┤
    │  Middleware Stack (order matters!)                          │
    │    ├── LoggingMiddleware  - Request logging & latency       │
    │    └── CORSMiddleware     - Cross-origin support            │
    ├─────────────────────────────────────────────────────────────┤
    │  Routers (api/routers/)                                     │
    │    ├── health.py       - /, /health, /ready, /metrics       │
    │    ├── collections.py  - /api/v1/{collection} CRUD          │
    │    ├── forms.py        - Dynamic forms & submissions        │
    │    ├── audit.py        - Read-only audit log (admin)        │
    │    ├── monitoring.py   - Client events, errors, metrics     │
    │    └── channel.py      - /api/channel polling endpoint      │
    ├─────────────────────────────────────────────────────────────┤
    │  Services (services/)     ← Injected via Depends()          │
    │    ├── CollectionService / FormService / AuditService       │
    │    ├── MonitoringService / ErrorHandler (shared)            │
    │    └── ChannelHub (shared)                                  │
    ├─────────────────────────────────────────────────────────────┤
    │  Repositories (repositories/)   ← Injected into Services    │
    │    ├── DocumentRepository       - Any collection            │
    │    └── AuditLogRepository       - Append-only audit log     │
    ├─────────────────────────────────────────────────────────────┤
    │  Database (SQLite document store) + QueryCache              │
    └─────────────────────────────────────────────────────────────┘
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from telehealth_svc.api.routers import (
    audit_router,
    channel_router,
    collection_routers,
    forms_router,
    health_router,
    monitoring_router,
)
from telehealth_svc.core.config import API_HOST, API_PORT, API_RELOAD, LOG_JSON, LOG_LEVEL
from telehealth_svc.core.dependencies import get_database, get_monitoring_service
from telehealth_svc.core.exceptions import setup_exception_handlers
from telehealth_svc.core.logging_config import setup_logging
from telehealth_svc.core.middleware import LoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        - Configures structured logging
        - Initializes the document store (triggers schema creation)
        - Starts the monitoring auto-flush task

    Shutdown:
        - Stops the auto-flush task and flushes what is still queued
    """
    setup_logging(level=LOG_LEVEL, json_format=LOG_JSON)

    logger = logging.getLogger(__name__)
    logger.info("Starting Telehealth Admin Service...")

    db = get_database()
    logger.info("Database initialized", extra={"db_path": db.db_path})

    monitoring = get_monitoring_service()
    monitoring.start()

    yield

    logger.info("Telehealth Admin Service shutting down...")
    result = await monitoring.stop()
    logger.info("Final monitoring flush", extra=result.to_dict())


def create_app() -> FastAPI:
    app = FastAPI(
        title="Telehealth Admin Service",
        description="Backend for the telehealth administration dashboard: patient and order records, "
                    "dynamic intake forms with conditional validation, audit logging and client monitoring.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    setup_exception_handlers(app, catch_all=True)

    # Middleware runs in reverse order of registration: CORS is innermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(health_router)
    for router in collection_routers:
        app.include_router(router)
    app.include_router(forms_router)
    app.include_router(audit_router)
    app.include_router(monitoring_router)
    app.include_router(channel_router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "telehealth_svc.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD
    )


if __name__ == "__main__":
    run()
