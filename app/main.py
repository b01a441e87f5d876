# =====================================================
# FILE: app/main.py
# Client Delivery API - application entry point
# =====================================================

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from app.core.config import settings
from app.core.database import init_db, test_connection
from app.core.exceptions import DeliveryError
from app.middleware.request_logging import RequestLoggingMiddleware
from app.api.api_v1 import (
    approvals,
    auth,
    deliverables,
    messages,
    phases,
    projects,
    team,
    templates,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME}")
    if settings.AUTO_CREATE_TABLES:
        init_db()
    yield
    logger.info(f"Stopping {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Client delivery portal: projects, gated phases, approvals and message threads",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =====================================================
# ERROR HANDLERS
# =====================================================

@app.exception_handler(DeliveryError)
async def delivery_error_handler(request: Request, exc: DeliveryError):
    """Render domain errors as {"error": ..., "code": ...}"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code}
    )


# =====================================================
# ROUTERS
# =====================================================

app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(phases.router)
app.include_router(approvals.router)
app.include_router(deliverables.router)
app.include_router(messages.router)
app.include_router(team.router)
app.include_router(templates.router)


@app.get("/health", tags=["health"])
async def health_check():
    database_ok = test_connection()
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "degraded",
            "database": "connected" if database_ok else "unavailable",
            "app": settings.APP_NAME
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
