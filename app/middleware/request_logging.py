# =====================================================
# FILE: app/middleware/request_logging.py
# Middleware for request logging with caller and timing
# =====================================================

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import time
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every API request with the caller, the entity touched, the status
    code and the response time. Writes go to INFO, reads to DEBUG.
    """

    # Endpoints to exclude from logging
    EXCLUDED_ENDPOINTS = [
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]

    ENTITY_SEGMENTS = {
        "projects": "project",
        "phases": "phase",
        "approvals": "approval",
        "deliverables": "deliverable",
        "messages": "message",
        "team-members": "team_member",
        "templates": "template",
        "auth": "session",
    }

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()

        if not self._should_log_request(request):
            return await call_next(request)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            raise

        elapsed_ms = round((time.time() - start_time) * 1000, 2)
        entity_type, entity_id = self._extract_entity_info(request)

        user_email = getattr(request.state, "user_email", "anonymous")

        message = (
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"[{entity_type}{'#' + entity_id if entity_id else ''}] "
            f"user={user_email} ip={self._get_client_ip(request)} {elapsed_ms}ms"
        )

        if response.status_code >= 500:
            logger.error(message)
        elif request.method in ("POST", "PUT", "PATCH", "DELETE") or response.status_code >= 400:
            logger.info(message)
        else:
            logger.debug(message)

        return response

    def _should_log_request(self, request: Request) -> bool:
        path = request.url.path
        for excluded in self.EXCLUDED_ENDPOINTS:
            if path.startswith(excluded):
                return False
        return True

    def _extract_entity_info(self, request: Request) -> tuple:
        """
        Extract entity type and ID from request path
        """
        parts = [p for p in request.url.path.split("/") if p]

        entity_type = "unknown"
        entity_id = None

        for i, part in enumerate(parts):
            if part in self.ENTITY_SEGMENTS:
                entity_type = self.ENTITY_SEGMENTS[part]
                if i + 1 < len(parts) and parts[i + 1].isdigit():
                    entity_id = parts[i + 1]
                break

        return entity_type, entity_id

    def _get_client_ip(self, request: Request) -> str:
        # Check for forwarded IP
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
