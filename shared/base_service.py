"""
FastAPI scaffolding shared by services: lifecycle, request correlation,
health and metrics endpoints, and the error envelope.
"""

import os
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shared.config import ServiceConfig, get_config
from shared.errors import AccessLayerException
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector
from shared.tracing import configure_tracing, instrument_app

REQUEST_ID_HEADER = "X-Request-ID"

# Headers browsers send with supabase-style clients
CORS_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type", "x-request-id"]


class BaseService:
    """
    A FastAPI application plus the plumbing every service needs.

    Subclasses add routes in their constructor and override ``on_startup``,
    ``on_shutdown`` and ``_check_dependencies`` as needed.
    """

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)

        configure_logging(service_name, self.config.log_level, self.config.log_json)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        self.app = FastAPI(
            title=f"{service_name.replace('_', ' ').title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
            lifespan=self._lifespan,
        )
        if self.config.enable_tracing:
            configure_tracing(service_name, self.config.otel_exporter, self.config.enable_console_tracing)
            instrument_app(self.app)

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.resolved_cors_origins(),
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=CORS_ALLOWED_HEADERS,
        )
        self.app.middleware("http")(self._request_context)

        self.app.add_api_route("/health", self._health, methods=["GET"])
        self.app.add_api_route("/metrics", self._metrics_exposition, methods=["GET"])

        self.app.add_exception_handler(AccessLayerException, self._handle_service_error)
        self.app.add_exception_handler(RequestValidationError, self._handle_request_validation)
        self.app.add_exception_handler(Exception, self._handle_unexpected)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.on_startup()
        try:
            yield
        finally:
            await self.on_shutdown()

    async def on_startup(self):
        """Acquire resources. Override in subclasses."""

    async def on_shutdown(self):
        """Release resources. Override in subclasses."""

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Report dependency status. Raise to mark the service unhealthy."""
        return {}

    def _is_healthy(self, dependencies: Dict[str, Any]) -> bool:
        """Whether the reported dependencies allow serving traffic."""
        return True

    async def _request_context(self, request: Request, call_next):
        started = time.time()
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            response = await call_next(request)
        finally:
            clear_context()

        elapsed = time.time() - started
        response.headers[REQUEST_ID_HEADER] = request_id
        self.metrics.record_http_request(request.method, request.url.path, response.status_code, elapsed)
        self.logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
            request_id=request_id
        )
        return response

    async def _health(self):
        try:
            dependencies = await self._check_dependencies()
        except Exception as e:
            self.logger.error("Health check failed", error=str(e))
            self.metrics.record_health_check("error")
            return JSONResponse(
                status_code=503,
                content={"service": self.service_name, "status": "error", "error": str(e)}
            )

        status = "ok" if self._is_healthy(dependencies) else "degraded"
        self.metrics.record_health_check(status)
        body = {
            "service": self.service_name,
            "status": status,
            "uptime_seconds": round(time.time() - self._start_time, 3),
            "dependencies": dependencies,
            "version": "1.0.0",
            "commit": os.getenv("GIT_COMMIT", "unknown")
        }
        if status != "ok":
            self.logger.warning("Health check degraded", dependencies=dependencies)
            return JSONResponse(status_code=503, content=body)
        return body

    async def _metrics_exposition(self):
        return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    async def _handle_service_error(self, request: Request, exc: AccessLayerException):
        log = self.logger.error if exc.status_code >= 500 else self.logger.warning
        log("Request failed", code=exc.code, message=exc.message, details=exc.details, path=request.url.path)
        self.metrics.record_error(exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

    async def _handle_request_validation(self, request: Request, exc: RequestValidationError):
        """Report malformed bodies and parameters in the service error envelope."""
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        message = "; ".join(problems) or "Invalid request"

        self.logger.warning("Request validation failed", path=request.url.path, error=message)
        self.metrics.record_error("VALIDATION_ERROR")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": message, "code": "VALIDATION_ERROR", "details": {}}
        )

    async def _handle_unexpected(self, request: Request, exc: Exception):
        self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        self.metrics.record_error("INTERNAL_ERROR")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}
        )

    def run(self):
        """Serve the application with uvicorn."""
        import uvicorn
        uvicorn.run(self.app, host=self.config.host, port=self.config.port, log_level=self.config.log_level.lower())
