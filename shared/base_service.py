"""
Base service class for the blog offline cache service.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from typing import Dict, Optional
import time
import os

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context, request_id_var
from shared.metrics import get_metrics_collector
from shared.errors import OfflineCacheException


# Dependency states that make /health report "degraded" instead of "ok"
DEGRADED_STATES = frozenset({"unavailable", "offline", "error"})

# Requests to these paths are logged at debug level
QUIET_PATHS = frozenset({"/health", "/metrics"})


class BaseService:
    """Base service class with common functionality.

    Subclasses register their own routes in ``__init__`` after calling
    ``super().__init__`` and override ``on_startup``/``on_shutdown`` and
    ``_check_dependencies`` as needed.
    """

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(f"offline.{service_name}")
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level, json_logs=self.config.log_json)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_lifecycle()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Blog offline cache - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )

    def _setup_middleware(self):
        """Set up CORS and the request-id/timing middleware."""

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            start_time = time.time()
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            # The 500 handler runs outside this middleware, after clear_context()
            request.state.request_id = request_id

            try:
                response = await call_next(request)
            finally:
                clear_context()

            duration = time.time() - start_time
            response.headers["X-Request-ID"] = request_id
            self._record_request(request, response.status_code, duration, request_id)
            return response

    def _record_request(self, request: Request, status_code: int, duration: float, request_id: str) -> None:
        # Label by route template; the proxy catch-all would otherwise mint one series per URL
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        self.metrics.record_http_request(
            method=request.method,
            endpoint=endpoint,
            status_code=status_code,
            duration=duration,
        )

        log = self.logger.debug if request.url.path in QUIET_PATHS else self.logger.info
        log(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(duration * 1000, 2),
            request_id=request_id,
        )

    def _setup_routes(self):
        """Set up health, metrics and error handlers."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": str(e)
                    }
                )

            status = "degraded" if DEGRADED_STATES.intersection(dependencies.values()) else "ok"
            self.metrics.record_health_check(status)
            return {
                "service": self.service_name,
                "status": status,
                "uptime_seconds": self._get_uptime(),
                "dependencies": dependencies,
                "cache_version": self.config.cache_version,
                "version": "1.0.0",
                "commit": os.getenv("GIT_COMMIT", "unknown")
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(self.metrics.registry),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(OfflineCacheException)
        async def offline_cache_exception_handler(request: Request, exc: OfflineCacheException):
            self.logger.warning(
                "Request failed",
                path=request.url.path,
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response(self._request_id(request)).model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={
                    "request_id": self._request_id(request),
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    @staticmethod
    def _request_id(request: Request) -> Optional[str]:
        return getattr(request.state, "request_id", None) or request_id_var.get()

    def _setup_lifecycle(self):
        @self.app.on_event("startup")
        async def startup():
            await self.on_startup()

        @self.app.on_event("shutdown")
        async def shutdown():
            await self.on_shutdown()

    async def on_startup(self) -> None:
        """Called once when the app starts serving."""

    async def on_shutdown(self) -> None:
        """Called once when the app stops."""

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
