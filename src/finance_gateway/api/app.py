"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finance_gateway import __version__
from finance_gateway.api.routes import accounts_router, health_router
from finance_gateway.bootstrap import build_runtime, configure_logging
from finance_gateway.config import get_settings
from finance_gateway.gateway.errors import GatewayError
from finance_gateway.gateway.facade import FinancialGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the gateway from settings unless one was injected."""
    if getattr(app.state, "gateway", None) is not None:
        yield
        return

    settings = get_settings()
    configure_logging(settings.log_level)
    runtime = await build_runtime(settings)
    app.state.gateway = runtime.gateway
    app.state.runtime = runtime
    try:
        yield
    finally:
        await runtime.aclose()


def create_app(gateway: FinancialGateway | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Tests pass a prebuilt ``gateway``; otherwise it is built at startup.
    """
    app = FastAPI(
        title="Finance Gateway API",
        description="Balance, statement and transfer operations across banks and PSPs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        """Map taxonomy errors onto their HTTP status."""
        if exc.http_status >= 500:
            logger.warning(
                "gateway_error",
                extra={"code": exc.code, "path": request.url.path},
            )
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{where}: {first.get('msg', 'invalid input')}" if where else "invalid input"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"code": "validation_error", "message": message},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"code": "internal_error", "message": "An unexpected error occurred"},
        )

    app.include_router(health_router)
    app.include_router(accounts_router, prefix="/api/v1")

    return app
