"""FastAPI server for the order service.

Main entry point for the API server.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.deps import OrderServices, build_services
from api.routes import health, orders
from connectors.erp_base import ERPError, ERPNotFoundError
from core.config import Settings
from core.errors import OrderError, OrderValidationError, SplitPersistenceError
from core.observability.logging import configure_logging, get_logger, with_correlation

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    owned = app.state.services is None
    if owned:
        app.state.services = await build_services(app.state.settings)
    await app.state.services.dispatcher.start()
    logger.info("Order API starting up...")

    yield

    logger.info("Order API shutting down...")
    if owned:
        await app.state.services.close()
        app.state.services = None
    else:
        await app.state.services.dispatcher.stop()


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ERPNotFoundError)
    async def not_found_handler(request: Request, exc: ERPNotFoundError):
        return JSONResponse(status_code=404, content={"error": "Sales order not found"})

    @app.exception_handler(OrderValidationError)
    async def validation_handler(request: Request, exc: OrderValidationError):
        return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg")
        else:
            message = "Invalid request"
        return JSONResponse(status_code=400, content={"success": False, "message": message})

    @app.exception_handler(SplitPersistenceError)
    async def split_persistence_handler(request: Request, exc: SplitPersistenceError):
        logger.error(f"Split recorded in ERP but not locally: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Server error",
                "message": "Split order was created but could not be recorded",
                "newOrderId": exc.new_order_id,
                "newOrderNumber": exc.new_order_number,
            },
        )

    @app.exception_handler(ERPError)
    async def erp_error_handler(request: Request, exc: ERPError):
        logger.error(f"ERP call failed: {exc} (HTTP {exc.status_code})")
        return JSONResponse(status_code=500, content={"error": "Server error"})

    @app.exception_handler(OrderError)
    async def order_error_handler(request: Request, exc: OrderError):
        logger.error(f"Order operation failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Server error"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Server error"})


def create_app(settings: Optional[Settings] = None, services: Optional[OrderServices] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration (read from the environment when omitted)
        services: Pre-built services; when omitted the lifespan builds them
    """
    settings = settings or (services.settings if services else Settings.from_env())
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title="Sales Order API",
        description="Sales order reconciliation, split and review workflow over NetSuite",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlate_request(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        with with_correlation(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    _register_error_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(orders.router, prefix="/api", tags=["Orders"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
