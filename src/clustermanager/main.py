"""The main application factory for the cluster manager service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from importlib.metadata import metadata, version

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from safir.dependencies.http_client import http_client_dependency
from safir.fastapi import ClientRequestError
from safir.kubernetes import initialize_kubernetes
from safir.logging import configure_logging, configure_uvicorn_logging
from safir.middleware.x_forwarded import XForwardedMiddleware
from safir.slack.blockkit import SlackException
from safir.slack.webhook import SlackRouteErrorHandler

from .dependencies.config import config_dependency
from .dependencies.context import context_dependency
from .handlers import clusters, index, templates

__all__ = ["create_app"]


async def _client_request_error_handler(
    request: Request, exc: ClientRequestError
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content={"message": str(exc)}
    )


async def _slack_exception_handler(
    request: Request, exc: SlackException
) -> JSONResponse:
    logger = structlog.get_logger(__name__)
    logger.error("Request failed", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": str(exc)},
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg', 'invalid')}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "; ".join(messages) or "invalid request"},
    )


def create_app() -> FastAPI:
    """Create the FastAPI application.

    This is in a function rather than using a global variable (as is more
    typical for FastAPI) because we want to defer configuration loading until
    after the test suite has a chance to override the path to the
    configuration file.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await initialize_kubernetes()
        config = config_dependency.config
        await context_dependency.initialize(config)

        yield

        await context_dependency.aclose()
        await http_client_dependency.aclose()

    # Configure logging.
    config = config_dependency.config
    configure_logging(
        name="clustermanager",
        profile=config.log_profile,
        log_level=config.log_level,
    )
    configure_uvicorn_logging(config.log_level)

    # Create the application object.
    app = FastAPI(
        title=config.name,
        description=metadata("cluster-manager")["Summary"],
        version=version("cluster-manager"),
        openapi_url=f"{config.path_prefix}/openapi.json",
        docs_url=f"{config.path_prefix}/docs",
        redoc_url=f"{config.path_prefix}/redoc",
        lifespan=lifespan,
    )

    # Attach the routers.
    app.include_router(index.internal_router)
    app.include_router(index.external_router, prefix=config.path_prefix)
    app.include_router(clusters.router, prefix=config.path_prefix)
    app.include_router(templates.router, prefix=config.path_prefix)

    # Register middleware.
    app.add_middleware(XForwardedMiddleware)

    # Configure Slack alerts.
    logger = structlog.get_logger(__name__)
    if config.slack_webhook:
        webhook = config.slack_webhook
        SlackRouteErrorHandler.initialize(webhook, config.name, logger)
        logger.debug("Initialized Slack webhook")

    # Configure exception handlers. Every error reply carries only a message.
    app.exception_handler(ClientRequestError)(_client_request_error_handler)
    app.exception_handler(SlackException)(_slack_exception_handler)
    app.exception_handler(RequestValidationError)(_validation_error_handler)

    return app
