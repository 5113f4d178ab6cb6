"""Handlers for the app's root and health check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from safir.metadata import Metadata, get_metadata
from safir.slack.webhook import SlackRouteErrorHandler

from ..config import Config
from ..dependencies.config import config_dependency

internal_router = APIRouter(route_class=SlackRouteErrorHandler)
"""Router to mount at the root of the application URL space."""

external_router = APIRouter(route_class=SlackRouteErrorHandler)
"""Router to mount into the application."""

__all__ = ["external_router", "internal_router"]


@internal_router.get(
    "/",
    description=(
        "Return metadata about the running application. This route is not"
        " exposed outside the cluster and therefore cannot be used by"
        " external clients."
    ),
    include_in_schema=False,
    response_model=Metadata,
    response_model_exclude_none=True,
    summary="Application metadata (internal)",
)
async def get_internal_index(
    config: Annotated[Config, Depends(config_dependency)],
) -> Metadata:
    return get_metadata(
        package_name="cluster-manager", application_name=config.name
    )


@external_router.get(
    "/healthz",
    summary="Health check",
    description="Does not require an active project.",
    tags=["health"],
)
async def get_healthz() -> str:
    return "cm rest server is healthy"
