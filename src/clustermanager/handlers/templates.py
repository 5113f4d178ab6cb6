"""Routes for cluster templates."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from safir.slack.webhook import SlackRouteErrorHandler

from ..dependencies.context import RequestContext, context_dependency
from ..dependencies.project import project_dependency
from ..models.v1.cluster import ProblemDetails
from ..models.v1.template import (
    DefaultTemplateInfo,
    TemplateInfo,
    TemplateInfoList,
    VersionList,
)
from ..services.query import parse_list_query

router = APIRouter(route_class=SlackRouteErrorHandler)
"""Router to mount into the application."""

__all__ = ["router"]

_BAD_REQUEST = {"description": "Invalid request", "model": ProblemDetails}
_NOT_FOUND = {"description": "Template not found", "model": ProblemDetails}
_CONFLICT = {"description": "Template conflict", "model": ProblemDetails}
_INTERNAL = {"description": "Internal error", "model": ProblemDetails}


@router.get(
    "/templates",
    response_model=TemplateInfoList,
    responses={400: _BAD_REQUEST, 500: _INTERNAL},
    summary="List templates",
    tags=["templates"],
)
async def get_templates(
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
    default: Annotated[
        bool,
        Query(
            title="Include default",
            description="Whether to also return the default template",
        ),
    ] = False,
    page_size: Annotated[
        int,
        Query(
            alias="pageSize",
            title="Page size",
            description="Maximum number of templates to return, 0 for all",
            ge=0,
            le=100,
        ),
    ] = 20,
    offset: Annotated[
        int,
        Query(title="Offset", description="Index of first template", ge=0),
    ] = 0,
    order_by: Annotated[
        str | None,
        Query(alias="orderBy", title="Ordering", examples=["version desc"]),
    ] = None,
    filter_param: Annotated[
        str | None,
        Query(alias="filter", title="Filter", examples=["name=baseline"]),
    ] = None,
) -> TemplateInfoList:
    query = parse_list_query(
        page_size=page_size,
        offset=offset,
        order_by=order_by,
        filter_param=filter_param,
    )
    template_service = context.factory.create_template_service()
    return await template_service.list_templates(
        project, query, include_default=default
    )


@router.post(
    "/templates",
    responses={400: _BAD_REQUEST, 409: _CONFLICT, 500: _INTERNAL},
    status_code=status.HTTP_201_CREATED,
    summary="Import template",
    tags=["templates"],
)
async def post_template(
    template: TemplateInfo,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> str:
    context.rebind_logger(name=template.resource_name)
    template_service = context.factory.create_template_service()
    await template_service.import_template(project, template)
    return f"successfully imported template {template.name}"


@router.put(
    "/templates/{name}/default",
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    summary="Set default template",
    tags=["templates"],
)
async def put_default_template(
    name: str,
    default: DefaultTemplateInfo,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> None:
    context.rebind_logger(name=name)
    template_service = context.factory.create_template_service()
    await template_service.set_default(project, name, default.version)


@router.get(
    "/templates/{name}/versions",
    response_model=VersionList,
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    summary="List template versions",
    tags=["templates"],
)
async def get_template_versions(
    name: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> VersionList:
    template_service = context.factory.create_template_service()
    return await template_service.list_versions(project, name)


@router.get(
    "/templates/{name}/{version}",
    response_model=TemplateInfo,
    response_model_exclude_none=True,
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    summary="Get template",
    tags=["templates"],
)
async def get_template(
    name: str,
    version: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> TemplateInfo:
    template_service = context.factory.create_template_service()
    return await template_service.get_template(project, name, version)


@router.delete(
    "/templates/{name}/{version}",
    responses={
        400: _BAD_REQUEST,
        404: _NOT_FOUND,
        409: _CONFLICT,
        500: _INTERNAL,
    },
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template",
    tags=["templates"],
)
async def delete_template(
    name: str,
    version: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> None:
    context.rebind_logger(name=f"{name}-{version}")
    template_service = context.factory.create_template_service()
    await template_service.delete_template(project, name, version)
