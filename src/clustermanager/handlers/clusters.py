"""Routes for clusters."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, status
from safir.slack.webhook import SlackRouteErrorHandler

from ..dependencies.context import RequestContext, context_dependency
from ..dependencies.project import project_dependency
from ..exceptions import InvalidRequestError, UnsupportedOperationError
from ..models.v1.cluster import (
    ClusterDetailInfo,
    ClusterInfoList,
    ClusterLabels,
    ClusterSpec,
    ClusterSummary,
    KubeconfigInfo,
    ProblemDetails,
)
from ..services.query import parse_list_query

router = APIRouter(route_class=SlackRouteErrorHandler)
"""Router to mount into the application."""

__all__ = ["router"]

_BAD_REQUEST = {"description": "Invalid request", "model": ProblemDetails}
_NOT_FOUND = {"description": "Cluster not found", "model": ProblemDetails}
_INTERNAL = {"description": "Internal error", "model": ProblemDetails}


@router.get(
    "/clusters",
    response_model=ClusterInfoList,
    responses={400: _BAD_REQUEST, 500: _INTERNAL},
    summary="List clusters",
    tags=["clusters"],
)
async def get_clusters(
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
    page_size: Annotated[
        int,
        Query(
            alias="pageSize",
            title="Page size",
            description="Maximum number of clusters to return, 0 for all",
            ge=0,
            le=100,
        ),
    ] = 20,
    offset: Annotated[
        int, Query(title="Offset", description="Index of first cluster", ge=0)
    ] = 0,
    order_by: Annotated[
        str | None,
        Query(
            alias="orderBy",
            title="Ordering",
            examples=["name desc, kubernetesVersion"],
        ),
    ] = None,
    filter_param: Annotated[
        str | None,
        Query(
            alias="filter",
            title="Filter",
            examples=["name=demo AND kubernetesVersion=v1.30"],
        ),
    ] = None,
) -> ClusterInfoList:
    query = parse_list_query(
        page_size=page_size,
        offset=offset,
        order_by=order_by,
        filter_param=filter_param,
    )
    view_service = context.factory.create_cluster_view_service()
    return await view_service.list_clusters(project, query)


@router.post(
    "/clusters",
    responses={400: _BAD_REQUEST, 500: _INTERNAL},
    status_code=status.HTTP_201_CREATED,
    summary="Create cluster",
    tags=["clusters"],
)
async def post_cluster(
    spec: ClusterSpec,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> str:
    cluster_service = context.factory.create_cluster_service()
    name = await cluster_service.create(project, spec)
    return f"successfully created cluster {name}"


@router.get(
    "/clusters/summary",
    response_model=ClusterSummary,
    responses={400: _BAD_REQUEST, 500: _INTERNAL},
    summary="Summarize cluster status",
    tags=["clusters"],
)
async def get_clusters_summary(
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> ClusterSummary:
    view_service = context.factory.create_cluster_view_service()
    return await view_service.summarize(project)


@router.get(
    "/clusters/{node_id}/clusterdetail",
    response_model=ClusterDetailInfo,
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    summary="Get cluster by node",
    tags=["clusters"],
)
async def get_cluster_by_node(
    node_id: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> ClusterDetailInfo:
    context.rebind_logger(node=node_id)
    view_service = context.factory.create_cluster_view_service()
    return await view_service.get_cluster_by_node(project, node_id)


@router.get(
    "/clusters/{name}",
    response_model=ClusterDetailInfo,
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    summary="Get cluster",
    tags=["clusters"],
)
async def get_cluster(
    name: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> ClusterDetailInfo:
    context.rebind_logger(name=name)
    view_service = context.factory.create_cluster_view_service()
    return await view_service.get_cluster(project, name)


@router.delete(
    "/clusters/{name}",
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete cluster",
    tags=["clusters"],
)
async def delete_cluster(
    name: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> None:
    context.rebind_logger(name=name)
    cluster_service = context.factory.create_cluster_service()
    await cluster_service.delete(project, name)


@router.get(
    "/clusters/{name}/kubeconfigs",
    response_model=KubeconfigInfo,
    responses={
        400: _BAD_REQUEST,
        401: {"description": "Unauthorized", "model": ProblemDetails},
        404: {"description": "Kubeconfig not found", "model": ProblemDetails},
        500: _INTERNAL,
    },
    summary="Get kubeconfig for cluster",
    tags=["clusters"],
)
async def get_cluster_kubeconfig(
    name: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
    authorization: Annotated[str | None, Header()] = None,
) -> KubeconfigInfo:
    context.rebind_logger(name=name)
    kubeconfig_service = context.factory.create_kubeconfig_service()
    return await kubeconfig_service.get_kubeconfig(
        project, name, authorization
    )


@router.put(
    "/clusters/{name}/labels",
    responses={400: _BAD_REQUEST, 404: _NOT_FOUND, 500: _INTERNAL},
    summary="Replace cluster labels",
    tags=["clusters"],
)
async def put_cluster_labels(
    name: str,
    labels: ClusterLabels,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> None:
    context.rebind_logger(name=name)
    if labels.labels is None:
        raise InvalidRequestError("no labels provided")
    cluster_service = context.factory.create_cluster_service()
    await cluster_service.update_labels(project, name, labels.labels)


@router.delete(
    "/clusters/{name}/nodes/{node_id}",
    responses={400: _BAD_REQUEST, 500: _INTERNAL},
    summary="Remove node from cluster",
    tags=["clusters"],
)
async def delete_cluster_node(
    name: str,
    node_id: str,
    project: Annotated[str, Depends(project_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
    force: Annotated[
        bool,
        Query(
            title="Force",
            description="Delete immediately without a grace period",
        ),
    ] = False,
) -> None:
    context.rebind_logger(name=name, node=node_id)
    cluster_service = context.factory.create_cluster_service()
    await cluster_service.delete_node(project, name, node_id, force=force)


@router.put(
    "/clusters/{name}/template",
    responses={
        400: _BAD_REQUEST,
        501: {"description": "Not implemented", "model": ProblemDetails},
    },
    summary="Change cluster template",
    tags=["clusters"],
)
async def put_cluster_template(
    name: str,
    project: Annotated[str, Depends(project_dependency)],
) -> None:
    msg = (
        "In-place cluster updates are not supported. Please delete the"
        " cluster and create a new one with updated cluster template."
    )
    raise UnsupportedOperationError(msg)
