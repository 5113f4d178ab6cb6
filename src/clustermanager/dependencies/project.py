"""Active project dependency for FastAPI.

Every tenant request names the project it acts on in the ``Activeprojectid``
header. The project ID is a UUID and is also the namespace of the project in
the control plane.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header

from ..constants import ZERO_UUID
from ..exceptions import InvalidProjectError
from .context import RequestContext, context_dependency

__all__ = ["project_dependency"]


async def project_dependency(
    context: Annotated[RequestContext, Depends(context_dependency)],
    activeprojectid: Annotated[
        str | None, Header(description="UUID of the active project")
    ] = None,
) -> str:
    """Return the validated project ID of the request."""
    try:
        project = str(UUID(activeprojectid or ""))
    except ValueError:
        project = None
    if not project or project == ZERO_UUID:
        context.logger.warning(
            "Invalid active project ID", project=activeprojectid
        )
        raise InvalidProjectError("no active project id provided")
    context.rebind_logger(namespace=project)
    return project
