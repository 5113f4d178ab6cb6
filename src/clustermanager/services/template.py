"""Management and resolution of cluster templates."""

from __future__ import annotations

from structlog.stdlib import BoundLogger

from ..constants import DEFAULT_TEMPLATE_LABEL, DEFAULT_TEMPLATE_VALUE
from ..exceptions import (
    ConflictError,
    InternalError,
    InvalidRequestError,
    KubernetesError,
    NotFoundError,
    TemplateNameError,
)
from ..models.domain.query import ListQuery
from ..models.domain.template import ClusterTemplate, join_template_name
from ..models.v1.template import (
    DefaultTemplateInfo,
    TemplateInfo,
    TemplateInfoList,
    VersionList,
)
from ..storage.kubernetes.template import ClusterTemplateStorage
from .query import FieldGetters, apply_query

__all__ = ["TemplateService"]

_TEMPLATE_FIELDS: FieldGetters[TemplateInfo] = {
    "name": lambda t: t.name,
    "version": lambda t: t.version,
    "kubernetesVersion": lambda t: t.kubernetes_version,
}


class TemplateService:
    """Manage the cluster templates of projects.

    Parameters
    ----------
    template_storage
        Storage for ``ClusterTemplate`` objects.
    logger
        Logger to use.
    """

    def __init__(
        self, template_storage: ClusterTemplateStorage, logger: BoundLogger
    ) -> None:
        self._storage = template_storage
        self._logger = logger

    async def delete_template(
        self, project: str, name: str, version: str
    ) -> None:
        """Delete one version of a template.

        Parameters
        ----------
        project
            Project owning the template.
        name
            Name of the template.
        version
            Version of the template.

        Raises
        ------
        ConflictError
            Raised if the template is still used by a cluster.
        InternalError
            Raised if the deletion failed for any other reason.
        InvalidRequestError
            Raised if the control plane rejected the request.
        NotFoundError
            Raised if the template does not exist.
        """
        resource_name = join_template_name(name, version)
        try:
            await self._storage.delete(resource_name, project)
        except KubernetesError as e:
            if e.is_bad_request:
                msg = f"Template '{resource_name}' is invalid: {e}"
                raise InvalidRequestError(msg) from e
            elif e.is_not_found:
                msg = f"Template '{resource_name}' not found: {e}"
                raise NotFoundError(msg) from e
            elif e.is_conflict:
                msg = f"Template '{resource_name}' is in use: {e}"
                raise ConflictError(msg) from e
            msg = f"Failed to delete template '{resource_name}': {e}"
            raise InternalError(msg) from e
        self._logger.info(
            "Deleted cluster template", namespace=project, name=resource_name
        )

    async def get_template(
        self, project: str, name: str, version: str
    ) -> TemplateInfo:
        """Retrieve one version of a template.

        Raises
        ------
        InternalError
            Raised if the stored template cannot be converted.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        NotFoundError
            Raised if the template does not exist.
        """
        resource_name = join_template_name(name, version)
        template = await self._storage.read(
            resource_name, project, cached=True
        )
        if not template:
            msg = f"clusterTemplate '{resource_name}' not found"
            raise NotFoundError(msg)
        return self._to_info(template)

    async def import_template(self, project: str, info: TemplateInfo) -> None:
        """Create a new template version.

        Parameters
        ----------
        project
            Project in which to create the template.
        info
            Template to create.

        Raises
        ------
        ConflictError
            Raised if that version of the template already exists.
        InvalidRequestError
            Raised if the control plane rejected the template.
        KubernetesError
            Raised on any other failure to talk to Kubernetes.
        """
        template = info.to_domain()
        try:
            await self._storage.create(project, template)
        except KubernetesError as e:
            if e.is_bad_request:
                raise InvalidRequestError(str(e)) from e
            elif e.is_conflict:
                msg = f"template {info.name} already exists"
                raise ConflictError(msg) from e
            raise
        self._logger.info(
            "Created cluster template", namespace=project, name=template.name
        )

    async def latest_version(self, project: str, name: str) -> str:
        """Find the latest version of a template.

        Versions are compared as strings, so ``v0.10.0`` sorts before
        ``v0.9.0``.

        Parameters
        ----------
        project
            Project owning the template.
        name
            Name of the template.

        Returns
        -------
        str
            Latest version.

        Raises
        ------
        InternalError
            Raised if a template in the project has an unparseable name.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        NotFoundError
            Raised if there are no versions of the template.
        """
        versions = await self._list_versions(project, name)
        return sorted(versions)[-1]

    async def list_templates(
        self, project: str, query: ListQuery, *, include_default: bool = False
    ) -> TemplateInfoList:
        """List the templates of a project.

        Parameters
        ----------
        project
            Project whose templates to list.
        query
            Filtering, ordering, and pagination to apply.
        include_default
            Whether to also report the default template. A project without
            a default template is not an error.

        Returns
        -------
        TemplateInfoList
            Requested page of templates.

        Raises
        ------
        InternalError
            Raised if the project has multiple default templates or a stored
            template cannot be converted.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        """
        default = None
        if include_default:
            default = await self._get_default_info(project)
        templates = await self._storage.list(project, cached=True)
        infos = [self._to_info(t) for t in templates]
        if not infos and not default:
            return TemplateInfoList()
        page, total = apply_query(infos, query, _TEMPLATE_FIELDS)
        return TemplateInfoList(
            default_template_info=default,
            template_info_list=page,
            total_elements=total,
        )

    async def list_versions(self, project: str, name: str) -> VersionList:
        """List the versions of a template.

        Raises
        ------
        InternalError
            Raised if a template in the project has an unparseable name.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        NotFoundError
            Raised if there are no versions of the template.
        """
        versions = await self._list_versions(project, name)
        return VersionList(version_list=versions)

    async def resolve(self, project: str, name: str) -> ClusterTemplate:
        """Find the template to create a cluster from.

        Parameters
        ----------
        project
            Project in which the cluster will be created.
        name
            Resource name (name and version) of the template, or the empty
            string to use the default template of the project.

        Returns
        -------
        ClusterTemplate
            Template, which is guaranteed to be ready.

        Raises
        ------
        InternalError
            Raised if the template does not exist, is not ready, or the
            default template is missing or ambiguous.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        """
        if name:
            template = await self._storage.read(name, project, cached=True)
            if not template:
                raise InternalError(f"clusterTemplate '{name}' not found")
        else:
            self._logger.info("Template not provided, using default template")
            template = await self._get_default(project)
            if not template:
                raise InternalError("default template not found")
        if not template.is_ready:
            raise InternalError(f"template {template.name} is not ready")
        return template

    async def set_default(
        self, project: str, name: str, version: str | None = None
    ) -> None:
        """Make a template the default template of its project.

        Every other template is unmarked first. If that partly fails, more
        than one template may remain marked until the request is retried.

        Parameters
        ----------
        project
            Project owning the template.
        name
            Name of the template.
        version
            Version to make the default. If not given, use the latest
            version.

        Raises
        ------
        InternalError
            Raised if the latest version could not be determined or the
            templates could not be updated.
        InvalidRequestError
            Raised if the control plane rejected the request.
        NotFoundError
            Raised if the template does not exist.
        """
        if not version:
            try:
                version = await self.latest_version(project, name)
            except (InternalError, KubernetesError, NotFoundError) as e:
                msg = "failed to fetch and select latest version"
                self._logger.exception(msg, namespace=project, name=name)
                raise InternalError(msg) from e
        resource_name = join_template_name(name, version)
        logger = self._logger.bind(namespace=project, name=resource_name)
        try:
            await self._set_default(project, resource_name)
        except KubernetesError as e:
            logger.exception("Failed to set default template")
            if e.is_bad_request:
                msg = "failed to set default template"
                raise InvalidRequestError(msg) from e
            elif e.is_not_found:
                raise NotFoundError("resource not found") from e
            raise InternalError("unexpected error occurred") from e
        logger.info("Set default cluster template")

    async def _get_default(self, project: str) -> ClusterTemplate | None:
        templates = await self._storage.list_defaults(project, cached=True)
        if len(templates) > 1:
            raise InternalError("multiple default templates found")
        return templates[0] if templates else None

    async def _get_default_info(
        self, project: str
    ) -> DefaultTemplateInfo | None:
        template = await self._get_default(project)
        if not template:
            self._logger.warning(
                "Default template not found", namespace=project
            )
            return None
        try:
            return DefaultTemplateInfo(
                name=template.template_name, version=template.template_version
            )
        except (TemplateNameError, ValueError) as e:
            msg = f"failed to convert default template: {e}"
            raise InternalError(msg) from e

    async def _list_versions(self, project: str, name: str) -> list[str]:
        templates = await self._storage.list(project, cached=True)
        try:
            versions = [
                t.template_version
                for t in templates
                if t.template_name == name
            ]
        except TemplateNameError as e:
            raise InternalError(str(e)) from e
        if not versions:
            msg = f"clusterTemplate with name '{name}' not found"
            raise NotFoundError(msg)
        return versions

    async def _set_default(self, project: str, resource_name: str) -> None:
        template = await self._storage.read(resource_name, project)
        if not template:
            raise NotFoundError("resource not found")
        if template.is_default:
            return
        for other in await self._storage.list_defaults(project):
            await self._storage.remove_label(
                other.name, project, DEFAULT_TEMPLATE_LABEL
            )
            self._logger.info(
                "Unset default cluster template",
                namespace=project,
                name=other.name,
            )
        await self._storage.set_label(
            resource_name,
            project,
            DEFAULT_TEMPLATE_LABEL,
            DEFAULT_TEMPLATE_VALUE,
        )

    def _to_info(self, template: ClusterTemplate) -> TemplateInfo:
        try:
            return TemplateInfo.from_domain(template)
        except (TemplateNameError, ValueError) as e:
            msg = f"failed to convert template to response object: {e}"
            self._logger.exception(msg, name=template.name)
            raise InternalError(msg) from e
