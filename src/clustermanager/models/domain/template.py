"""Models for cluster templates in the control plane."""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ...constants import (
    DEFAULT_TEMPLATE_LABEL,
    DEFAULT_TEMPLATE_VALUE,
    TEMPLATE_NAME_REGEX,
)
from ...exceptions import TemplateNameError
from .capi import ClusterNetwork
from .kubernetes import KubernetesResource, ObjectReference, ResourceSchema

__all__ = [
    "TEMPLATE_RESOURCE",
    "ClusterTemplate",
    "ClusterTemplateSpec",
    "ClusterTemplateStatus",
    "ControlPlaneProvider",
    "InfraProvider",
    "join_template_name",
    "split_template_name",
]

TEMPLATE_RESOURCE = ResourceSchema(
    group="edge-orchestrator.intel.com",
    version="v1alpha1",
    plural="clustertemplates",
    kind="ClusterTemplate",
)
"""Cluster template resource."""


class ControlPlaneProvider(StrEnum):
    """Control plane providers a template may select."""

    KUBEADM = "kubeadm"
    RKE2 = "rke2"
    K3S = "k3s"


class InfraProvider(StrEnum):
    """Infrastructure providers a template may select."""

    INTEL = "intel"
    DOCKER = "docker"


def join_template_name(name: str, version: str) -> str:
    """Build the resource name of a template from its name and version."""
    return f"{name}-{version}"


def split_template_name(resource_name: str) -> tuple[str, str]:
    """Split the resource name of a template into name and version.

    Parameters
    ----------
    resource_name
        Name of the ``ClusterTemplate`` object.

    Returns
    -------
    tuple of str
        Name and version (including the leading ``v``) of the template.

    Raises
    ------
    TemplateNameError
        Raised if the name does not end in a version.
    """
    match = TEMPLATE_NAME_REGEX.match(resource_name)
    if not match or not match.group("name"):
        msg = f"invalid clusterTemplate name format: {resource_name}"
        raise TemplateNameError(msg)
    return match.group("name"), match.group("version")


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )


class ClusterTemplateSpec(_CamelModel):
    """Desired state of a ``ClusterTemplate``."""

    control_plane_provider_type: str = ""
    infra_provider_type: str = ""
    kubernetes_version: str = ""
    cluster_configuration: str = ""
    cluster_network: ClusterNetwork | None = None
    cluster_labels: dict[str, str] | None = None


class ClusterTemplateStatus(_CamelModel):
    """Observed state of a ``ClusterTemplate``."""

    ready: bool = False
    cluster_class_ref: ObjectReference | None = None


class ClusterTemplate(KubernetesResource):
    """A cluster template.

    The template controller turns each template into a ``ClusterClass`` and
    reports it in ``status.clusterClassRef`` once it is ready.
    """

    resource: ClassVar = TEMPLATE_RESOURCE

    spec: ClusterTemplateSpec = ClusterTemplateSpec()
    status: ClusterTemplateStatus = ClusterTemplateStatus()

    @property
    def is_default(self) -> bool:
        """Whether this is the default template of its project."""
        label = self.labels.get(DEFAULT_TEMPLATE_LABEL)
        return label == DEFAULT_TEMPLATE_VALUE

    @property
    def is_ready(self) -> bool:
        """Whether clusters can be created from this template."""
        return self.status.ready and self.status.cluster_class_ref is not None

    @property
    def template_name(self) -> str:
        """Logical name of the template, without the version.

        Raises
        ------
        TemplateNameError
            Raised if the resource name does not end in a version.
        """
        return split_template_name(self.name)[0]

    @property
    def template_version(self) -> str:
        """Version of the template.

        Raises
        ------
        TemplateNameError
            Raised if the resource name does not end in a version.
        """
        return split_template_name(self.name)[1]
