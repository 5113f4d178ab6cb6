"""API-visible models for cluster templates."""

from __future__ import annotations

import json
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from ...constants import TEMPLATE_DESCRIPTION_ANNOTATION
from ..domain.capi import ClusterNetwork, NetworkRanges
from ..domain.kubernetes import ObjectMetadata
from ..domain.template import (
    ClusterTemplate,
    ClusterTemplateSpec,
    ControlPlaneProvider,
    InfraProvider,
    join_template_name,
)

__all__ = [
    "ClusterNetworkInfo",
    "DefaultTemplateInfo",
    "NetworkRangesInfo",
    "TemplateInfo",
    "TemplateInfoList",
    "VersionList",
]

_CIDR_PATTERN = (
    r"^(?:[0-9]{1,3}\.){3}[0-9]{1,3}/(?:[0-9]|[1-2][0-9]|3[0-2])$"
)
_KUBERNETES_VERSION_PATTERN = (
    r"^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)
_LABEL_VALUE_PATTERN = r"^$|^[a-zA-Z0-9][a-zA-Z0-9.-]*[a-zA-Z0-9]$"
_TEMPLATE_NAME_PATTERN = (
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)
_TEMPLATE_VERSION_PATTERN = (
    r"^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(-dev)?$"
)


class NetworkRangesInfo(BaseModel):
    """A list of CIDR blocks."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    cidr_blocks: Annotated[
        list[Annotated[str, StringConstraints(pattern=_CIDR_PATTERN)]],
        Field(title="CIDR blocks", examples=[["192.168.0.0/16"]]),
    ]


class ClusterNetworkInfo(BaseModel):
    """Pod and service networks of clusters created from a template."""

    pods: Annotated[
        NetworkRangesInfo | None, Field(title="Pod network")
    ] = None

    services: Annotated[
        NetworkRangesInfo | None, Field(title="Service network")
    ] = None

    @classmethod
    def from_domain(cls, network: ClusterNetwork) -> Self:
        """Convert the network stored in a template object."""
        pods = services = None
        if network.pods:
            pods = NetworkRangesInfo(cidr_blocks=network.pods.cidr_blocks)
        if network.services:
            blocks = network.services.cidr_blocks
            services = NetworkRangesInfo(cidr_blocks=blocks)
        return cls(pods=pods, services=services)

    def to_domain(self) -> ClusterNetwork:
        """Convert to the network stored in a template object."""
        pods = services = None
        if self.pods:
            pods = NetworkRanges(cidr_blocks=self.pods.cidr_blocks)
        if self.services:
            services = NetworkRanges(cidr_blocks=self.services.cidr_blocks)
        return ClusterNetwork(pods=pods, services=services)


class TemplateInfo(BaseModel):
    """A cluster template as seen through the API."""

    model_config = ConfigDict(populate_by_name=True)

    name: Annotated[
        str,
        Field(
            title="Template name",
            min_length=1,
            max_length=63,
            pattern=_TEMPLATE_NAME_PATTERN,
            examples=["baseline-kubeadm"],
        ),
    ]

    version: Annotated[
        str,
        Field(
            title="Template version",
            min_length=1,
            max_length=63,
            pattern=_TEMPLATE_VERSION_PATTERN,
            examples=["v0.1.0"],
        ),
    ]

    kubernetes_version: Annotated[
        str,
        Field(
            title="Kubernetes version",
            alias="kubernetesVersion",
            min_length=1,
            max_length=63,
            pattern=_KUBERNETES_VERSION_PATTERN,
            examples=["v1.30.6+rke2r1"],
        ),
    ]

    description: Annotated[
        str | None,
        Field(title="Description", min_length=1, max_length=4096),
    ] = None

    control_plane_provider_type: Annotated[
        ControlPlaneProvider,
        Field(
            title="Control plane provider",
            alias="controlplaneprovidertype",
        ),
    ] = ControlPlaneProvider.RKE2

    infra_provider_type: Annotated[
        InfraProvider,
        Field(title="Infrastructure provider", alias="infraprovidertype"),
    ] = InfraProvider.INTEL

    cluster_configuration: Annotated[
        dict[str, Any] | None,
        Field(
            title="Control plane configuration",
            description=(
                "Control plane template passed through to the cluster class"
            ),
            alias="clusterconfiguration",
        ),
    ] = None

    cluster_network: Annotated[
        ClusterNetworkInfo | None,
        Field(title="Cluster network", alias="clusterNetwork"),
    ] = None

    cluster_labels: Annotated[
        dict[
            str,
            Annotated[
                str,
                StringConstraints(
                    max_length=63, pattern=_LABEL_VALUE_PATTERN
                ),
            ],
        ]
        | None,
        Field(
            title="Cluster labels",
            description=(
                "Labels attached to every cluster created from the template"
            ),
            alias="cluster-labels",
            examples=[{"default-extension": "demo"}],
        ),
    ] = None

    @property
    def resource_name(self) -> str:
        """Name of the ``ClusterTemplate`` object for this template."""
        return join_template_name(self.name, self.version)

    @classmethod
    def from_domain(cls, template: ClusterTemplate) -> Self:
        """Convert a template object read from the control plane.

        Parameters
        ----------
        template
            Template object.

        Returns
        -------
        TemplateInfo
            Corresponding API model.

        Raises
        ------
        TemplateNameError
            Raised if the object name does not end in a version.
        ValueError
            Raised if the stored template does not convert to a valid API
            model, including if the cluster configuration is not valid JSON.
        """
        spec = template.spec
        configuration = None
        if spec.cluster_configuration:
            configuration = json.loads(spec.cluster_configuration)
        network = None
        if spec.cluster_network:
            network = ClusterNetworkInfo.from_domain(spec.cluster_network)
        description = template.annotations.get(TEMPLATE_DESCRIPTION_ANNOTATION)
        return cls(
            name=template.template_name,
            version=template.template_version,
            kubernetes_version=spec.kubernetes_version,
            description=description or None,
            control_plane_provider_type=spec.control_plane_provider_type,
            infra_provider_type=spec.infra_provider_type,
            cluster_configuration=configuration,
            cluster_network=network,
            cluster_labels=spec.cluster_labels,
        )

    def to_domain(self) -> ClusterTemplate:
        """Convert to a template object to create in the control plane."""
        annotations = {}
        if self.description:
            annotations[TEMPLATE_DESCRIPTION_ANNOTATION] = self.description
        configuration = ""
        if self.cluster_configuration is not None:
            configuration = json.dumps(self.cluster_configuration)
        network = None
        if self.cluster_network:
            network = self.cluster_network.to_domain()
        return ClusterTemplate(
            metadata=ObjectMetadata(
                name=self.resource_name, annotations=annotations
            ),
            spec=ClusterTemplateSpec(
                control_plane_provider_type=self.control_plane_provider_type,
                infra_provider_type=self.infra_provider_type,
                kubernetes_version=self.kubernetes_version,
                cluster_configuration=configuration,
                cluster_network=network,
                cluster_labels=self.cluster_labels,
            ),
        )


class DefaultTemplateInfo(BaseModel):
    """Name and version of the default template of a project."""

    name: Annotated[
        str | None,
        Field(
            title="Template name",
            description=(
                "Ignored when setting the default, where the name comes from"
                " the URL"
            ),
            min_length=1,
            max_length=50,
            pattern=r"^[a-zA-Z0-9][a-zA-Z0-9.-]*[a-zA-Z0-9]$",
            examples=["baseline"],
        ),
    ] = None

    version: Annotated[
        str,
        Field(
            title="Template version",
            description="If empty, the latest version becomes the default",
            max_length=63,
            pattern=r"^$|^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$",
            examples=["v0.1.0"],
        ),
    ]


class TemplateInfoList(BaseModel):
    """One page of the template list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    default_template_info: Annotated[
        DefaultTemplateInfo | None,
        Field(
            title="Default template",
            description="Only set if requested with ``default=true``",
        ),
    ] = None

    template_info_list: Annotated[
        list[TemplateInfo], Field(title="Templates")
    ] = []

    total_elements: Annotated[
        int,
        Field(
            title="Total templates",
            description="Number of matching templates, ignoring pagination",
        ),
    ] = 0


class VersionList(BaseModel):
    """All versions of one template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version_list: Annotated[list[str], Field(title="Versions")] = []
