"""Models for generic Kubernetes object structure.

The control plane is reached through the custom object API, which returns
untyped JSON. These models give the shared parts of that JSON (metadata,
object references, and conditions) a typed form, and `KubernetesResource`
provides the conversion to and from the API representation used by the
resource-specific models.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "Condition",
    "ConditionStatus",
    "KubernetesResource",
    "ObjectMetadata",
    "ObjectReference",
    "ResourceSchema",
]


class ResourceSchema(BaseModel):
    """Group, version, and plural name of a custom resource type."""

    model_config = ConfigDict(frozen=True)

    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        """``apiVersion`` of objects of this type."""
        return f"{self.group}/{self.version}"


class ConditionStatus(StrEnum):
    """Status of a Kubernetes condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(BaseModel):
    """One entry of the ``status.conditions`` list of an object."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    type: Annotated[str, Field(title="Condition type")]

    status: Annotated[
        ConditionStatus | str, Field(title="Condition status")
    ] = ConditionStatus.UNKNOWN

    reason: Annotated[str, Field(title="Machine-readable reason")] = ""

    message: Annotated[str, Field(title="Human-readable message")] = ""

    last_transition_time: Annotated[
        datetime | None, Field(title="Time of last status change")
    ] = None

    @property
    def timestamp(self) -> int:
        """Last transition time in seconds since epoch, or 0 if unknown."""
        if not self.last_transition_time:
            return 0
        return int(self.last_transition_time.timestamp())


class ObjectReference(BaseModel):
    """Reference to another Kubernetes object."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    api_version: str | None = None
    kind: str | None = None
    name: str = ""
    namespace: str | None = None
    uid: str | None = None


class ObjectMetadata(BaseModel):
    """The subset of object metadata used by the cluster manager."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    name: str = ""
    namespace: str | None = None
    labels: dict[str, str] = {}
    annotations: dict[str, str] = {}
    resource_version: str | None = None


class KubernetesResource(BaseModel):
    """Base class for typed custom resources.

    Subclasses set ``resource`` and declare ``spec`` and, if they have one,
    ``status`` fields whose models mirror the JSON structure of the resource.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    resource: ClassVar[ResourceSchema]
    """Resource type of this model."""

    metadata: ObjectMetadata = ObjectMetadata()

    @classmethod
    def from_kubernetes(cls, obj: dict[str, Any]) -> Self:
        """Parse the JSON representation returned by Kubernetes.

        Parameters
        ----------
        obj
            Object as returned by the custom object API.

        Returns
        -------
        KubernetesResource
            Typed form of the object.
        """
        return cls.model_validate(obj)

    @property
    def name(self) -> str:
        """Name of the object."""
        return self.metadata.name

    @property
    def labels(self) -> dict[str, str]:
        """Labels of the object."""
        return self.metadata.labels

    @property
    def annotations(self) -> dict[str, str]:
        """Annotations of the object."""
        return self.metadata.annotations

    def to_kubernetes(self) -> dict[str, Any]:
        """Convert to the JSON representation expected by Kubernetes.

        The status, if any, is omitted since it is owned by the controllers.
        """
        body = self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"status"}
        )
        return {
            "apiVersion": self.resource.api_version,
            "kind": self.resource.kind,
            **body,
        }
