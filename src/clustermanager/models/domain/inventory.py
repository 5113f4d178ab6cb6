"""Models for hosts returned by the inventory service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

__all__ = [
    "Host",
    "HostInstance",
    "OperatingSystem",
    "OS_TYPE_IMMUTABLE",
    "SECURITY_FEATURE_TRUSTED_COMPUTE",
]

OS_TYPE_IMMUTABLE = "OS_TYPE_IMMUTABLE"
"""Operating system type of hosts with a read-only root file system."""

SECURITY_FEATURE_TRUSTED_COMPUTE = (
    "SECURITY_FEATURE_SECURE_BOOT_AND_FULL_DISK_ENCRYPTION"
)
"""Security feature required for a host to be trusted-compute compatible."""


class _InventoryModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )


class OperatingSystem(_InventoryModel):
    """Operating system resource of an instance."""

    name: str | None = None
    os_type: str | None = None


class HostInstance(_InventoryModel):
    """Operating system instance installed on a host."""

    security_feature: str | None = None
    desired_os: OperatingSystem | None = None


class Host(_InventoryModel):
    """A compute host known to the inventory."""

    resource_id: str | None = None
    uuid: str | None = None
    instance: HostInstance | None = None
