"""Configuration for the cluster manager."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Annotated, Self

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict
from safir.logging import LogLevel, Profile
from safir.pydantic import HumanTimedelta

from .constants import (
    LABEL_UPDATE_BACKOFF,
    LABEL_UPDATE_RETRIES,
    SERVICE_ACCOUNT_TOKEN_PATH,
    SYSTEM_LABEL_PREFIXES,
)

__all__ = ["Config"]


class Config(BaseSettings):
    """Configuration for the cluster manager.

    Values are read from a YAML file with camel-case keys. Settings that
    are normally injected from secrets or deployment values can instead be
    set by an environment variable named in their validation alias.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        populate_by_name=True,
    )

    name: Annotated[
        str,
        Field(title="Name of application"),
    ] = "cluster-manager"

    path_prefix: Annotated[
        str,
        Field(
            title="URL prefix for application API",
            description="Prefix under which all cluster and template routes"
            " are mounted",
        ),
    ] = "/v2"

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level of the application's logger",
            validation_alias=AliasChoices(
                "CLUSTER_MANAGER_LOG_LEVEL", "logLevel", "log_level"
            ),
        ),
    ] = LogLevel.INFO

    log_profile: Annotated[
        Profile, Field(title="Application logging profile")
    ] = Profile.production

    slack_webhook: Annotated[
        str | None,
        Field(
            title="Slack webhook for alerts",
            description="If set, alerts will be posted to this Slack webhook",
            validation_alias=AliasChoices(
                "CLUSTER_MANAGER_SLACK_WEBHOOK",
                "slackWebhook",
                "slack_webhook",
            ),
        ),
    ] = None

    cluster_domain: Annotated[
        str,
        Field(
            title="Cluster domain",
            description=(
                "Domain suffix used for the connect gateway URL in issued"
                " kubeconfigs and for the Prometheus metrics label"
            ),
        ),
    ] = "kind.internal"

    username: Annotated[
        str,
        Field(
            title="Kubeconfig user",
            description="Suffix of the user name written into kubeconfigs",
        ),
    ] = "admin"

    disable_auth: Annotated[
        bool,
        Field(
            title="Disable token renewal",
            description=(
                "If set, issued kubeconfigs carry the caller's own access"
                " token and the identity provider is never contacted"
            ),
        ),
    ] = False

    disable_inventory: Annotated[
        bool,
        Field(
            title="Disable inventory lookups",
            description=(
                "If set, hosts are treated as not trusted-compute capable and"
                " k3s clusters are always created read-only"
            ),
        ),
    ] = False

    disable_custom_ttl: Annotated[
        bool,
        Field(
            title="Disable custom token lifetime",
            description=(
                "If set, the identity provider client lifespan is never"
                " changed and tokens are minted with its default lifetime"
            ),
        ),
    ] = False

    kubeconfig_ttl: Annotated[
        HumanTimedelta,
        Field(
            title="Kubeconfig token lifetime",
            description=(
                "Lifetime of the bearer token in issued kubeconfigs. Zero"
                " leaves the identity provider default in place."
            ),
        ),
    ] = timedelta(hours=1)

    system_label_prefixes: Annotated[
        list[str],
        Field(
            title="System label prefixes",
            description=(
                "Label keys starting with any of these prefixes belong to the"
                " platform and are hidden from and protected against users"
            ),
        ),
    ] = SYSTEM_LABEL_PREFIXES

    label_update_retries: Annotated[
        int,
        Field(
            title="Label update retries",
            description="Retries of a label write that lost a conflict",
            ge=0,
        ),
    ] = LABEL_UPDATE_RETRIES

    label_update_backoff: Annotated[
        HumanTimedelta,
        Field(title="Delay between label update retries"),
    ] = LABEL_UPDATE_BACKOFF

    oidc_url: Annotated[
        str | None,
        Field(
            title="OIDC issuer URL",
            description=(
                "Keycloak realm URL, such as"
                " ``https://keycloak.example.com/realms/master``. Required"
                " unless token renewal is disabled."
            ),
        ),
    ] = None

    vault_url: Annotated[
        str, Field(title="Vault server URL")
    ] = "http://vault.orch-platform.svc.cluster.local:8200"

    vault_role: Annotated[
        str, Field(title="Vault Kubernetes authentication role")
    ] = "cluster-manager"

    m2m_secret_path: Annotated[
        str,
        Field(
            title="Vault path of the M2M client credentials",
            description="Path under the ``secret`` KV v2 mount",
        ),
    ] = "co-manager-m2m-client-secret"

    service_account_token_path: Annotated[
        Path,
        Field(
            title="Service account token path",
            description="Token presented to Vault for Kubernetes login",
        ),
    ] = SERVICE_ACCOUNT_TOKEN_PATH

    inventory_url: Annotated[
        str | None,
        Field(
            title="Inventory service URL",
            description="Required unless inventory lookups are disabled",
        ),
    ] = None

    @field_validator("kubeconfig_ttl")
    @classmethod
    def _validate_kubeconfig_ttl(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("kubeconfigTtl must not be negative")
        return v

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.
        """
        with path.open("r") as f:
            return cls.model_validate(yaml.safe_load(f) or {})

    @property
    def kubeconfig_ttl_seconds(self) -> int | None:
        """Token lifetime to request, or `None` to use the default."""
        seconds = int(self.kubeconfig_ttl.total_seconds())
        if self.disable_custom_ttl or seconds == 0:
            return None
        return seconds
