"""Issuing of kubeconfigs for workload clusters."""

from __future__ import annotations

import base64
import binascii
from typing import Any

import yaml
from structlog.stdlib import BoundLogger

from ..config import Config
from ..constants import CONNECT_GATEWAY_PORT, KUBECONFIG_SECRET_SUFFIX
from ..exceptions import (
    InternalError,
    KeycloakError,
    KeycloakWebError,
    KubeconfigError,
    NotFoundError,
    UnauthorizedError,
    VaultError,
    VaultWebError,
)
from ..models.v1.cluster import KubeconfigInfo
from ..storage.kubernetes.secret import SecretStorage
from .token import TokenService

__all__ = ["KubeconfigService"]

_BEARER_PREFIX = "Bearer "


class KubeconfigService:
    """Issue kubeconfigs for workload clusters.

    Cluster API stores an administrative kubeconfig for each cluster in a
    secret. That kubeconfig points at the in-cluster address of the connect
    gateway, so it is rewritten to use the external address of the gateway
    and a renewed bearer token before being returned.

    Parameters
    ----------
    config
        Cluster manager configuration.
    secret_storage
        Storage for Kubernetes secrets.
    token_service
        Service used to renew the bearer token.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        config: Config,
        secret_storage: SecretStorage,
        token_service: TokenService,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._secrets = secret_storage
        self._tokens = token_service
        self._logger = logger

    async def get_kubeconfig(
        self, project: str, name: str, authorization: str | None
    ) -> KubeconfigInfo:
        """Build the kubeconfig for a cluster.

        Parameters
        ----------
        project
            Project owning the cluster.
        name
            Name of the cluster.
        authorization
            Contents of the ``Authorization`` header of the request.

        Returns
        -------
        KubeconfigInfo
            Kubeconfig for the cluster.

        Raises
        ------
        InternalError
            Raised if the stored kubeconfig could not be rewritten or a new
            token could not be obtained.
        NotFoundError
            Raised if the cluster has no usable kubeconfig, including one
            whose certificate authority cannot be determined.
        UnauthorizedError
            Raised if the request has no bearer token.
        """
        if not authorization or not authorization.startswith(_BEARER_PREFIX):
            self._logger.warning("Invalid Authorization header")
            msg = "Unauthorized: invalid Authorization header"
            raise UnauthorizedError(msg)
        token = authorization.removeprefix(_BEARER_PREFIX)
        logger = self._logger.bind(namespace=project, name=name)

        secret = await self._secrets.read(
            f"{name}{KUBECONFIG_SECRET_SUFFIX}", project
        )
        if not secret or not secret.data:
            raise NotFoundError("kubeconfig not found")
        value = secret.data.get("value")
        if not value:
            raise NotFoundError("kubeconfig data not found")
        try:
            kubeconfig = base64.b64decode(value, validate=True).decode()
        except (binascii.Error, UnicodeDecodeError) as e:
            logger.warning("Cannot decode kubeconfig", error=str(e))
            raise NotFoundError("failed to decode") from e

        ca_data = secret.data.get("apiServerCA")
        if not ca_data:
            logger.debug("No apiServerCA in secret, using kubeconfig")
            try:
                ca_data = self._get_ca_data(self._parse(kubeconfig))
            except KubeconfigError as e:
                logger.warning("Cannot get CA from kubeconfig", error=str(e))
                raise NotFoundError("kubeconfig not found") from e

        try:
            config = self._parse(kubeconfig)
            new_token = await self._tokens.renew(token)
            self._rewrite(config, project, name, ca_data, new_token)
        except (
            KeycloakError,
            KeycloakWebError,
            KubeconfigError,
            VaultError,
            VaultWebError,
        ) as e:
            logger.exception("Failed to process kubeconfig")
            raise InternalError("failed to process kubeconfig") from e
        result = yaml.safe_dump(config, default_flow_style=False)
        return KubeconfigInfo(id=name, kubeconfig=result)

    def _get_ca_data(self, config: dict[str, Any]) -> str:
        try:
            ca_data = config["clusters"][0]["cluster"][
                "certificate-authority-data"
            ]
        except (IndexError, KeyError, TypeError) as e:
            msg = "Cannot get certificate-authority-data from kubeconfig"
            raise KubeconfigError(msg) from e
        if not isinstance(ca_data, str):
            msg = "certificate-authority-data in kubeconfig is not a string"
            raise KubeconfigError(msg)
        return ca_data

    def _parse(self, kubeconfig: str) -> dict[str, Any]:
        try:
            config = yaml.safe_load(kubeconfig)
        except yaml.YAMLError as e:
            raise KubeconfigError(f"Cannot parse kubeconfig: {e}") from e
        if not isinstance(config, dict):
            raise KubeconfigError("Kubeconfig is not a mapping")
        return config

    def _rewrite(
        self,
        config: dict[str, Any],
        project: str,
        name: str,
        ca_data: str,
        token: str,
    ) -> None:
        """Point a kubeconfig at the external connect gateway.

        The path of the server URL after ``/kubernetes/<project>-<name>`` is
        preserved.
        """
        try:
            server = config["clusters"][0]["cluster"]["server"]
        except (IndexError, KeyError, TypeError) as e:
            msg = "No cluster server in kubeconfig"
            raise KubeconfigError(msg) from e
        path = f"/kubernetes/{project}-{name}"
        _, found, end = str(server).partition(path)
        if not found:
            msg = f"Server URL {server} does not contain {path}"
            raise KubeconfigError(msg)
        domain = self._config.cluster_domain
        server = (
            f"https://connect-gateway.{domain}:{CONNECT_GATEWAY_PORT}"
            f"{path}{end}"
        )
        user = f"{name}-{self._config.username}"

        config["apiVersion"] = "v1"
        config["kind"] = "Config"
        config["clusters"] = [
            {
                "name": name,
                "cluster": {
                    "server": server,
                    "certificate-authority-data": ca_data,
                },
            }
        ]
        config["users"] = [{"name": user, "user": {"token": token}}]
        config["contexts"] = [
            {
                "name": f"{user}@{name}",
                "context": {"user": user, "cluster": name},
            }
        ]
