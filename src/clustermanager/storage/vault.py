"""Client for reading the M2M client credentials from Vault."""

from __future__ import annotations

from httpx import AsyncClient, HTTPError
from pydantic import ValidationError
from structlog.stdlib import BoundLogger

from ..config import Config
from ..exceptions import VaultError, VaultWebError
from ..models.domain.auth import (
    M2MCredentials,
    VaultLoginResponse,
    VaultSecretResponse,
)

__all__ = ["VaultStorageClient"]


class VaultStorageClient:
    """Read the M2M client credentials from Vault.

    Authenticates to Vault with the Kubernetes auth method using the token
    of the pod service account, then reads the credentials from the KV
    version 2 secrets engine mounted at ``secret``.

    Parameters
    ----------
    config
        Cluster manager configuration.
    http_client
        Shared HTTP client.
    logger
        Logger for messages.
    """

    def __init__(
        self, config: Config, http_client: AsyncClient, logger: BoundLogger
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._logger = logger

    async def get_m2m_credentials(self) -> M2MCredentials:
        """Retrieve the M2M client credentials.

        Returns
        -------
        M2MCredentials
            Client ID and secret.

        Raises
        ------
        VaultError
            Raised if the service account token could not be read or Vault
            returned an unexpected reply.
        VaultWebError
            Raised if a request to Vault failed.
        """
        vault_token = await self._login()
        url = f"{self._config.vault_url}/v1/secret/data/"
        url += self._config.m2m_secret_path
        headers = {"X-Vault-Token": vault_token}
        try:
            r = await self._http_client.get(url, headers=headers)
            r.raise_for_status()
            secret = VaultSecretResponse.model_validate(r.json())
        except HTTPError as e:
            raise VaultWebError.from_exception(e) from e
        except ValidationError as e:
            msg = f"Cannot parse M2M credentials from Vault: {e}"
            raise VaultError(msg) from e
        self._logger.debug("Retrieved M2M credentials from Vault")
        return secret.data.data

    async def _login(self) -> str:
        path = self._config.service_account_token_path
        try:
            token = path.read_text().strip()
        except OSError as e:
            msg = f"Cannot read service account token from {path}: {e}"
            raise VaultError(msg) from e
        url = f"{self._config.vault_url}/v1/auth/kubernetes/login"
        body = {"jwt": token, "role": self._config.vault_role}
        try:
            r = await self._http_client.post(url, json=body)
            r.raise_for_status()
            login = VaultLoginResponse.model_validate(r.json())
        except HTTPError as e:
            raise VaultWebError.from_exception(e) from e
        except ValidationError as e:
            msg = f"Cannot parse Vault login response: {e}"
            raise VaultError(msg) from e
        if not login.auth.client_token:
            raise VaultError("Vault login response contains no client token")
        return login.auth.client_token
