"""Renewal of the bearer tokens embedded in issued kubeconfigs.

Kubeconfigs do not carry the token of the requesting user. Instead, each
kubeconfig gets a fresh token minted by Keycloak for the cluster manager's
own machine-to-machine (M2M) client, whose credentials are stored in Vault.
The lifetime of those tokens is a property of the Keycloak client, so the
cluster manager sets that property to the configured kubeconfig lifetime the
first time it issues a kubeconfig.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import jwt
from pydantic import ValidationError
from structlog.stdlib import BoundLogger

from ..config import Config
from ..exceptions import (
    KeycloakCredentialsError,
    KeycloakError,
    KeycloakWebError,
    VaultError,
    VaultWebError,
)
from ..models.domain.auth import (
    ACCESS_TOKEN_LIFESPAN_ATTRIBUTE,
    M2MCredentials,
    TokenClaims,
)
from ..storage.keycloak import KeycloakStorageClient
from ..storage.vault import VaultStorageClient

__all__ = [
    "CredentialCache",
    "TTLEnforcer",
    "TokenService",
]


class CredentialCache:
    """Process-wide cache of the M2M client credentials.

    Credentials are retrieved from Vault on first use and then reused until
    a caller asks for a refresh, which normally happens when Keycloak
    rejects them because they were rotated.
    """

    def __init__(self) -> None:
        self._credentials: M2MCredentials | None = None
        self._lock = asyncio.Lock()

    async def get(
        self, vault: VaultStorageClient, *, refresh: bool = False
    ) -> M2MCredentials:
        """Get the M2M credentials.

        Parameters
        ----------
        vault
            Client to use to retrieve the credentials from Vault.
        refresh
            Whether to discard any cached credentials.

        Returns
        -------
        M2MCredentials
            M2M client credentials.

        Raises
        ------
        VaultError
            Raised if the credentials could not be retrieved.
        VaultWebError
            Raised if a request to Vault failed.
        """
        async with self._lock:
            if refresh or not self._credentials:
                self._credentials = await vault.get_m2m_credentials()
            return self._credentials

    def invalidate(self) -> None:
        """Discard the cached credentials."""
        self._credentials = None


class TTLEnforcer:
    """Apply the desired token lifetime to the Keycloak client once.

    Remembers the last lifetime successfully applied so that the Keycloak
    admin API is only called again when the desired lifetime changes.
    Concurrent callers are serialized so that only one of them applies a
    given lifetime.
    """

    def __init__(self) -> None:
        self._last_applied = -1
        self._lock = asyncio.Lock()

    @property
    def last_applied(self) -> int:
        """Last lifetime in seconds applied, or -1 if none."""
        return self._last_applied

    async def enforce(
        self, ttl: int, apply: Callable[[int], Awaitable[None]]
    ) -> bool:
        """Apply a lifetime if it differs from the last one applied.

        Parameters
        ----------
        ttl
            Desired token lifetime in seconds.
        apply
            Function that applies a lifetime. If it raises an exception,
            the lifetime is not recorded as applied and the exception
            propagates.

        Returns
        -------
        bool
            `True` if the lifetime was applied, `False` if it already had
            been.
        """
        async with self._lock:
            if ttl == self._last_applied:
                return False
            await apply(ttl)
            self._last_applied = ttl
            return True

    def reset(self) -> None:
        """Forget the last lifetime applied."""
        self._last_applied = -1


class TokenService:
    """Mint the tokens embedded in kubeconfigs.

    Parameters
    ----------
    config
        Cluster manager configuration.
    vault_client
        Client used to retrieve the M2M credentials.
    keycloak_client
        Client used to mint tokens and configure the M2M client.
    credential_cache
        Process-wide cache of the M2M credentials.
    ttl_enforcer
        Process-wide record of the token lifetime applied to the client.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        config: Config,
        vault_client: VaultStorageClient,
        keycloak_client: KeycloakStorageClient,
        credential_cache: CredentialCache,
        ttl_enforcer: TTLEnforcer,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._vault = vault_client
        self._keycloak = keycloak_client
        self._credentials = credential_cache
        self._enforcer = ttl_enforcer
        self._logger = logger

    async def renew(self, token: str) -> str:
        """Get the token to embed in a kubeconfig.

        Parameters
        ----------
        token
            Access token of the requesting user.

        Returns
        -------
        str
            A freshly-minted token. If authentication is disabled, or the
            new token cannot be parsed, the token of the user is returned
            instead.

        Raises
        ------
        KeycloakError
            Raised if Keycloak returned an unusable reply.
        KeycloakWebError
            Raised if minting the token failed.
        VaultError
            Raised if the M2M credentials could not be retrieved.
        VaultWebError
            Raised if a request to Vault failed.
        """
        if self._config.disable_auth:
            self._logger.debug("Authentication disabled, not renewing token")
            return token

        ttl = self._config.kubeconfig_ttl_seconds
        if ttl is not None:
            try:
                await self._enforcer.enforce(ttl, self._set_client_lifespan)
            except (
                KeycloakError,
                KeycloakWebError,
                VaultError,
                VaultWebError,
            ) as e:
                self._logger.warning(
                    "Keycloak client token lifetime not applied",
                    attempted_seconds=ttl,
                    error=str(e),
                )

        new_token = await self._mint_token()
        try:
            options = {"verify_signature": False}
            payload = jwt.decode(new_token, options=options)
            claims = TokenClaims.model_validate(payload)
        except (jwt.InvalidTokenError, ValidationError) as e:
            self._logger.warning(
                "Cannot parse claims of new token, using original token",
                error=str(e),
            )
            return token
        self._logger.debug(
            "Renewed kubeconfig token",
            azp=claims.azp,
            username=claims.preferred_username,
            exp=claims.exp,
        )
        return new_token

    async def _mint_token(self) -> str:
        credentials = await self._credentials.get(self._vault)
        try:
            return await self._keycloak.mint_token(credentials)
        except KeycloakCredentialsError:
            self._logger.info("M2M credentials rejected, refreshing")
            credentials = await self._credentials.get(
                self._vault, refresh=True
            )
            return await self._keycloak.mint_token(credentials)

    async def _set_client_lifespan(self, ttl: int) -> None:
        admin_token = await self._mint_token()
        credentials = await self._credentials.get(self._vault)
        client = await self._keycloak.get_client(
            credentials.client_id, admin_token
        )
        lifespan = str(ttl)
        if client.attributes.get(ACCESS_TOKEN_LIFESPAN_ATTRIBUTE) == lifespan:
            self._logger.debug("Keycloak client token lifetime already set")
            return
        client.attributes[ACCESS_TOKEN_LIFESPAN_ATTRIBUTE] = lifespan
        await self._keycloak.update_client(client, admin_token)
        self._logger.info(
            "Set Keycloak client token lifetime",
            client_id=credentials.client_id,
            seconds=ttl,
        )
