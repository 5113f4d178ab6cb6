"""Client for the Keycloak token endpoint and admin API."""

from __future__ import annotations

from httpx import URL, AsyncClient, HTTPError, HTTPStatusError
from pydantic import TypeAdapter, ValidationError
from structlog.stdlib import BoundLogger

from ..config import Config
from ..exceptions import (
    KeycloakCredentialsError,
    KeycloakError,
    KeycloakWebError,
)
from ..models.domain.auth import KeycloakClient, M2MCredentials, TokenResponse

__all__ = ["KeycloakStorageClient"]

_CREDENTIAL_ERRORS = ("invalid_client", "unauthorized")
"""Error strings in a 400 reply indicating rejected client credentials."""


class KeycloakStorageClient:
    """Mint service tokens and manage client settings in Keycloak.

    Parameters
    ----------
    config
        Cluster manager configuration. ``oidc_url`` must be set and point to
        a Keycloak realm, such as ``https://keycloak.example.com/realms/x``.
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

    async def mint_token(self, credentials: M2MCredentials) -> str:
        """Get a new access token with the client credentials grant.

        Parameters
        ----------
        credentials
            M2M client credentials.

        Returns
        -------
        str
            New access token.

        Raises
        ------
        KeycloakCredentialsError
            Raised if Keycloak rejected the client credentials.
        KeycloakError
            Raised if Keycloak is not configured or returned an unusable
            reply.
        KeycloakWebError
            Raised if the token request failed for any other reason.
        """
        url = f"{self._oidc_url}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
        }
        try:
            r = await self._http_client.post(url, data=data)
            r.raise_for_status()
            token = TokenResponse.model_validate(r.json())
        except HTTPStatusError as e:
            body = e.response.text.lower()
            status = e.response.status_code
            if status == 401 or (
                status == 400 and any(s in body for s in _CREDENTIAL_ERRORS)
            ):
                self._logger.warning(
                    "Keycloak rejected M2M credentials", status=status
                )
                raise KeycloakCredentialsError.from_exception(e) from e
            raise KeycloakWebError.from_exception(e) from e
        except HTTPError as e:
            raise KeycloakWebError.from_exception(e) from e
        except ValidationError as e:
            msg = f"Cannot parse Keycloak token response: {e}"
            raise KeycloakError(msg) from e
        if not token.access_token:
            raise KeycloakError("Keycloak returned an empty access token")
        return token.access_token

    async def get_client(
        self, client_id: str, admin_token: str
    ) -> KeycloakClient:
        """Retrieve the full representation of a client.

        Parameters
        ----------
        client_id
            Client ID (not the internal UUID) of the client.
        admin_token
            Token authorized to use the admin API of the realm.

        Returns
        -------
        KeycloakClient
            Client representation, including unknown fields.

        Raises
        ------
        KeycloakError
            Raised if there is not exactly one client with that ID or the
            reply could not be parsed.
        KeycloakWebError
            Raised if a request to Keycloak failed.
        """
        base = self._admin_url
        headers = {"Authorization": f"Bearer {admin_token}"}
        adapter = TypeAdapter(list[KeycloakClient])
        try:
            r = await self._http_client.get(
                f"{base}/clients",
                params={"clientId": client_id},
                headers=headers,
            )
            r.raise_for_status()
            clients = adapter.validate_python(r.json())
            if len(clients) != 1:
                msg = f"Expected one client {client_id}, got {len(clients)}"
                raise KeycloakError(msg)
            r = await self._http_client.get(
                f"{base}/clients/{clients[0].id}", headers=headers
            )
            r.raise_for_status()
            return KeycloakClient.model_validate(r.json())
        except HTTPError as e:
            raise KeycloakWebError.from_exception(e) from e
        except ValidationError as e:
            msg = f"Cannot parse Keycloak client: {e}"
            raise KeycloakError(msg) from e

    async def update_client(
        self, client: KeycloakClient, admin_token: str
    ) -> None:
        """Store a modified client representation.

        Parameters
        ----------
        client
            Client representation as returned by `get_client`, with
            modifications.
        admin_token
            Token authorized to use the admin API of the realm.

        Raises
        ------
        KeycloakWebError
            Raised if the request to Keycloak failed.
        """
        url = f"{self._admin_url}/clients/{client.id}"
        headers = {"Authorization": f"Bearer {admin_token}"}
        body = client.model_dump(mode="json", by_alias=True)
        try:
            r = await self._http_client.put(url, json=body, headers=headers)
            r.raise_for_status()
        except HTTPError as e:
            raise KeycloakWebError.from_exception(e) from e

    @property
    def _oidc_url(self) -> str:
        if not self._config.oidc_url:
            raise KeycloakError("OIDC URL not configured")
        return self._config.oidc_url.rstrip("/")

    @property
    def _admin_url(self) -> str:
        url = URL(self._oidc_url)
        parts = url.path.strip("/").split("/")
        for i, part in enumerate(parts[:-1]):
            if part == "realms":
                realm = parts[i + 1]
                break
        else:
            msg = f"No realm in OIDC URL path {url.path}"
            raise KeycloakError(msg)
        return f"{url.scheme}://{url.netloc.decode()}/admin/realms/{realm}"
