"""Models for the identity provider and the secret store."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "ACCESS_TOKEN_LIFESPAN_ATTRIBUTE",
    "KeycloakClient",
    "M2MCredentials",
    "TokenClaims",
    "TokenResponse",
    "VaultLoginResponse",
    "VaultSecretResponse",
]

ACCESS_TOKEN_LIFESPAN_ATTRIBUTE = "access.token.lifespan"
"""Keycloak client attribute overriding the realm access token lifespan."""


class TokenResponse(BaseModel):
    """Reply from the OpenID Connect token endpoint."""

    access_token: Annotated[str, Field(title="Access token")] = ""
    expires_in: Annotated[int | None, Field(title="Lifetime in seconds")] = (
        None
    )
    token_type: Annotated[str | None, Field(title="Token type")] = None


class TokenClaims(BaseModel):
    """Claims of a minted access token used by the cluster manager."""

    azp: Annotated[str | None, Field(title="Authorized party")] = None
    preferred_username: Annotated[
        str | None, Field(title="Preferred username")
    ] = None
    exp: Annotated[int, Field(title="Expiration (seconds since epoch)")]


class KeycloakClient(BaseModel):
    """Client representation from the Keycloak admin API.

    Unknown fields are preserved so that the representation can be sent back
    unchanged apart from the attributes being updated.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, extra="allow", populate_by_name=True
    )

    id: Annotated[str, Field(title="Internal client UUID")]
    client_id: Annotated[str, Field(title="Client ID")]
    attributes: Annotated[
        dict[str, str], Field(title="Client attributes")
    ] = {}


class M2MCredentials(BaseModel):
    """Machine-to-machine client credentials stored in Vault."""

    client_id: Annotated[str, Field(title="Client ID")]
    client_secret: Annotated[str, Field(title="Client secret")]


class _VaultAuth(BaseModel):
    client_token: str


class VaultLoginResponse(BaseModel):
    """Reply from a Vault authentication login."""

    auth: _VaultAuth


class _VaultSecretData(BaseModel):
    data: M2MCredentials


class VaultSecretResponse(BaseModel):
    """Reply from a Vault KV version 2 read of the M2M credentials."""

    data: _VaultSecretData
