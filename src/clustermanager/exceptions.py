"""Exceptions for the cluster manager."""

from __future__ import annotations

from typing import Self

from fastapi import status
from kubernetes_asyncio.client import ApiException
from safir.fastapi import ClientRequestError
from safir.slack.blockkit import (
    SlackCodeBlock,
    SlackException,
    SlackMessage,
    SlackTextBlock,
    SlackTextField,
    SlackWebException,
)

__all__ = [
    "ConflictError",
    "InternalError",
    "InvalidProjectError",
    "InvalidRequestError",
    "InventoryError",
    "InventoryWebError",
    "KeycloakCredentialsError",
    "KeycloakError",
    "KeycloakWebError",
    "KubeconfigError",
    "KubernetesError",
    "NotFoundError",
    "TemplateNameError",
    "UnauthorizedError",
    "UnsupportedOperationError",
    "VaultError",
    "VaultWebError",
]


class InvalidRequestError(ClientRequestError):
    """The request was syntactically valid but semantically unacceptable."""

    error = "invalid_request"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidProjectError(ClientRequestError):
    """The active project header is missing or names the nil project."""

    error = "invalid_project"
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ClientRequestError):
    """The bearer token needed for the operation is missing or malformed."""

    error = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ClientRequestError):
    """A requested object does not exist in the project."""

    error = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ClientRequestError):
    """The object already exists or is still in use."""

    error = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InternalError(ClientRequestError):
    """An operation failed in a way already diagnosed by the service.

    Used for failures whose message is part of the API contract, such as a
    template that is not ready or a cluster detail that fails validation.
    Unexpected failures of the control plane propagate as `KubernetesError`
    instead so that they are reported to Slack.
    """

    error = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UnsupportedOperationError(ClientRequestError):
    """The requested operation is deliberately not implemented."""

    error = "not_implemented"
    status_code = status.HTTP_501_NOT_IMPLEMENTED


class TemplateNameError(SlackException):
    """A template resource name could not be split into name and version."""


class KubeconfigError(SlackException):
    """The kubeconfig stored for a cluster could not be processed."""


class KeycloakWebError(SlackWebException):
    """An API call to Keycloak failed."""


class KeycloakError(SlackException):
    """Keycloak returned a reply that cannot be used."""


class KeycloakCredentialsError(KeycloakWebError):
    """Keycloak rejected the M2M client credentials.

    This usually means the credentials were rotated in Vault, so the caller
    should refresh them and try again.
    """


class VaultWebError(SlackWebException):
    """An API call to Vault failed."""


class VaultError(SlackException):
    """Vault could not be used to retrieve the M2M client credentials."""


class InventoryWebError(SlackWebException):
    """An API call to the host inventory failed."""


class InventoryError(SlackException):
    """The host inventory returned an incomplete host record."""


class KubernetesError(SlackException):
    """An API call to Kubernetes failed.

    Parameters
    ----------
    message
        Summary of error.
    kind
        Kind of object being acted on.
    namespace
        Namespace of object being acted on.
    name
        Name of object being acted on.
    status
        Status code of failure, if any.
    body
        Body of failure message, if any.
    """

    @classmethod
    def from_exception(
        cls,
        message: str,
        exc: ApiException,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
    ) -> Self:
        """Create an exception from a Kubernetes API exception.

        Parameters
        ----------
        message
            Brief explanation of what was being attempted.
        exc
            Kubernetes API exception.
        kind
            Kind of object being acted on.
        namespace
            Namespace of object being acted on.
        name
            Name of object being acted on.

        Returns
        -------
        KubernetesError
            Newly-created exception.
        """
        return cls(
            message,
            kind=kind,
            namespace=namespace,
            name=name,
            status=exc.status,
            body=exc.body if exc.body else exc.reason,
        )

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.status = status
        self.body = body

    def __str__(self) -> str:
        result = self._summary()
        if self.body:
            result += f": {self.body}"
        return result

    @property
    def is_bad_request(self) -> bool:
        """Whether the API server rejected the object as invalid."""
        return self.status in (400, 422)

    @property
    def is_not_found(self) -> bool:
        """Whether the object does not exist."""
        return self.status == 404

    @property
    def is_conflict(self) -> bool:
        """Whether the object already exists or was concurrently modified."""
        return self.status == 409

    @property
    def is_modified_conflict(self) -> bool:
        """Whether the write lost an optimistic-concurrency race."""
        return self.is_conflict and "the object has been modified" in str(
            self.body
        )

    def to_slack(self) -> SlackMessage:
        """Convert to a Slack message for Slack alerting.

        Returns
        -------
        SlackMessage
            Slack message suitable for posting as an alert.
        """
        message = super().to_slack()
        message.message = self._summary()
        if self.status:
            field = SlackTextField(heading="Status", text=str(self.status))
            message.fields.append(field)
        if self.name:
            kind = f"{self.kind} " if self.kind else ""
            if self.namespace:
                obj = f"{kind}{self.namespace}/{self.name}"
            else:
                obj = f"{kind}{self.name}"
            message.blocks.append(SlackTextBlock(heading="Object", text=obj))
        elif self.kind:
            block = SlackTextBlock(heading="Object", text=self.kind)
            message.blocks.append(block)
        if self.body:
            code = SlackCodeBlock(heading="Error", code=self.body)
            message.blocks.append(code)
        return message

    def _summary(self) -> str:
        """Summarize the exception.

        Produces a single-line summary, used for the main part of the Slack
        message and part of the stringification.
        """
        result = self.message
        if self.name or self.kind or self.status:
            result += " ("
            if self.name:
                kind = f"{self.kind} " if self.kind else ""
                if self.namespace:
                    result += f"{kind}{self.namespace}/{self.name}"
                else:
                    result += f"{kind}{self.name}"
                if self.status:
                    result += ", "
            elif self.kind:
                result += self.kind
                if self.status:
                    result += ", "
            if self.status:
                result += f"status {self.status}"
            result += ")"
        return result
