"""Base client definitions for managed services and the service registry."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ClientError(Exception):
    """Raised when a managed service's API cannot be fetched."""


class RegistryError(Exception):
    """Raised when the registry is unreachable or reports a service unavailable."""


@dataclass(frozen=True)
class ServiceEndpoint:
    """Endpoint of a service as resolved by the registry."""

    service_id: str
    host: str
    port: int


class ServiceClient(Protocol):
    """Protocol for clients of a managed service's own HTTP API."""

    def fetch_metrics(self) -> str:
        ...

    def fetch_configuration(self) -> str:
        ...


class RegistryClient(Protocol):
    """Protocol for the service discovery collaborator."""

    def is_service_available(self, service_key: str) -> None:
        ...

    def get_service_endpoint(self, service_key: str) -> ServiceEndpoint:
        ...
