"""Consul-backed registry client used to discover services the agent does not know."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..models import RegistryConfig
from .base import RegistryError, ServiceEndpoint
from .retry import RetryPolicy, send_with_retry

log = logging.getLogger(__name__)

HEALTH_PASSING = "passing"

EntryT = TypeVar("EntryT", bound=BaseModel)


class HealthCheck(BaseModel):
    """One entry of ``/v1/health/checks/<service>``."""

    model_config = ConfigDict(extra="ignore")

    status: str = Field(alias="Status")
    output: Optional[str] = Field(default=None, alias="Output")


class CatalogEntry(BaseModel):
    """One entry of ``/v1/catalog/service/<service>``."""

    model_config = ConfigDict(extra="ignore")

    service_id: Optional[str] = Field(default=None, alias="ServiceID")
    address: Optional[str] = Field(default=None, alias="Address")
    service_address: Optional[str] = Field(default=None, alias="ServiceAddress")
    service_port: int = Field(alias="ServicePort", ge=1, le=65535)


class ConsulRegistryClient:
    """Answers availability and endpoint questions from the Consul HTTP API."""

    def __init__(
        self,
        config: RegistryConfig,
        retry: RetryPolicy = RetryPolicy(),
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.retry = retry
        self._client = httpx.Client(
            base_url=config.url(),
            timeout=httpx.Timeout(config.timeout_seconds, connect=2.0),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def is_service_available(self, service_key: str) -> None:
        """Raise ``RegistryError`` unless every health check for the service passes."""
        checks = self._get_entries(f"/v1/health/checks/{service_key}", HealthCheck)
        if not checks:
            raise RegistryError(f"{service_key} service is not registered")
        failing = [check for check in checks if check.status != HEALTH_PASSING]
        if failing:
            detail = failing[0].output or failing[0].status or "unknown"
            raise RegistryError(f"{service_key} service not healthy: {detail}")

    def get_service_endpoint(self, service_key: str) -> ServiceEndpoint:
        entries = self._get_entries(f"/v1/catalog/service/{service_key}", CatalogEntry)
        if not entries:
            raise RegistryError(f"no catalog entry for {service_key}")
        entry = entries[0]
        host = entry.service_address or entry.address
        if not host:
            raise RegistryError(f"catalog entry for {service_key} has no address")
        return ServiceEndpoint(
            service_id=entry.service_id or service_key,
            host=host,
            port=entry.service_port,
        )

    def _get_entries(self, path: str, model: Type[EntryT]) -> List[EntryT]:
        payload = self._get_json(path)
        if not isinstance(payload, list):
            raise RegistryError(
                f"registry returned {type(payload).__name__} instead of a list for {path}"
            )
        try:
            return [model.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise RegistryError(f"registry returned an unexpected entry for {path}: {exc}") from exc

    def _get_json(self, path: str) -> Any:
        try:
            response = send_with_retry(self._client.get, path, policy=self.retry)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise RegistryError(
                f"registry returned HTTP {exc.response.status_code} for {path}"
            ) from exc
        except httpx.RequestError as exc:
            log.error("Registry at %s unreachable: %s", self.config.url(), exc)
            raise RegistryError(f"registry unreachable ({exc.__class__.__name__}: {exc})") from exc
        except ValueError as exc:
            raise RegistryError(f"registry returned malformed JSON for {path}") from exc
