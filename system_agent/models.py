"""Pydantic models for agent configuration, requests, and result envelopes."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, validator

from .constants import (
    DEFAULT_KNOWN_SERVICES,
    DEFAULT_SERVICE_PORTS,
    METRICS_VIA_CUSTOM,
    METRICS_VIA_DIRECT_SERVICE,
    METRICS_VIA_EXECUTOR,
)


class ClientInfo(BaseModel):
    """Network location of a managed service's HTTP API."""

    model_config = ConfigDict(frozen=True)

    protocol: str = "http"
    host: str = "localhost"
    port: int = Field(ge=1, le=65535)
    path: str = "/"

    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


class ServiceInfo(BaseModel):
    """Where the agent itself listens; its protocol is reused for discovered clients."""

    protocol: str = "http"
    host: str = "localhost"
    port: int = Field(default=48090, ge=1, le=65535)


class ExecutorConfig(BaseModel):
    binary: str = "docker"
    timeout_seconds: float = Field(default=30.0, gt=0)
    operation_timeout_seconds: float = Field(default=60.0, gt=0)


class RegistryConfig(BaseModel):
    enabled: bool = False
    protocol: str = "http"
    host: str = "localhost"
    port: int = Field(default=8500, ge=1, le=65535)
    timeout_seconds: float = Field(default=5.0, gt=0)

    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


def _default_clients() -> Dict[str, ClientInfo]:
    return {
        name: ClientInfo(port=port) for name, port in DEFAULT_SERVICE_PORTS.items()
    }


class AgentConfig(BaseModel):
    service: ServiceInfo = Field(default_factory=ServiceInfo)
    services: List[str] = Field(default_factory=lambda: list(DEFAULT_KNOWN_SERVICES))
    clients: Dict[str, ClientInfo] = Field(default_factory=_default_clients)
    metrics_mechanism: str = METRICS_VIA_DIRECT_SERVICE
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    client_timeout_seconds: float = Field(default=10.0, gt=0)

    @validator("metrics_mechanism")
    def validate_metrics_mechanism(cls, value: str) -> str:
        if value not in {METRICS_VIA_DIRECT_SERVICE, METRICS_VIA_EXECUTOR, METRICS_VIA_CUSTOM}:
            raise ValueError(f"Unsupported metrics mechanism: {value}")
        return value

    def known_services(self) -> set[str]:
        return set(self.services)


class OperationRequest(BaseModel):
    """Body of ``POST /api/v1/operation``."""

    action: str
    services: List[str] = Field(min_length=1)


class MetricsResult(BaseModel):
    """Normalized metrics carried by a successful ``metrics`` envelope."""

    model_config = ConfigDict(populate_by_name=True)

    cpu_used_percent: str = Field(alias="cpuUsedPercent")
    memory_used: str = Field(alias="memoryUsed")
    raw: Any = None


class ExecutionOutcome(BaseModel):
    """Success/failure fragment shared by every envelope.

    ``success=False`` always carries an ``error_message`` and never a result;
    ``success=True`` never carries an ``error_message``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    result: Optional[MetricsResult] = None


class ResultEnvelope(BaseModel):
    """The uniform response shape for every command the agent runs."""

    model_config = ConfigDict(populate_by_name=True)

    operation: str
    service: str
    executor: str
    success: bool
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    result: Optional[MetricsResult] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True)
        # Only top-level optional fields are dropped; None inside raw is data.
        return {key: value for key, value in payload.items() if value is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


class MemoryUsage(BaseModel):
    model_config = ConfigDict(extra="allow")

    alloc: int = Field(default=0, alias="Alloc")
    sys: int = Field(default=0, alias="Sys")


class SystemUsage(BaseModel):
    """Shape of the ``/api/v1/metrics`` payload served by managed services."""

    model_config = ConfigDict(extra="allow")

    cpu_busy_avg: float = Field(alias="CpuBusyAvg")
    memory: MemoryUsage = Field(default_factory=MemoryUsage, alias="Memory")


class ConfigurationResponse(BaseModel):
    configuration: Dict[str, Any] = Field(default_factory=dict)
