"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from system_agent.agent import SystemAgent
from system_agent.clients.base import RegistryError, ServiceEndpoint
from system_agent.models import AgentConfig, ClientInfo
from system_agent.resolution import ClientCache, ServiceResolver
from system_agent.runtime.docker import CommandError

KNOWN_SERVICE = "core-data"
UNKNOWN_SERVICE = "device-virtual"


class RecordingExecutor:
    """Command executor stub that records each call and replays scripted results.

    Each scripted result is ``(output, error)``; a non-None error is raised as
    ``CommandError`` carrying ``output``.
    """

    def __init__(self, results: Optional[List[Tuple[bytes, Optional[str]]]] = None) -> None:
        self.results = list(results or [])
        self.calls: List[Tuple[str, ...]] = []

    @property
    def called(self) -> int:
        return len(self.calls)

    def __call__(self, *args: str) -> bytes:
        self.calls.append(args)
        output, error = self.results[len(self.calls) - 1]
        if error is not None:
            raise CommandError(error, output)
        return output


@dataclass
class FakeServiceClient:
    metrics: str = '{"CpuBusyAvg": 1.5, "Memory": {"Alloc": 10, "Sys": 2048}}'
    configuration: str = '{"Writable": {"LogLevel": "INFO"}}'
    error: Optional[Exception] = None
    calls: List[str] = field(default_factory=list)
    closed: bool = False

    def fetch_metrics(self) -> str:
        self.calls.append("metrics")
        if self.error is not None:
            raise self.error
        return self.metrics

    def fetch_configuration(self) -> str:
        self.calls.append("configuration")
        if self.error is not None:
            raise self.error
        return self.configuration

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeRegistry:
    """Registry stub; services map key to endpoint, anything else is unavailable."""

    endpoints: Dict[str, ServiceEndpoint] = field(default_factory=dict)
    endpoint_error: Optional[str] = None
    availability_calls: List[str] = field(default_factory=list)
    endpoint_calls: List[str] = field(default_factory=list)
    closed: bool = False

    def is_service_available(self, service_key: str) -> None:
        self.availability_calls.append(service_key)
        if service_key not in self.endpoints:
            raise RegistryError(f"{service_key} service is not registered")

    def get_service_endpoint(self, service_key: str) -> ServiceEndpoint:
        self.endpoint_calls.append(service_key)
        if self.endpoint_error:
            raise RegistryError(self.endpoint_error)
        return self.endpoints[service_key]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def agent_config() -> AgentConfig:
    """A small configuration with two known services."""
    return AgentConfig.model_validate(
        {
            "services": [KNOWN_SERVICE, "core-metadata"],
            "clients": {
                KNOWN_SERVICE: {"host": "localhost", "port": 48080},
                "core-metadata": {"host": "localhost", "port": 48081},
            },
            "executor": {"operation_timeout_seconds": 60},
        }
    )


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry(
        endpoints={
            UNKNOWN_SERVICE: ServiceEndpoint(
                service_id="edgex-device-virtual", host="10.0.0.5", port=49990
            )
        }
    )


@pytest.fixture
def built_clients() -> Dict[str, FakeServiceClient]:
    """Clients handed out by the fake factory, keyed by service id."""
    return {}


@pytest.fixture
def client_factory(built_clients: Dict[str, FakeServiceClient]):
    def build(service_key: str, info: ClientInfo) -> FakeServiceClient:
        client = FakeServiceClient()
        built_clients[service_key] = client
        return client

    return build


@pytest.fixture
def resolver(agent_config: AgentConfig, registry: FakeRegistry, client_factory) -> ServiceResolver:
    return ServiceResolver.from_config(
        agent_config, registry, cache=ClientCache(), client_factory=client_factory
    )


@pytest.fixture
def system_agent(
    agent_config: AgentConfig,
    resolver: ServiceResolver,
    executor: RecordingExecutor,
    registry: FakeRegistry,
) -> SystemAgent:
    return SystemAgent(
        config=agent_config, resolver=resolver, executor=executor, registry=registry
    )


@pytest.fixture
def api_client(system_agent: SystemAgent) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    # Patch the module-level agent used by app routes
    with patch("system_agent.app.agent", system_agent):
        from system_agent.app import app

        with TestClient(app) as client:
            yield client
