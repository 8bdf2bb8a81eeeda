"""Batch operations exposed over HTTP.

Every requested service is handled independently: one service failing never
stops the rest of the batch, and each outcome is reported in the aggregate.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .clients.base import ClientError, RegistryClient, RegistryError
from .clients.registry import ConsulRegistryClient
from .constants import (
    EXECUTOR_TYPE_DIRECT_SERVICE,
    EXECUTOR_TYPE_DOCKER,
    EXECUTOR_TYPE_UNKNOWN,
    METRICS,
    METRICS_VIA_CUSTOM,
    METRICS_VIA_DIRECT_SERVICE,
    METRICS_VIA_EXECUTOR,
)
from .executor.commands import CancelScope
from .executor.execute import DEFAULT_EXECUTABLE_NAME, execute
from .executor.result import create_result, failure, metrics_success
from .models import AgentConfig, ResultEnvelope, SystemUsage
from .resolution import ResolutionError, ServiceResolver
from .runtime.docker import CommandExecutor, DockerExecutor

log = logging.getLogger(__name__)

DISCOVERY_ERRORS = (ResolutionError, RegistryError, ClientError)


class MetricsDecodeError(ValueError):
    """Raised when a service's metrics payload is not a SystemUsage document."""


def normalize_and_wrap(service: str, payload: str) -> ResultEnvelope:
    try:
        usage = SystemUsage.model_validate_json(payload)
    except ValidationError as exc:
        raise MetricsDecodeError(f"error decoding SystemUsage: {exc}") from exc
    return create_result(
        METRICS,
        service,
        EXECUTOR_TYPE_DIRECT_SERVICE,
        metrics_success(f"{usage.cpu_busy_avg:.2f}", usage.memory.sys, payload),
    )


def process_response(response: str) -> Any:
    try:
        return json.loads(response)
    except ValueError as exc:
        log.error("error unmarshalling response from JSON: %s", exc)
        return {}


class SystemAgent:
    """Runs operations, metrics, configuration and health queries for services."""

    def __init__(
        self,
        config: AgentConfig,
        resolver: ServiceResolver,
        executor: CommandExecutor,
        registry: Optional[RegistryClient] = None,
        executor_type: str = EXECUTOR_TYPE_DOCKER,
    ) -> None:
        self.config = config
        self.resolver = resolver
        self.executor = executor
        self.registry = registry
        self.executor_type = executor_type

    @classmethod
    def from_config(cls, config: AgentConfig) -> "SystemAgent":
        registry: Optional[RegistryClient] = None
        if config.registry.enabled:
            registry = ConsulRegistryClient(config.registry)
        executor = DockerExecutor(config.executor.binary, timeout=config.executor.timeout_seconds)
        resolver = ServiceResolver.from_config(config, registry)
        return cls(config=config, resolver=resolver, executor=executor, registry=registry)

    def close(self) -> None:
        """Release the HTTP clients held for services and the registry."""
        self.resolver.cache.close()
        close_registry = getattr(self.registry, "close", None)
        if callable(close_registry):
            close_registry()

    def is_known_service(self, service: str) -> bool:
        return service in self.config.known_services()

    # Executor-backed operations -----------------------------------------

    def _execute(self, service: str, operation: str) -> ResultEnvelope:
        return execute(
            [DEFAULT_EXECUTABLE_NAME, service, operation],
            self.executor,
            self.config.known_services(),
            executor_type=self.executor_type,
            scope=CancelScope(self.config.executor.operation_timeout_seconds),
        )

    def invoke_operation(self, operation: str, services: List[str]) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        for service in services:
            envelope = self._execute(service, operation)
            if not envelope.success:
                log.error("%s of %s failed: %s", operation, service, envelope.error_message)
            results.append(envelope.to_dict())
        return results

    # Metrics ---------------------------------------------------------------

    def metrics_via_direct(self, service: str) -> ResultEnvelope:
        try:
            return normalize_and_wrap(service, self.resolver.fetch_metrics(service))
        except DISCOVERY_ERRORS + (MetricsDecodeError,) as exc:
            log.error("Metrics for %s unavailable: %s", service, exc)
            return create_result(METRICS, service, EXECUTOR_TYPE_DIRECT_SERVICE, failure(str(exc)))

    def invoke_metrics(self, services: List[str]) -> List[Dict[str, Any]]:
        mechanism = self.config.metrics_mechanism
        results: List[Dict[str, Any]] = []
        for service in services:
            log.debug("invoke metrics for %s via %s", service, mechanism)
            if mechanism == METRICS_VIA_DIRECT_SERVICE:
                envelope = self.metrics_via_direct(service)
            elif mechanism == METRICS_VIA_EXECUTOR:
                envelope = self._execute(service, METRICS)
            elif mechanism == METRICS_VIA_CUSTOM:
                envelope = create_result(
                    METRICS,
                    service,
                    EXECUTOR_TYPE_UNKNOWN,
                    failure("the requested custom executor (e.g. snap) has not been integrated"),
                )
            else:
                envelope = create_result(
                    METRICS,
                    service,
                    EXECUTOR_TYPE_UNKNOWN,
                    failure("the requested metrics mechanism is not supported"),
                )
            results.append(envelope.to_dict())
        return results

    # Configuration and health --------------------------------------------

    def get_config(self, services: List[str]) -> Dict[str, Any]:
        configuration: Dict[str, Any] = {}
        for service in services:
            try:
                configuration[service] = process_response(
                    self.resolver.fetch_configuration(service)
                )
            except DISCOVERY_ERRORS as exc:
                log.error("Configuration for %s unavailable: %s", service, exc)
                configuration[service] = str(exc)
        return {"configuration": configuration}

    def get_health(self, services: List[str]) -> Dict[str, Any]:
        health: Dict[str, Any] = {}
        for service in services:
            if not self.is_known_service(service):
                log.warning("unknown service %s found while getting health", service)
            if self.registry is None:
                health[service] = "registry client not configured"
                continue
            try:
                self.registry.is_service_available(service)
            except RegistryError as exc:
                health[service] = str(exc)
            else:
                health[service] = True
        return health
