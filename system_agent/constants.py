"""Centralized constants for the system management agent.

Operation names, executor identifiers, and the default set of managed
services live here rather than in the individual dispatchers.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
START = "start"
STOP = "stop"
RESTART = "restart"
METRICS = "metrics"
INSPECT = "inspect"

LIFECYCLE_OPERATIONS: tuple[str, ...] = (START, STOP, RESTART)
EXECUTOR_OPERATIONS: tuple[str, ...] = (START, STOP, RESTART, METRICS)

# Error prefixes injected into every failure message of a lifecycle operation.
FAILED_START_PREFIX = "Error starting service"
FAILED_RESTART_PREFIX = "Error restarting service"
FAILED_STOP_PREFIX = "Error stopping service"

# ---------------------------------------------------------------------------
# Executor identifiers (the "executor" field of every result envelope)
# ---------------------------------------------------------------------------
EXECUTOR_TYPE_DOCKER = "docker"
EXECUTOR_TYPE_DIRECT_SERVICE = "direct-service"
EXECUTOR_TYPE_UNKNOWN = "unknown"

# ---------------------------------------------------------------------------
# Metrics mechanisms selectable in configuration
# ---------------------------------------------------------------------------
METRICS_VIA_DIRECT_SERVICE = "direct-service"
METRICS_VIA_EXECUTOR = "executor"
METRICS_VIA_CUSTOM = "custom"

# ---------------------------------------------------------------------------
# Remote service API routes
# ---------------------------------------------------------------------------
API_METRICS_ROUTE = "/api/v1/metrics"
API_CONFIG_ROUTE = "/api/v1/config"
API_PING_ROUTE = "/api/v1/ping"

# ---------------------------------------------------------------------------
# Services known to the agent out of the box. These have ready-made clients
# and never require a registry lookup.
# ---------------------------------------------------------------------------
DEFAULT_KNOWN_SERVICES: list[str] = [
    "support-notifications",
    "core-command",
    "core-data",
    "core-metadata",
    "export-client",
    "export-distro",
    "support-logging",
    "support-scheduler",
    "config-seed",
]

DEFAULT_SERVICE_PORTS: dict[str, int] = {
    "support-notifications": 48060,
    "core-command": 48082,
    "core-data": 48080,
    "core-metadata": 48081,
    "export-client": 48071,
    "export-distro": 48070,
    "support-logging": 48061,
    "support-scheduler": 48085,
    "config-seed": 48072,
}
