"""Lifecycle commands with post-condition verification.

A lifecycle operation runs in two phases: the docker command itself, then a
``docker inspect`` of the same container to confirm it reached the expected
running state. An exit status of zero alone is never reported as success.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, List, Optional

from ..constants import INSPECT
from ..models import ExecutionOutcome
from ..runtime.docker import CommandError, CommandExecutor
from .result import failure, success

log = logging.getLogger(__name__)


class InspectError(Exception):
    """Raised when the inspect phase cannot determine a single container state."""


class CancelScope:
    """Deadline and cancellation flag shared by both phases of an operation."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline


def message_executor_command_failed(operation_prefix: str, output: str, error_message: str) -> str:
    flattened = output.replace("\n", " ")
    return f"{operation_prefix}: {error_message} ({flattened})"


def message_executor_inspect_failed(operation_prefix: str, error_message: str) -> str:
    return f"{operation_prefix}: {error_message}"


def message_service_is_not_running_but_should_be(operation_prefix: str) -> str:
    return f"{operation_prefix}: service is not running but should be"


def message_service_is_running_but_should_not_be(operation_prefix: str) -> str:
    return f"{operation_prefix}: service is running but shouldn't be"


def message_operation_cancelled(operation_prefix: str) -> str:
    return f"{operation_prefix}: operation cancelled before state could be verified"


def message_container_not_found(service: str) -> str:
    return f"container {service} not found"


def message_more_than_one_container_found(service: str) -> str:
    return f"multiple containers found with name {service}"


def decode_container_states(output: bytes) -> List[bool]:
    """Decode ``docker inspect`` output into one running flag per container."""
    records = json.loads(output.decode("utf-8", errors="replace"))
    if not isinstance(records, list):
        raise ValueError("inspect output is not a JSON array")
    return [_running_flag(record) for record in records]


def is_container_running(service: str, executor: CommandExecutor) -> bool:
    # inspect covers stopped containers too, which is what a stop must find
    try:
        output = executor(INSPECT, service)
    except CommandError as exc:
        raise InspectError(str(exc)) from exc

    try:
        states = decode_container_states(output)
    except ValueError as exc:
        log.error("Unable to decode inspect output for %s: %s", service, exc)
        raise InspectError(str(exc)) from exc

    if len(states) < 1:
        raise InspectError(message_container_not_found(service))
    if len(states) > 1:
        raise InspectError(message_more_than_one_container_found(service))
    return states[0]


def execute_a_command(
    operation: str,
    service: str,
    executor: CommandExecutor,
    operation_prefix: str,
    should_be_running: bool,
    scope: Optional[CancelScope] = None,
) -> ExecutionOutcome:
    scope = scope or CancelScope()

    try:
        executor(operation, service)
    except CommandError as exc:
        output = exc.output.decode("utf-8", errors="replace")
        return failure(message_executor_command_failed(operation_prefix, output, str(exc)))

    if scope.cancelled:
        return failure(message_operation_cancelled(operation_prefix))

    try:
        is_running = is_container_running(service, executor)
    except InspectError as exc:
        return failure(message_executor_inspect_failed(operation_prefix, str(exc)))

    if is_running != should_be_running:
        if is_running:
            return failure(message_service_is_running_but_should_not_be(operation_prefix))
        return failure(message_service_is_not_running_but_should_be(operation_prefix))
    return success()


def _running_flag(record: Any) -> bool:
    if not isinstance(record, dict):
        raise ValueError("inspect record is not a JSON object")
    state = _get_case_insensitive(record, "state")
    if state is None:
        raise ValueError("inspect record has no state")
    if not isinstance(state, dict):
        raise ValueError("inspect record state is not a JSON object")
    running = _get_case_insensitive(state, "running")
    if running is None:
        raise ValueError("inspect record has no state.running")
    if not isinstance(running, bool):
        raise ValueError("inspect record state.running is not a boolean")
    return running


def _get_case_insensitive(mapping: dict, key: str) -> Any:
    if key in mapping:
        return mapping[key]
    return next((value for name, value in mapping.items() if name.lower() == key), None)
