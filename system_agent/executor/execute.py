"""Route an executor request to the matching lifecycle or metrics flow."""
from __future__ import annotations

import logging
from typing import Collection, Optional, Sequence

from ..constants import (
    EXECUTOR_OPERATIONS,
    EXECUTOR_TYPE_DOCKER,
    FAILED_RESTART_PREFIX,
    FAILED_START_PREFIX,
    FAILED_STOP_PREFIX,
    METRICS,
    RESTART,
    START,
    STOP,
)
from ..models import ExecutionOutcome, ResultEnvelope
from ..runtime.docker import CommandExecutor
from .commands import CancelScope, execute_a_command
from .metrics import gather_metrics
from .result import create_result, failure

log = logging.getLogger(__name__)

DEFAULT_EXECUTABLE_NAME = "system-agent-executor"


def message_executor_operation_not_supported() -> str:
    return "operation not supported by executor"


def message_specified_service_is_unknown() -> str:
    return "Specified service is unknown"


def message_missing_arguments(executable_name: str) -> str:
    return (
        f"Usage: ./{executable_name} <service> <operation>\t\t"
        "Start app with requested {service} and {operation}\n"
    )


def run_operation(
    operation: str,
    service: str,
    executor: CommandExecutor,
    scope: Optional[CancelScope] = None,
) -> ExecutionOutcome:
    """Run one supported operation against a service the caller already vetted."""
    log.debug("Executing %s on %s", operation, service)
    if operation == START:
        return execute_a_command(operation, service, executor, FAILED_START_PREFIX, True, scope)
    if operation == RESTART:
        return execute_a_command(operation, service, executor, FAILED_RESTART_PREFIX, True, scope)
    if operation == STOP:
        return execute_a_command(operation, service, executor, FAILED_STOP_PREFIX, False, scope)
    if operation == METRICS:
        return gather_metrics(service, executor)
    return failure(message_executor_operation_not_supported())


def execute(
    args: Sequence[str],
    executor: CommandExecutor,
    known_services: Collection[str],
    executor_type: str = EXECUTOR_TYPE_DOCKER,
    scope: Optional[CancelScope] = None,
) -> ResultEnvelope:
    """Validate ``[program, service, operation]`` and run the operation.

    Missing arguments, unknown services and unsupported operations are all
    rejected before the executor is invoked.
    """
    if len(args) < 3:
        executable_name = args[0] if args else DEFAULT_EXECUTABLE_NAME
        return create_result("", "", executor_type, failure(message_missing_arguments(executable_name)))

    service, operation = args[1], args[2]
    if service not in known_services:
        log.info("Rejecting %s for unknown service %s", operation, service)
        return create_result("", service, executor_type, failure(message_specified_service_is_unknown()))

    if operation not in EXECUTOR_OPERATIONS:
        log.info("Rejecting unsupported operation %s for %s", operation, service)
        return create_result(operation, service, executor_type, failure(message_executor_operation_not_supported()))

    return create_result(operation, service, executor_type, run_operation(operation, service, executor, scope))
