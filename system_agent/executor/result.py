"""Builders for the uniform result envelope returned by every command."""
from __future__ import annotations

import json
from typing import Any, Optional

from ..models import ExecutionOutcome, MetricsResult, ResultEnvelope

MEMORY_UNPARSEABLE = "-1"


def failure(error_message: str) -> ExecutionOutcome:
    return ExecutionOutcome(success=False, error_message=error_message or "unknown error")


def success() -> ExecutionOutcome:
    return ExecutionOutcome(success=True)


def metrics_success(cpu_used_percent: str, memory_used: Optional[int], raw: Any) -> ExecutionOutcome:
    """Wrap normalized metrics in a successful outcome.

    ``memory_used`` is ``None`` when the size could not be parsed; on the wire
    that is rendered as the ``"-1"`` sentinel. ``raw`` is embedded as JSON when
    it is a JSON document, and as a plain string otherwise.
    """
    return ExecutionOutcome(
        success=True,
        result=MetricsResult(
            cpu_used_percent=cpu_used_percent,
            memory_used=MEMORY_UNPARSEABLE if memory_used is None else str(memory_used),
            raw=_embed_raw(raw),
        ),
    )


def create_result(
    operation: str,
    service: str,
    executor_type: str,
    outcome: ExecutionOutcome,
) -> ResultEnvelope:
    return ResultEnvelope(
        operation=operation,
        service=service,
        executor=executor_type,
        success=outcome.success,
        error_message=None if outcome.success else outcome.error_message,
        result=outcome.result if outcome.success else None,
    )


def _embed_raw(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return raw
