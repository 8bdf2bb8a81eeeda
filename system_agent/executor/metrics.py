"""Container metrics gathered through ``docker stats``.

The stats template emits a single line of three ``;``-separated fields::

    1.49%;1.234MiB / 7.786GiB;{"cpu_perc":"1.49%", ...}

CPU is kept as the decimal string docker printed (minus the ``%``), memory is
normalized to a byte count, and the trailing JSON object is passed through.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import List, Optional

from ..runtime.docker import CommandError, CommandExecutor
from ..models import ExecutionOutcome
from .result import failure, metrics_success

log = logging.getLogger(__name__)

FIELD_SEPARATOR = ";"
MEMORY_SEPARATOR = " / "

STATS_RAW_TEMPLATE = (
    '{"cpu_perc":"{{ .CPUPerc }}",'
    '"mem_usage":"{{ .MemUsage }}",'
    '"mem_perc":"{{ .MemPerc }}",'
    '"net_io":"{{ .NetIO }}",'
    '"block_io":"{{ .BlockIO }}",'
    '"pids":"{{ .PIDs }}"}'
)
STATS_TEMPLATE = FIELD_SEPARATOR.join(["{{ .CPUPerc }}", "{{ .MemUsage }}", STATS_RAW_TEMPLATE])

_SIZE_PATTERN = re.compile(r"^(?P<value>[0-9]*\.?[0-9]+)(?P<unit>[A-Za-z]*)$")

# Multipliers for the unit suffixes docker prints. An absent suffix is bytes.
UNIT_MULTIPLIERS: dict[str, int] = {
    "": 1,
    "B": 1,
    "KiB": 1024,
    "MiB": 1024 ** 2,
    "GiB": 1024 ** 3,
    "TiB": 1024 ** 4,
    "kB": 1000,
    "KB": 1000,
    "MB": 1000 ** 2,
    "GB": 1000 ** 3,
    "TB": 1000 ** 4,
}


class MetricsFormatError(ValueError):
    """Raised when a stats line does not have the expected three fields."""


@dataclass(frozen=True)
class MetricsFields:
    cpu_used_percent: str
    memory_used: Optional[int]
    raw: str


def metrics_executor_commands(service: str) -> List[str]:
    return ["stats", service, "--no-stream", "--format", STATS_TEMPLATE]


def parse_memory_size(text: str) -> Optional[int]:
    """Convert a human readable size such as ``1.234MiB`` to a byte count.

    Returns ``None`` when the value cannot be parsed; callers decide how to
    render that. Rounding is half-to-even on the exact decimal product.
    """
    match = _SIZE_PATTERN.match(text.strip())
    if match is None:
        return None
    multiplier = UNIT_MULTIPLIERS.get(match.group("unit"))
    if multiplier is None:
        return None
    try:
        value = Decimal(match.group("value"))
    except InvalidOperation:
        return None
    scaled = (value * multiplier).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    return int(scaled)


def memory_used_from_usage(usage: str) -> Optional[int]:
    """Parse the used half of a ``<used> / <limit>`` memory phrase."""
    used = usage.split(MEMORY_SEPARATOR, 1)[0].strip()
    used = used.split(" ", 1)[0]
    memory = parse_memory_size(used)
    if memory is None:
        log.warning("Unable to parse memory usage %r", usage)
    return memory


def result_to_fields(line: str) -> MetricsFields:
    fields = line.rstrip("\r\n").split(FIELD_SEPARATOR, 2)
    if len(fields) != 3:
        raise MetricsFormatError(
            f"unexpected stats output: expected 3 fields separated by {FIELD_SEPARATOR!r}, "
            f"got {len(fields)}"
        )
    cpu, memory, raw = fields
    return MetricsFields(
        cpu_used_percent=cpu.strip().rstrip("%"),
        memory_used=memory_used_from_usage(memory),
        raw=raw,
    )


def gather_metrics(service: str, executor: CommandExecutor) -> ExecutionOutcome:
    try:
        output = executor(*metrics_executor_commands(service))
    except CommandError as exc:
        return failure(str(exc))

    try:
        fields = result_to_fields(output.decode("utf-8", errors="replace"))
    except MetricsFormatError as exc:
        log.error("Metrics for %s could not be parsed: %s", service, exc)
        return failure(str(exc))
    return metrics_success(fields.cpu_used_percent, fields.memory_used, fields.raw)
