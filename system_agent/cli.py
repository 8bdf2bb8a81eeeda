"""Executor entry point: ``system-agent-executor <service> <operation>``.

Prints the result envelope as JSON on stdout and always exits 0; success or
failure is carried inside the envelope.
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .executor.commands import CancelScope
from .executor.execute import execute
from .runtime.docker import DockerExecutor
from .storage import ConfigRepository


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv if argv is None else argv)
    if args:
        args[0] = os.path.basename(args[0])

    logging.basicConfig(
        level=os.environ.get("SYSTEM_AGENT_LOG_LEVEL", "WARNING"),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ConfigRepository(Path.cwd()).load_agent()
    executor = DockerExecutor(config.executor.binary, timeout=config.executor.timeout_seconds)
    envelope = execute(
        args,
        executor,
        config.known_services(),
        scope=CancelScope(config.executor.operation_timeout_seconds),
    )
    sys.stdout.write(envelope.to_json() + "\n")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
