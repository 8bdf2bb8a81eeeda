"""Utilities for invoking docker commands."""
from __future__ import annotations

import logging
import os
import subprocess
from typing import Callable, Optional

log = logging.getLogger(__name__)

# Called as executor(operation, service) or executor("stats", service, ...);
# returns the command's combined output or raises CommandError.
CommandExecutor = Callable[..., bytes]


class CommandError(Exception):
    """Raised when a command cannot be run or exits non-zero."""

    def __init__(self, message: str, output: bytes = b"") -> None:
        super().__init__(message)
        self.output = output


class DockerExecutor:
    """Run docker CLI commands and hand back their combined output."""

    def __init__(self, binary: str = "docker", timeout: Optional[float] = 30.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def __call__(self, *args: str) -> bytes:
        return self._run([self.binary, *args])

    def _run(self, command: list[str]) -> bytes:
        log.debug("Running %s", " ".join(command))
        try:
            process = subprocess.run(
                command,
                env=os.environ.copy(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise CommandError(f"executable not found: {self.binary}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                f"command timed out after {self.timeout}s", exc.output or b""
            ) from exc

        output = process.stdout or b""
        if process.returncode != 0:
            raise CommandError(f"exit status {process.returncode}", output)
        return output
