"""Helpers for reading agent configuration."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from .models import AgentConfig

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SYSTEM_AGENT_CONFIG"


class ConfigRepository:
    """File-backed agent configuration (``agent.yaml``)."""

    def __init__(self, root: Path, config_path: Optional[Path] = None) -> None:
        self.root = root
        override = os.environ.get(CONFIG_ENV_VAR)
        if config_path is not None:
            self.config_path = config_path
        elif override:
            self.config_path = Path(override)
        else:
            self.config_path = root / "agent.yaml"

    def load_agent(self) -> AgentConfig:
        if not self.config_path.exists():
            log.info("No configuration at %s, using defaults", self.config_path)
            return AgentConfig()
        data = yaml.safe_load(self.config_path.read_text()) or {}
        return AgentConfig.model_validate(data)
