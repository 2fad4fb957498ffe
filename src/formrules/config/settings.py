"""Engine settings schema and loader.

Settings are loaded from a YAML file, by default the path named by the
FORMRULES_CONFIG environment variable. Every setting has a default, so a
missing file simply yields the defaults.

Example formrules.yaml:

    max_steps: 5000
    max_depth: 32
    timeout_ms: 50
    max_cascade_passes: 10
    failure_log_level: WARNING
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FORMRULES_CONFIG"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class EngineConfig(BaseModel):
    """Evaluation limits and reporting settings.

    Attributes:
        max_steps: Step budget per expression evaluation.
        max_depth: Maximum nesting depth accepted by the expression parser.
        timeout_ms: Optional wall-clock budget per expression evaluation.
        max_cascade_passes: Limit on reset/computed-value cascades in FormRuntime.
        failure_log_level: Level used by the logging failure observer.
    """

    model_config = ConfigDict(extra="forbid")

    max_steps: int = Field(
        default=10_000,
        description="Step budget per expression evaluation",
        ge=1,
    )
    max_depth: int = Field(
        default=64,
        description="Maximum expression nesting depth",
        ge=1,
        le=256,
    )
    timeout_ms: Optional[int] = Field(
        default=None,
        description="Optional wall-clock budget per expression evaluation",
        ge=1,
    )
    max_cascade_passes: int = Field(
        default=10,
        description="Maximum reset/computed-value cascade passes per update",
        ge=1,
    )
    failure_log_level: str = Field(
        default="WARNING",
        description="Log level for contained rule failures",
    )

    @field_validator("failure_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize the log level name."""
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Unknown log level '{v}'. Valid levels: {sorted(VALID_LOG_LEVELS)}"
            )
        return level

    @property
    def failure_log_level_value(self) -> int:
        return getattr(logging, self.failure_log_level)


def load_engine_config(config_path: Optional[Path] = None) -> EngineConfig:
    """Load engine settings from a YAML file.

    Args:
        config_path: Optional explicit path. If not provided, the path in the
            FORMRULES_CONFIG environment variable is used, if set.

    Returns:
        EngineConfig, with defaults when no file is configured or found.

    Raises:
        ValueError: If the file exists but contains invalid YAML or settings.
    """
    if config_path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return EngineConfig()
        config_path = Path(env_path)

    config_path = Path(config_path)
    if not config_path.exists():
        logger.debug(f"No engine config found at {config_path}, using defaults")
        return EngineConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in engine config {config_path}: {e}")

    if data is None:
        logger.warning(f"Empty engine config at {config_path}, using defaults")
        return EngineConfig()

    if not isinstance(data, dict):
        raise ValueError(f"Engine config {config_path} must be a mapping")

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid engine config in {config_path}: {e}")

    logger.debug(f"Loaded engine config from {config_path}")
    return config
