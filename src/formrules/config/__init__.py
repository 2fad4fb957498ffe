"""Engine configuration management."""

from formrules.config.settings import (
    CONFIG_ENV_VAR,
    EngineConfig,
    load_engine_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "EngineConfig",
    "load_engine_config",
]
