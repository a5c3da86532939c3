"""
swapdesk Configuration

Loads the sections of config.toml.
Environment variables override TOML values.
"""

from .loader import (
    EngineConfig,
    EngineSectionConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "EngineConfig",
    "EngineSectionConfig",
    "LoggingSectionConfig",
    "load_config",
]
