"""
swapdesk TOML Configuration Loader

Loads the sections of an engine config.toml with environment variable
overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [engine] chain_id        → SWAPDESK_CHAIN_ID
    [engine] address         → SWAPDESK_ADDRESS
    [engine] fee_bps         → SWAPDESK_FEE_BPS
    [engine] fee_recipient   → SWAPDESK_FEE_RECIPIENT
    [engine] max_batch_size  → SWAPDESK_MAX_BATCH_SIZE
    [logging] level          → SWAPDESK_LOG_LEVEL
    [logging] file           → SWAPDESK_LOG_FILE
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    DEFAULT_CHAIN_ID,
    MAX_BATCH_SIZE,
    MAX_FEE_BPS,
    VALID_ADDRESS_PATTERN,
    ZERO_ADDRESS,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class EngineSectionConfig:
    """[engine] section."""
    chain_id: int = DEFAULT_CHAIN_ID
    address: str = ""
    fee_bps: int = 0
    fee_recipient: str = ""
    max_batch_size: int = MAX_BATCH_SIZE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSectionConfig":
        return cls(
            chain_id=data.get("chain_id", DEFAULT_CHAIN_ID),
            address=data.get("address", ""),
            fee_bps=data.get("fee_bps", 0),
            fee_recipient=data.get("fee_recipient", ""),
            max_batch_size=data.get("max_batch_size", MAX_BATCH_SIZE),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("SWAPDESK_CHAIN_ID"):
            self.chain_id = int(v)
        if v := os.environ.get("SWAPDESK_ADDRESS"):
            self.address = v
        if v := os.environ.get("SWAPDESK_FEE_BPS"):
            self.fee_bps = int(v)
        if v := os.environ.get("SWAPDESK_FEE_RECIPIENT"):
            self.fee_recipient = v
        if v := os.environ.get("SWAPDESK_MAX_BATCH_SIZE"):
            self.max_batch_size = int(v)


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"
    file: str = ""
    console: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file=data.get("file", ""),
            console=data.get("console", True),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SWAPDESK_LOG_LEVEL"):
            self.level = v.upper()
        if v := os.environ.get("SWAPDESK_LOG_FILE"):
            self.file = v


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """
    Unified engine configuration.

    Loads every section of config.toml and applies environment variable
    overrides.
    """
    engine: EngineSectionConfig = field(default_factory=EngineSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create EngineConfig from a parsed TOML dict."""
        return cls(
            engine=EngineSectionConfig.from_dict(data.get("engine", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "EngineConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            EngineConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.engine.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ValueError: on invalid config
        """
        if self.engine.chain_id < 1:
            raise ValueError("chain_id must be >= 1")
        if not 0 <= self.engine.fee_bps <= MAX_FEE_BPS:
            raise ValueError(f"fee_bps must be between 0 and {MAX_FEE_BPS}")
        if self.engine.max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        for name in ("address", "fee_recipient"):
            value = getattr(self.engine, name)
            if value and not VALID_ADDRESS_PATTERN.match(value):
                raise ValueError(f"Invalid {name}: {value}")
        if self.engine.address == ZERO_ADDRESS:
            raise ValueError("Engine address cannot be the zero address")
        if self.logging.level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.logging.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "engine": {
                "chain_id": self.engine.chain_id,
                "address": self.engine.address,
                "fee_bps": self.engine.fee_bps,
                "fee_recipient": self.engine.fee_recipient,
                "max_batch_size": self.engine.max_batch_size,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
                "console": self.logging.console,
            },
        }


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load the engine configuration.

    Falls back to the SWAPDESK_CONFIG environment variable, then to
    built-in defaults (with env overrides) when no path is known.
    """
    path = config_path or os.environ.get("SWAPDESK_CONFIG")
    if path:
        cfg = EngineConfig.from_file(path)
    else:
        cfg = EngineConfig()
        cfg.apply_env()
    cfg.validate()
    return cfg
