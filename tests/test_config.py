"""
Tests for configuration loading and logging setup.

Covers:
  - TOML parsing and defaults
  - environment variable overrides
  - validation errors
  - building an engine from config
"""

import logging

import pytest

from swapdesk.config import EngineConfig, load_config
from swapdesk.exchange import OfferExchange
from swapdesk.logger import get_logger
from swapdesk.tokens import TokenLedger

from conftest import ADMIN, MODERATOR, NOW

CONFIG_TOML = """
[engine]
chain_id = 137
fee_bps = 25
fee_recipient = "0x00000000000000000000000000000000000000fe"
max_batch_size = 10

[logging]
level = "debug"
console = false
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SWAPDESK_CONFIG", "SWAPDESK_CHAIN_ID", "SWAPDESK_FEE_BPS",
                 "SWAPDESK_LOG_LEVEL", "SWAPDESK_ADDRESS", "SWAPDESK_FEE_RECIPIENT",
                 "SWAPDESK_MAX_BATCH_SIZE", "SWAPDESK_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestEngineConfig:

    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.engine.chain_id == 1
        assert cfg.engine.fee_bps == 0
        assert cfg.logging.level == "INFO"
        assert cfg.validate()

    def test_from_file(self, config_file):
        cfg = EngineConfig.from_file(str(config_file))
        assert cfg.engine.chain_id == 137
        assert cfg.engine.fee_bps == 25
        assert cfg.engine.max_batch_size == 10
        assert cfg.logging.level == "DEBUG"
        assert cfg.logging.console is False

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = EngineConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.engine.chain_id == 1

    def test_env_override(self, config_file, monkeypatch):
        monkeypatch.setenv("SWAPDESK_FEE_BPS", "50")
        monkeypatch.setenv("SWAPDESK_LOG_LEVEL", "warning")
        cfg = EngineConfig.from_file(str(config_file))
        assert cfg.engine.fee_bps == 50
        assert cfg.logging.level == "WARNING"

    def test_load_config_from_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("SWAPDESK_CONFIG", str(config_file))
        assert load_config().engine.chain_id == 137

    def test_fee_too_high(self):
        cfg = EngineConfig.from_dict({"engine": {"fee_bps": 5_000}})
        with pytest.raises(ValueError, match="fee_bps"):
            cfg.validate()

    def test_bad_address(self):
        cfg = EngineConfig.from_dict({"engine": {"fee_recipient": "0x1234"}})
        with pytest.raises(ValueError, match="fee_recipient"):
            cfg.validate()

    def test_bad_log_level(self):
        cfg = EngineConfig.from_dict({"logging": {"level": "loud"}})
        with pytest.raises(ValueError, match="log level"):
            cfg.validate()

    def test_to_dict(self, config_file):
        data = EngineConfig.from_file(str(config_file)).to_dict()
        assert data["engine"]["fee_bps"] == 25
        assert data["logging"]["level"] == "DEBUG"


class TestEngineFromConfig:

    def test_build(self, config_file):
        cfg = load_config(str(config_file))
        ledger = TokenLedger.from_config(cfg, clock=lambda: NOW)
        ex = OfferExchange.from_config(cfg, ledger, ADMIN, MODERATOR)
        assert ex.fee == 25
        assert ex.fee_recipient.lower() == "0x00000000000000000000000000000000000000fe"
        assert ex.max_batch_size == 10
        assert logging.getLogger().level == logging.DEBUG

    def test_chain_id_reaches_permit_domain(self):
        cfg = EngineConfig.from_dict({"engine": {"chain_id": 137}})
        ledger = TokenLedger.from_config(cfg)
        OfferExchange.from_config(cfg, ledger, ADMIN)
        token = ledger.deploy("USD Coin", "USDC", 6)
        assert ledger.chain_id == 137
        assert token.domain.chain_id == 137

    def test_ledger_on_other_chain_rejected(self, ledger):
        cfg = EngineConfig.from_dict({"engine": {"chain_id": 137}})
        with pytest.raises(ValueError, match="chain_id"):
            OfferExchange.from_config(cfg, ledger, ADMIN)


class TestLogger:

    def test_get_logger(self):
        log = get_logger("swapdesk.tests")
        assert isinstance(log, logging.Logger)
        assert log.name == "swapdesk.tests"
