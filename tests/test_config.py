"""
Tests for configuration, structured logging and system assembly
"""

import json
import logging

from fastapi.testclient import TestClient

from interest_ledger.api import create_app
from interest_ledger.api.dependencies import get_system
from interest_ledger.config import LedgerConfig, get_config, reload_config
from interest_ledger.fixed_point import annual_rate_to_per_second
from interest_ledger.logging_config import JSONFormatter, log_action, setup_logging
from interest_ledger.system import LedgerSystem


class TestLedgerConfig:
    """Test environment-driven configuration"""

    def test_defaults(self):
        config = LedgerConfig()
        assert config.database_url == "memory://"
        assert config.custodian_address == "custodian"
        assert config.log_format == "json"
        assert config.opening_asset_balances == {}

    def test_every_field_is_consumed(self):
        """Test that no setting exists without something reading it"""
        assert set(LedgerConfig.model_fields) == {
            "database_url", "ledger_address", "custodian_address", "rate_administrator",
            "supply_controllers", "initial_annual_rate", "opening_asset_balances",
            "api_host", "api_port", "log_level", "log_format", "log_file"
        }

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_INITIAL_ANNUAL_RATE", "0.03")
        monkeypatch.setenv("LEDGER_RATE_ADMINISTRATOR", "treasurer")
        monkeypatch.setenv("LEDGER_SUPPLY_CONTROLLERS", '["minter-a", "minter-b"]')
        monkeypatch.setenv("LEDGER_OPENING_ASSET_BALANCES", '{"alice": "1000000000000000000000"}')

        config = reload_config()
        try:
            assert config.initial_annual_rate == "0.03"
            assert config.rate_administrator == "treasurer"
            assert config.supply_controllers == ["minter-a", "minter-b"]
            assert config.opening_asset_balances == {"alice": 10 ** 21}
            assert get_config() is config
        finally:
            monkeypatch.undo()
            reload_config()


class TestLedgerSystem:
    """Test wiring from configuration"""

    def test_assembly(self):
        config = LedgerConfig(
            database_url="memory://",
            initial_annual_rate="0.04",
            supply_controllers=["minter"]
        )
        system = LedgerSystem(config=config)

        assert system.ledger.get_interest_rate() == annual_rate_to_per_second("0.04")
        assert system.access_gate.has_supply_control("custodian")
        assert system.access_gate.has_supply_control("minter")
        assert system.access_gate.is_rate_administrator("admin")
        assert system.custodian.get_ledger_address() == system.ledger.address
        system.close()

    def test_sqlite_assembly(self):
        system = LedgerSystem(config=LedgerConfig(database_url="sqlite://"))
        assert system.ledger.total_supply() == 0
        system.close()

    def test_configured_system_serves_deposits(self):
        """Test that holders funded through configuration can deposit over HTTP"""
        config = LedgerConfig(opening_asset_balances={"alice": 500})
        system = LedgerSystem(config=config)
        app = create_app()
        app.dependency_overrides[get_system] = lambda: system
        client = TestClient(app)

        r = client.post("/custodian/deposits", json={"amount": "200"}, headers={"X-Caller": "alice"})
        assert r.status_code == 201
        assert client.get("/custodian").json()["custody_balance"] == "200"

        r = client.post("/custodian/redemptions", json={"amount": "max"}, headers={"X-Caller": "alice"})
        assert r.status_code == 200
        assert system.vault.balance_of("alice") == 500
        system.close()

    def test_custody_survives_restart(self, tmp_path):
        """Test that the asset book is persisted with the ledger"""
        config = LedgerConfig(
            database_url=f"sqlite:///{tmp_path / 'ledger.db'}",
            opening_asset_balances={"alice": 500}
        )
        system = LedgerSystem(config=config)
        system.custodian.deposit("alice", 200)
        system.close()

        restarted = LedgerSystem(config=config)
        assert restarted.ledger.principal_balance_of("alice") == 200
        assert restarted.custodian.custody_balance() == 200
        assert restarted.vault.balance_of("alice") == 300
        restarted.close()


class TestStructuredLogging:
    """Test JSON log output"""

    def test_json_formatter(self):
        record = logging.LogRecord("interest_ledger.ledger", logging.INFO, __file__, 1, "Minted", (), None)
        record.caller = "custodian"
        record.action = "mint"
        record.resource = "alice"
        record.extra = {"amount": "100"}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Minted"
        assert entry["caller"] == "custodian"
        assert entry["action"] == "mint"
        assert entry["extra"] == {"amount": "100"}

    def test_json_formatter_drops_missing_fields(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "plain", (), None)
        entry = json.loads(JSONFormatter().format(record))
        assert "caller" not in entry
        assert "action" not in entry

    def test_log_action_reaches_handlers(self, caplog):
        logger = logging.getLogger("interest_ledger.test")
        with caplog.at_level(logging.INFO, logger="interest_ledger.test"):
            log_action(logger, "info", "Transferred", caller="alice", action="transfer", resource="bob")

        assert len(caplog.records) == 1
        assert caplog.records[0].action == "transfer"
        assert caplog.records[0].caller == "alice"

    def test_setup_logging_text_format(self):
        logger = setup_logging("DEBUG", log_format="text", logger_name="interest_ledger.setup_test")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False
