"""
Tests for configuration and structured logging
"""

import io
import json
import logging
import os
import sys
from decimal import Decimal
from datetime import date
from unittest.mock import patch

import pytest

from financing_engine import config as config_module
from financing_engine.config import EngineConfig, get_config, reload_config
from financing_engine.engine import FinancingEngine
from financing_engine.errors import DuplicateInstallmentError
from financing_engine.logging_config import JSONFormatter, log_action, setup_logging
from financing_engine.storage import InMemoryStorage


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.storage_backend in ("sqlite", "memory")
        assert config.balance_tolerance_amount == Decimal('0.01')
        assert config.max_amount_value == Decimal('999999999999.99')
        assert config.allow_account_overdraft is False

    def test_environment_overrides(self):
        env = {
            "FINANCING_STORAGE_BACKEND": "memory",
            "FINANCING_BALANCE_TOLERANCE": "0.05",
            "FINANCING_ALLOW_ACCOUNT_OVERDRAFT": "true",
            "FINANCING_API_PORT": "9100",
        }
        with patch.dict(os.environ, env):
            config = EngineConfig()

        assert config.storage_backend == "memory"
        assert config.balance_tolerance_amount == Decimal('0.05')
        assert config.allow_account_overdraft is True
        assert config.api_port == 9100

    def test_reload_config(self):
        original = get_config()
        try:
            with patch.dict(os.environ, {"FINANCING_LOG_LEVEL": "DEBUG"}):
                reloaded = reload_config()
            assert reloaded.log_level == "DEBUG"
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestStructuredLogging:

    def setup_method(self):
        self.stream = io.StringIO()
        self.logger = setup_logging(level="DEBUG", log_format="json", logger_name="financing_engine")
        self.logger.handlers[0].setStream(self.stream)

    def teardown_method(self):
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
        self.logger.propagate = True

    def records(self):
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line]

    def test_log_action_fields(self):
        log_action(self.logger, "info", "Loan opened", owner_id="owner-1", action="open_loan",
                   resource="loan:1", extra={"principal": "1000.00"})

        entry = self.records()[-1]
        assert entry["message"] == "Loan opened"
        assert entry["level"] == "INFO"
        assert entry["owner_id"] == "owner-1"
        assert entry["action"] == "open_loan"
        assert entry["resource"] == "loan:1"
        assert entry["extra"] == {"principal": "1000.00"}

    def test_formatter_includes_exception(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("bad row")
        except ValueError:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
            )
        entry = json.loads(formatter.format(record))
        assert "ValueError: bad row" in entry["exception"]

    def test_payments_are_logged(self):
        engine = FinancingEngine(storage=InMemoryStorage(), config=EngineConfig(storage_backend="memory"))
        engine.register_expense_category("owner-1", "Loans")
        account = engine.open_account("owner-1", "Checking", "5000.00")
        loan = engine.open_loan("owner-1", "1000.00", "0.02", 1, "price", date(2024, 1, 1))

        engine.pay_installment("owner-1", loan.id, 1, account.id, "1020.00", date(2024, 2, 1), "pix")
        with pytest.raises(DuplicateInstallmentError):
            engine.pay_installment("owner-1", loan.id, 1, account.id, "1020.00", date(2024, 2, 1), "pix")

        entries = [e for e in self.records() if e.get("action") == "apply_payment"]
        assert [e["level"] for e in entries] == ["INFO", "WARNING"]
        assert entries[0]["extra"]["installment_number"] == 1
        assert entries[1]["extra"]["error"] == "duplicate_installment"

    def test_text_format(self):
        logger = setup_logging(level="INFO", log_format="text", logger_name="financing_engine.text_test")
        stream = io.StringIO()
        logger.handlers[0].setStream(stream)
        logger.info("plain message")
        assert "| INFO     | financing_engine.text_test | plain message" in stream.getvalue()
        logger.removeHandler(logger.handlers[0])
