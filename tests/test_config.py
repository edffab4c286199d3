"""Test circulation configuration."""
from decimal import Decimal

import pytest

from patterns.domain_config import CirculationConfig


def test_defaults():
    config = CirculationConfig.default()
    assert config.loan_period_days == 14
    assert config.overdue_fine_amount == Decimal("5.00")
    assert config.strict_reservations is True


def test_from_env(monkeypatch):
    monkeypatch.setenv("LIBRARY_LOAN_PERIOD_DAYS", "21")
    monkeypatch.setenv("LIBRARY_OVERDUE_FINE_AMOUNT", "2.50")
    monkeypatch.setenv("LIBRARY_STRICT_RESERVATIONS", "false")
    monkeypatch.setenv("LIBRARY_RETRY_BACKOFF_BASE", "0.2")
    config = CirculationConfig.from_env()
    assert config.loan_period_days == 21
    assert config.overdue_fine_amount == Decimal("2.50")
    assert config.strict_reservations is False
    assert config.retry_backoff_base == 0.2


def test_frozen():
    config = CirculationConfig()
    with pytest.raises(AttributeError):
        config.loan_period_days = 7


def test_rejects_negative_values():
    with pytest.raises(ValueError):
        CirculationConfig(loan_period_days=-1)
    with pytest.raises(ValueError):
        CirculationConfig(overdue_fine_amount=Decimal("-5"))
