"""Tests for settings loading and validation."""

import pytest

from flatledger.config import (
    AutopaySettings,
    LedgerSettings,
    MatchingSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for the weekly billing settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_DUE_WEEKDAY", raising=False)
        settings = LedgerSettings()
        assert settings.due_weekday == 3
        assert settings.due_weekday_name == "Thursday"
        assert settings.payment_grace_days == 3
        assert settings.analysis_start_date is None

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DUE_WEEKDAY", "0")
        monkeypatch.setenv("LEDGER_ANALYSIS_START_DATE", "2024-01-04")
        settings = LedgerSettings()
        assert settings.due_weekday == 0
        assert settings.due_weekday_name == "Monday"
        assert settings.analysis_start_date.isoformat() == "2024-01-04"

    @pytest.mark.parametrize("weekday", [-1, 7])
    def test_rejects_invalid_weekday(self, weekday):
        with pytest.raises(ValueError):
            LedgerSettings(due_weekday=weekday)

    def test_rejects_unknown_timezone(self):
        with pytest.raises(ValueError):
            LedgerSettings(timezone="Mars/Olympus_Mons")


class TestOtherSettings:
    """Tests for matching and autopay settings."""

    def test_matching_confidence_bounds(self):
        with pytest.raises(ValueError):
            MatchingSettings(card_confidence=1.2)

    def test_autopay_defaults(self):
        settings = AutopaySettings()
        assert settings.correction_weeks == 8
        assert settings.horizon_weeks == 52

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_sections_are_exposed(self):
        settings = get_settings()
        assert settings.matching.account_confidence == 1.0
        assert settings.sync.lookback_days == 30

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["autopay"] is True

    def test_validate_all_settings_reports_errors(self, monkeypatch):
        monkeypatch.setenv("AUTOPAY_CORRECTION_WEEKS", "0")
        results = validate_all_settings()
        assert results["autopay"] is False
        assert "autopay_error" in results
