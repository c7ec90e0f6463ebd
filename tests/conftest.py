"""
Shared fixtures for Flatledger tests.

All dates are pinned around Thursday 4 Jan 2024, so the default
Thursday due weekday lines up with T0.
"""

from datetime import date
from decimal import Decimal

import pytest

from flatledger.config import AutopaySettings, LedgerSettings, MatchingSettings
from flatledger.models.ledger import Flatmate, ScheduleSegment, Transaction


T0 = date(2024, 1, 4)  # Thursday


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        due_weekday=3,
        payment_grace_days=3,
        timezone="Pacific/Auckland",
        analysis_start_date=None,
    )


@pytest.fixture
def autopay_settings() -> AutopaySettings:
    return AutopaySettings(correction_weeks=8, horizon_weeks=52)


@pytest.fixture
def matching_settings() -> MatchingSettings:
    return MatchingSettings(
        account_confidence=1.0,
        card_confidence=0.8,
        name_confidence=0.5,
    )


@pytest.fixture
def alice() -> Flatmate:
    return Flatmate(
        id="alice",
        name="Alice",
        email="alice@example.com",
        bank_account_pattern="12-3456-0001",
    )


@pytest.fixture
def bob() -> Flatmate:
    return Flatmate(
        id="bob",
        name="Bob",
        email="bob@example.com",
        matching_name="Bob",
    )


@pytest.fixture
def make_transaction():
    """Factory for unmatched transactions with sensible defaults."""
    def _make(
        txn_id: str,
        amount: str = "200",
        day: date = T0,
        description: str = "",
        **kwargs,
    ) -> Transaction:
        return Transaction(
            id=txn_id,
            external_id=kwargs.pop("external_id", f"ext-{txn_id}"),
            date=day,
            amount=Decimal(amount),
            description=description,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_segment():
    """Factory for schedule segments."""
    def _make(
        flatmate_id: str,
        weekly_amount: str,
        start_date: date,
        end_date=None,
        segment_id: str = "",
    ) -> ScheduleSegment:
        return ScheduleSegment(
            id=segment_id,
            flatmate_id=flatmate_id,
            weekly_amount=Decimal(weekly_amount),
            start_date=start_date,
            end_date=end_date,
        )
    return _make
