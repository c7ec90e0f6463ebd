"""
Tests for transaction matching.

Covers rule precedence, tie-breaking, eligibility and the
manual-match protections.
"""

import pytest

from flatledger.matching import (
    AccountRule,
    CardRule,
    NameRule,
    TransactionMatcher,
    clear_manual_match,
    default_rules,
    normalize_account,
    set_manual_match,
)
from flatledger.models.ledger import Flatmate, MatchResult, MatchType


@pytest.fixture
def matcher(matching_settings) -> TransactionMatcher:
    return TransactionMatcher(default_rules(matching_settings))


class TestRules:
    """Tests for the individual matching rules."""

    def test_normalize_account(self):
        assert normalize_account("12-3456 0001") == "1234560001"
        assert normalize_account(None) == ""

    def test_account_rule_ignores_separators(self, alice, make_transaction):
        txn = make_transaction("t1", counterparty_account="12 3456 0001 00")
        assert AccountRule(1.0).matches(txn, alice)

    def test_account_rule_needs_counterparty(self, alice, make_transaction):
        txn = make_transaction("t1")
        assert not AccountRule(1.0).matches(txn, alice)

    def test_card_rule_exact_suffix(self, make_transaction):
        flatmate = Flatmate(id="c", email="c@example.com", card_suffix="1234")
        assert CardRule(0.8).matches(make_transaction("t1", card_suffix="1234"), flatmate)
        assert not CardRule(0.8).matches(make_transaction("t2", card_suffix="4321"), flatmate)

    def test_name_rule_is_case_insensitive(self, bob, make_transaction):
        txn = make_transaction("t1", description="RENT FROM BOB SMITH")
        assert NameRule(0.5).matches(txn, bob)

    def test_rule_rejects_out_of_range_confidence(self):
        with pytest.raises(ValueError):
            NameRule(1.5)

    def test_default_rules_use_settings(self, matching_settings):
        rules = default_rules(matching_settings)
        assert [r.match_type for r in rules] == [
            MatchType.ACCOUNT,
            MatchType.CARD,
            MatchType.NAME,
        ]
        assert [r.confidence for r in rules] == [1.0, 0.8, 0.5]


class TestMatcherPrecedence:
    """Account beats card beats name, whoever the flatmates are."""

    def test_account_beats_card(self, matcher, make_transaction):
        by_card = Flatmate(id="a-card", email="a@example.com", card_suffix="1234")
        by_account = Flatmate(id="z-account", email="z@example.com", bank_account_pattern="99-0001")
        txn = make_transaction(
            "t1",
            card_suffix="1234",
            counterparty_account="99-0001-00",
        )

        result = matcher.match(txn, [by_card, by_account])

        assert result.flatmate_id == "z-account"
        assert result.match_type == MatchType.ACCOUNT
        assert result.confidence == 1.0

    def test_card_beats_name(self, matcher, bob, make_transaction):
        by_card = Flatmate(id="carol", email="carol@example.com", card_suffix="5555")
        txn = make_transaction("t1", description="Groceries for Bob", card_suffix="5555")

        result = matcher.match(txn, [bob, by_card])

        assert result.flatmate_id == "carol"
        assert result.match_type == MatchType.CARD
        assert result.confidence == 0.8

    def test_name_match(self, matcher, alice, bob, make_transaction):
        txn = make_transaction("t1", description="Rent - bob")
        result = matcher.match(txn, [alice, bob])
        assert result == MatchResult(flatmate_id="bob", match_type=MatchType.NAME, confidence=0.5)

    def test_tie_goes_to_lowest_id(self, matcher, make_transaction):
        second = Flatmate(id="b", email="b@example.com", matching_name="Sam")
        first = Flatmate(id="a", email="a@example.com", matching_name="Sam")
        txn = make_transaction("t1", description="Sam rent")

        assert matcher.match(txn, [second, first]).flatmate_id == "a"

    def test_no_rule_matches(self, matcher, alice, bob, make_transaction):
        txn = make_transaction("t1", description="Power bill")
        result = matcher.match(txn, [alice, bob])
        assert result == MatchResult.unmatched()
        assert not result.is_match


class TestMatcherEligibility:
    """Tests for which flatmates may be matched at all."""

    def test_inactive_flatmate_never_matched(self, matcher, make_transaction):
        gone = Flatmate(id="gone", email="g@example.com", matching_name="Rent", is_active=False)
        txn = make_transaction("t1", description="Rent")
        assert matcher.match(txn, [gone]).flatmate_id is None

    def test_flatmate_without_rules_never_matched(self, matcher, make_transaction):
        bare = Flatmate(id="bare", email="b@example.com")
        assert not bare.has_matching_rules
        assert matcher.match(make_transaction("t1", description="anything"), [bare]).flatmate_id is None

    def test_eligible_is_sorted(self, alice, bob):
        assert [f.id for f in TransactionMatcher.eligible([bob, alice])] == ["alice", "bob"]


class TestManualMatches:
    """Manual matches are authoritative."""

    def test_match_returns_stored_manual_assignment(self, matcher, alice, bob, make_transaction):
        txn = set_manual_match(make_transaction("t1", description="Rent - bob"), "alice")

        result = matcher.match(txn, [alice, bob])

        assert result.flatmate_id == "alice"
        assert result.match_type == MatchType.MANUAL

    def test_apply_leaves_manual_untouched(self, matcher, alice, bob, make_transaction):
        txn = set_manual_match(make_transaction("t1", description="Rent - bob"), "alice")
        assert matcher.apply(txn, [alice, bob]) is txn

    def test_set_manual_match(self, make_transaction):
        txn = set_manual_match(make_transaction("t1"), "bob")
        assert txn.manual_match
        assert txn.matched_user_id == "bob"
        assert txn.match_confidence == 1.0

    def test_clear_manual_match(self, make_transaction):
        txn = clear_manual_match(set_manual_match(make_transaction("t1"), "bob"))
        assert not txn.manual_match
        assert txn.matched_user_id is None
        assert txn.match_type == MatchType.NONE
        assert txn.match_confidence is None


class TestMatcherIdempotence:
    """Applying the matcher twice changes nothing."""

    def test_apply_twice_is_stable(self, matcher, alice, bob, make_transaction):
        txn = make_transaction("t1", description="Rent - bob")

        once = matcher.apply(txn, [alice, bob])
        twice = matcher.apply(once, [alice, bob])

        assert once == twice
        assert once.current_match() == twice.current_match()

    def test_apply_does_not_mutate_input(self, matcher, alice, make_transaction):
        txn = make_transaction("t1", counterparty_account="12-3456-0001-00")
        matched = matcher.apply(txn, [alice])
        assert txn.matched_user_id is None
        assert matched.matched_user_id == "alice"
