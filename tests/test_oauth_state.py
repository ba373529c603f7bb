"""Tests for the one-shot OAuth CSRF state ledger."""

from banklink.app.bank_integration.oauth_state import STATE_MAX_AGE, STATE_SLOT, OAuthStateLedger
from banklink.app.bank_integration.storage import MemorySlotStore


class TestOAuthStateLedger:
    """Test cases for OAuthStateLedger."""

    def test_issue_stores_state(self, slot_store: MemorySlotStore) -> None:
        """Test that issue() returns the value it stored."""
        state = OAuthStateLedger(slot_store).issue()

        assert len(state) >= 32
        assert slot_store.get(STATE_SLOT) == state

    def test_issue_is_random(self, slot_store: MemorySlotStore) -> None:
        """Test that two issued states differ."""
        ledger = OAuthStateLedger(slot_store)

        assert ledger.issue() != ledger.issue()

    def test_consume_is_one_shot(self, slot_store: MemorySlotStore) -> None:
        """Test that a state is accepted once and rejected afterwards."""
        ledger = OAuthStateLedger(slot_store)
        state = ledger.issue()

        assert ledger.consume(state) is True
        assert ledger.consume(state) is False
        assert slot_store.get(STATE_SLOT) is None

    def test_mismatch_rejects_and_burns_state(self, slot_store: MemorySlotStore) -> None:
        """Test that a wrong value deletes the stored state too."""
        ledger = OAuthStateLedger(slot_store)
        state = ledger.issue()

        assert ledger.consume("forged") is False
        assert ledger.consume(state) is False

    def test_empty_presented_state_rejected(self, slot_store: MemorySlotStore) -> None:
        """Test that an empty callback state is rejected."""
        ledger = OAuthStateLedger(slot_store)
        ledger.issue()

        assert ledger.consume("") is False

    def test_absent_state_rejected(self, slot_store: MemorySlotStore) -> None:
        """Test consuming when nothing was issued."""
        assert OAuthStateLedger(slot_store).consume("anything") is False

    def test_empty_stored_state_rejected(self, slot_store: MemorySlotStore) -> None:
        """Test that an empty stored value never matches an empty presented value."""
        slot_store.set(STATE_SLOT, "", 60)

        assert OAuthStateLedger(slot_store).consume("") is False

    def test_expired_state_rejected(self, slot_store: MemorySlotStore, monotonic) -> None:
        """Test that states older than 15 minutes are gone."""
        ledger = OAuthStateLedger(slot_store)
        state = ledger.issue()

        monotonic.now += STATE_MAX_AGE
        assert ledger.consume(state) is False

    def test_clear(self, slot_store: MemorySlotStore) -> None:
        """Test that clear() drops a pending state."""
        ledger = OAuthStateLedger(slot_store)
        state = ledger.issue()

        ledger.clear()

        assert ledger.consume(state) is False
