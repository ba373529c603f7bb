"""
OAuth State (CSRF) Ledger

One-time anti-forgery token that binds the outbound authorization request to
its callback. Stored in a short-lived scoped slot and consumed exactly once.
"""

import hmac
import logging
import secrets

from .storage import SlotStore


logger = logging.getLogger(__name__)

STATE_SLOT = "ml_bank_state"
STATE_MAX_AGE = 60 * 15  # 15 minutes


class OAuthStateLedger:
    """Issue and consume CSRF state tokens for the connect/callback round trip."""

    def __init__(self, store: SlotStore):
        self.store = store

    def issue(self) -> str:
        """
        Generate a state token and store it for the callback.

        Returns:
            The token to embed in the authorization URL
        """
        state = secrets.token_urlsafe(32)
        self.store.set(STATE_SLOT, state, STATE_MAX_AGE)
        return state

    def consume(self, presented: str) -> bool:
        """
        Check a returned state against the stored one. One-shot.

        The slot is deleted before comparing, whatever the outcome. Absent,
        empty and mismatching states are indistinguishable to the caller.

        Args:
            presented: State value from the callback query string

        Returns:
            True only if a non-empty stored state equals the presented one
        """
        expected = self.store.get(STATE_SLOT)
        self.store.delete(STATE_SLOT)

        if not expected or not presented:
            logger.warning("Rejected OAuth callback state")
            return False

        if not hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8")):
            logger.warning("Rejected OAuth callback state")
            return False

        return True

    def clear(self) -> None:
        self.store.delete(STATE_SLOT)
