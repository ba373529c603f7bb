"""
Token Bundle Store

Persists the OAuth token bundle as a sealed, client-held slot (cookie).

read() never raises for missing, tampered, undecodable or incomplete data:
all of those mean "not connected", so callers do not need to tell a fresh
visitor apart from a corrupted session.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from banklink.app.schemas import TokenBundle
from .encryption import SealedBoxCodec
from .errors import IntegrityError
from .storage import SlotStore, MAX_SLOT_BYTES


logger = logging.getLogger(__name__)

TOKENS_SLOT = "ml_bank_tokens"
TOKENS_MAX_AGE = 60 * 60 * 24 * 30  # 30 days

# Warn before the browser cookie cap so operators can move tokens server-side
TOKEN_SIZE_WARNING_BYTES = 3500


class TokenBundleStore:
    """
    Read/write the sealed token bundle slot.

    Example:
        >>> store = TokenBundleStore(MemorySlotStore(), SealedBoxCodec("s3cret"))
        >>> store.persist(bundle)
        >>> store.read() == bundle
        True
    """

    def __init__(self, store: SlotStore, codec: SealedBoxCodec):
        self.store = store
        self.codec = codec

    def persist(self, bundle: TokenBundle) -> None:
        """
        Seal and write the bundle with a 30-day lifetime.

        Oversized envelopes only log a warning; the write still happens.

        Args:
            bundle: Token bundle to store
        """
        payload = self.codec.seal(bundle.model_dump_json(exclude_none=True))
        approx_bytes = self.store.envelope_size(TOKENS_SLOT, payload)

        if approx_bytes > TOKEN_SIZE_WARNING_BYTES:
            logger.warning(
                f"Token slot near storage size limit: {approx_bytes} bytes "
                f"(warning at {TOKEN_SIZE_WARNING_BYTES}, cap {MAX_SLOT_BYTES})"
            )
        else:
            logger.debug(f"Token slot size: {approx_bytes} bytes")

        self.store.set(TOKENS_SLOT, payload, TOKENS_MAX_AGE)

    def read(self) -> Optional[TokenBundle]:
        """
        Load the stored bundle.

        Returns:
            TokenBundle, or None if absent, corrupted or incomplete
        """
        payload = self.store.get(TOKENS_SLOT)
        if not payload:
            return None

        try:
            raw = self.codec.open(payload)
            return TokenBundle.model_validate_json(raw)
        except IntegrityError as e:
            logger.info(f"Ignoring unreadable token slot: {e}")
            return None
        except ValidationError as e:
            logger.info(f"Ignoring incomplete token bundle ({e.error_count()} errors)")
            return None

    def clear(self) -> None:
        self.store.delete(TOKENS_SLOT)
