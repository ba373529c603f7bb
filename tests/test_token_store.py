"""Tests for the sealed token bundle store."""

import json
import logging

import pytest

from banklink.app.schemas import TokenBundle
from banklink.app.bank_integration.encryption import SealedBoxCodec
from banklink.app.bank_integration.storage import MemorySlotStore
from banklink.app.bank_integration.token_store import (
    TOKEN_SIZE_WARNING_BYTES,
    TOKENS_MAX_AGE,
    TOKENS_SLOT,
    TokenBundleStore,
)


@pytest.fixture
def codec() -> SealedBoxCodec:
    return SealedBoxCodec("test-encryption-key")


@pytest.fixture
def token_store(slot_store: MemorySlotStore, codec: SealedBoxCodec) -> TokenBundleStore:
    return TokenBundleStore(slot_store, codec)


@pytest.fixture
def bundle() -> TokenBundle:
    return TokenBundle(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=1_700_000_000_000,
        scope="accounts transactions balance",
        token_type="Bearer",
    )


class TestTokenBundleStore:
    """Test cases for TokenBundleStore."""

    def test_persist_then_read(self, token_store: TokenBundleStore, bundle: TokenBundle) -> None:
        """Test that a persisted bundle reads back unchanged."""
        token_store.persist(bundle)

        assert token_store.read() == bundle

    def test_persisted_value_is_sealed(
        self, token_store: TokenBundleStore, slot_store: MemorySlotStore, bundle: TokenBundle
    ) -> None:
        """Test that credentials never sit in the slot in plaintext."""
        token_store.persist(bundle)

        raw = slot_store.get(TOKENS_SLOT)
        assert "access-1" not in raw
        assert "refresh-1" not in raw

    def test_persist_uses_long_lifetime(
        self, token_store: TokenBundleStore, slot_store: MemorySlotStore, monotonic, bundle: TokenBundle
    ) -> None:
        """Test the 30-day max-age."""
        token_store.persist(bundle)

        monotonic.now += TOKENS_MAX_AGE - 1
        assert token_store.read() == bundle

        monotonic.now += 1
        assert token_store.read() is None

    def test_read_missing_slot(self, token_store: TokenBundleStore) -> None:
        """Test that an empty store reads as absent."""
        assert token_store.read() is None

    def test_read_empty_slot(self, token_store: TokenBundleStore, slot_store: MemorySlotStore) -> None:
        """Test that an empty slot value reads as absent."""
        slot_store.set(TOKENS_SLOT, "", 60)

        assert token_store.read() is None

    def test_read_garbage(self, token_store: TokenBundleStore, slot_store: MemorySlotStore) -> None:
        """Test that a non-decodable value reads as absent."""
        slot_store.set(TOKENS_SLOT, "not-a-sealed-token", 60)

        assert token_store.read() is None

    def test_read_with_rotated_secret(
        self, slot_store: MemorySlotStore, bundle: TokenBundle
    ) -> None:
        """Test that tokens sealed under an old secret read as absent."""
        TokenBundleStore(slot_store, SealedBoxCodec("old-secret")).persist(bundle)

        assert TokenBundleStore(slot_store, SealedBoxCodec("new-secret")).read() is None

    def test_read_sealed_non_json(
        self, token_store: TokenBundleStore, slot_store: MemorySlotStore, codec: SealedBoxCodec
    ) -> None:
        """Test that a correctly sealed but non-JSON payload reads as absent."""
        slot_store.set(TOKENS_SLOT, codec.seal("not json"), 60)

        assert token_store.read() is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"refresh_token": "r", "expires_at": 1},
            {"access_token": "a", "expires_at": 1},
            {"access_token": "a", "refresh_token": "r"},
            {"access_token": "", "refresh_token": "r", "expires_at": 1},
            {"access_token": "a", "refresh_token": "r", "expires_at": 0},
            ["a", "r", 1],
        ],
    )
    def test_read_incomplete_bundle(
        self,
        token_store: TokenBundleStore,
        slot_store: MemorySlotStore,
        codec: SealedBoxCodec,
        payload,
    ) -> None:
        """Test that bundles missing a required field read as absent.

        Args:
            payload: Structurally incomplete bundle
        """
        slot_store.set(TOKENS_SLOT, codec.seal(json.dumps(payload)), 60)

        assert token_store.read() is None

    def test_clear_is_idempotent(self, token_store: TokenBundleStore, bundle: TokenBundle) -> None:
        """Test clearing a stored and an already cleared slot."""
        token_store.persist(bundle)
        token_store.clear()
        token_store.clear()

        assert token_store.read() is None

    def test_oversized_bundle_warns_but_is_written(
        self, token_store: TokenBundleStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test the size warning is non-fatal."""
        big = TokenBundle(
            access_token="a" * TOKEN_SIZE_WARNING_BYTES,
            refresh_token="refresh-1",
            expires_at=1_700_000_000_000,
        )

        with caplog.at_level(logging.WARNING):
            token_store.persist(big)

        assert any("size limit" in record.getMessage() for record in caplog.records)
        assert token_store.read() == big

    def test_normal_bundle_does_not_warn(
        self, token_store: TokenBundleStore, bundle: TokenBundle, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that typical bundles stay under the warning threshold."""
        with caplog.at_level(logging.WARNING):
            token_store.persist(bundle)

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
