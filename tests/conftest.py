"""Shared pytest fixtures for banklink tests.

Provides deterministic settings, clocks, and a scripted in-memory provider
so the credential lifecycle and sync engine can be exercised without
network access.
"""

from typing import Dict, List, Optional

import pytest

from banklink.config import Settings
from banklink.app.bank_integration.providers.base import BaseBankProvider, ProviderResponse
from banklink.app.bank_integration.storage import MemorySlotStore


NOW_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeMonotonic:
    """Seconds clock for MemorySlotStore expiry."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeProvider(BaseBankProvider):
    """Scripted provider that records every call it receives."""

    def __init__(
        self,
        settings: Settings,
        token_responses: Optional[List[ProviderResponse]] = None,
        accounts: Optional[ProviderResponse] = None,
        transactions: Optional[Dict[str, ProviderResponse]] = None,
    ) -> None:
        super().__init__(settings)
        self.token_responses = list(token_responses or [])
        self.accounts = accounts or ProviderResponse(200, {"results": []})
        self.transactions = transactions or {}
        self.token_requests: List[Dict[str, str]] = []
        self.data_requests: List[tuple] = []

    def get_authorization_url(self, state: str, redirect_uri: str) -> str:
        return f"https://auth.example.test/?state={state}&redirect_uri={redirect_uri}"

    async def post_token(self, form: Dict[str, str]) -> ProviderResponse:
        self.token_requests.append(form)
        if not self.token_responses:
            raise AssertionError("Unexpected token request")
        return self.token_responses.pop(0)

    async def fetch_accounts(self, access_token: str) -> ProviderResponse:
        self.data_requests.append(("accounts", access_token))
        return self.accounts

    async def fetch_transactions(self, access_token: str, account_id: str) -> ProviderResponse:
        self.data_requests.append(("transactions", access_token, account_id))
        return self.transactions.get(account_id, ProviderResponse(200, {"results": []}))


def token_response(
    access_token: str = "access-1",
    refresh_token: Optional[str] = "refresh-1",
    expires_in: int = 3600,
    status_code: int = 200,
) -> ProviderResponse:
    """Build a successful token endpoint response."""
    payload = {
        "access_token": access_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
        "scope": "accounts transactions balance",
    }
    if refresh_token is not None:
        payload["refresh_token"] = refresh_token
    return ProviderResponse(status_code, payload)


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    """Fully configured sandbox settings, isolated from any local .env."""
    return Settings(
        _env_file=None,
        truelayer_client_id="client-id",
        truelayer_client_secret="client-secret",
        truelayer_redirect_uri="",
        truelayer_env="sandbox",
        truelayer_country_id="NL",
        truelayer_providers="",
        bank_token_encryption_key="test-encryption-key",
        turnstile_secret_key="",
        environment="development",
        frontend_url="",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def slot_store(monotonic: FakeMonotonic) -> MemorySlotStore:
    return MemorySlotStore(clock=monotonic)
