"""
Abstract base class for bank integration providers

Defines the common interface the lifecycle manager and sync engine rely on.
Providers only move bytes: they never raise for HTTP or transport failures,
every call resolves to a ProviderResponse that the caller interprets.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


@dataclass
class ProviderResponse:
    """
    Outcome of a single provider HTTP call.

    status_code is None when the request never got a response (timeout,
    connection error). payload is the decoded JSON object, or {} when the
    body was empty or not a JSON object.
    """

    status_code: Optional[int]
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    def error_reason(self, fallback: str) -> str:
        """Provider error code if present, else a generic message with the status."""
        error = self.payload.get('error')
        if isinstance(error, str) and error:
            return error
        return f"{fallback} ({self.status_code if self.status_code is not None else 'no response'})"


class BaseBankProvider(ABC):
    """
    Abstract base class for open-banking providers.

    Concrete providers implement the relying-party half of OAuth plus the
    account and transaction data endpoints.
    """

    def __init__(self, settings):
        """
        Args:
            settings: Application Settings (credentials, environment)
        """
        self.settings = settings

    @abstractmethod
    def get_authorization_url(self, state: str, redirect_uri: str) -> str:
        """
        Build the consent URL the user is redirected to.

        Args:
            state: CSRF protection token
            redirect_uri: Callback URL registered with the provider

        Returns:
            Full authorization URL
        """
        pass

    @abstractmethod
    async def post_token(self, form: Dict[str, str]) -> ProviderResponse:
        """
        POST a form-encoded grant to the token endpoint.

        Args:
            form: grant_type plus grant-specific fields and client credentials

        Returns:
            ProviderResponse with access_token, refresh_token, expires_in...
        """
        pass

    @abstractmethod
    async def fetch_accounts(self, access_token: str) -> ProviderResponse:
        """
        GET the account list.

        Args:
            access_token: Valid OAuth access token

        Returns:
            ProviderResponse whose payload carries a 'results' list
        """
        pass

    @abstractmethod
    async def fetch_transactions(self, access_token: str, account_id: str) -> ProviderResponse:
        """
        GET transactions for one account.

        Args:
            access_token: Valid OAuth access token
            account_id: Provider account identifier

        Returns:
            ProviderResponse whose payload carries a 'results' list
        """
        pass
