"""
Bank Integration Errors

Typed failures raised by the credential lifecycle and sync engine.

Storage and decoding problems (IntegrityError) are absorbed by the token
store and reported as "no credential". Provider failures propagate to the
caller, which decides whether to restart the authorization flow.
"""

from typing import Optional


class BankIntegrationError(Exception):
    """Base class for all bank integration failures."""
    pass


class ConfigError(BankIntegrationError):
    """Raised when required configuration (client id/secret, encryption secret) is missing."""
    pass


class IntegrityError(BankIntegrationError):
    """Raised when a sealed token is malformed or fails authentication."""
    pass


class NotConnectedError(BankIntegrationError):
    """Raised when an operation needs a linked bank session and none is stored."""
    pass


class TokenGrantError(BankIntegrationError):
    """
    Provider rejected a token grant.

    Attributes:
        reason: Provider error code, or a generic message with the HTTP status
        status_code: HTTP status, or None when the request never completed
        description: Provider's error_description when supplied
    """

    def __init__(
        self,
        reason: str,
        status_code: Optional[int] = None,
        description: Optional[str] = None
    ):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code
        self.description = description


class ExchangeError(TokenGrantError):
    """Authorization-code exchange failed."""
    pass


class RefreshError(TokenGrantError):
    """Refresh-token exchange failed; the session should be treated as disconnected."""
    pass


class SyncError(BankIntegrationError):
    """
    A provider data fetch failed in a way that aborts the sync.

    stage names the failed fetch ("accounts"). Per-account transaction
    failures never raise; they go to the SyncReporter instead.
    """

    def __init__(
        self,
        stage: str,
        reason: str,
        status_code: Optional[int] = None
    ):
        super().__init__(f"{stage} fetch failed: {reason}")
        self.stage = stage
        self.reason = reason
        self.status_code = status_code
