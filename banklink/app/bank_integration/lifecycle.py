"""
Token Lifecycle Manager

Authorization-code exchange, refresh-token exchange, and the freshness check
that decides when to refresh.

Bundle validity:

    Valid --(expires_at reached)--> Expired --(refresh ok)--> Valid
                                        |
                                        +--(refresh fails)--> Disconnected

Disconnected is terminal for that bundle; the user has to go through the
authorization-code flow again.
"""

import logging
import time
from typing import Callable, Optional

from banklink.app.schemas import TokenBundle
from .errors import ConfigError, ExchangeError, RefreshError
from .providers.base import BaseBankProvider, ProviderResponse


logger = logging.getLogger(__name__)

# Refresh this long before the provider's stated expiry (clock skew, latency)
EXPIRY_SAFETY_MARGIN_MS = 30_000


def now_ms() -> int:
    return int(time.time() * 1000)


def _non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value)


def _positive_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


class TokenLifecycleManager:
    """
    Obtain and keep fresh an OAuth token bundle.

    Example:
        >>> manager = TokenLifecycleManager(settings, TrueLayerProvider(settings))
        >>> bundle = await manager.exchange_code("code123", redirect_uri)
        >>> bundle = await manager.ensure_valid(bundle)  # refreshes only when expired
    """

    def __init__(
        self,
        settings,
        provider: BaseBankProvider,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Args:
            settings: Application Settings with client credentials
            provider: Provider used for the token endpoint
            clock: Returns current time in epoch milliseconds
        """
        self.settings = settings
        self.provider = provider
        self.clock = clock or now_ms

    def _client_credentials(self):
        client_id = self.settings.truelayer_client_id
        client_secret = self.settings.truelayer_client_secret
        if not client_id or not client_secret:
            raise ConfigError("Missing TRUELAYER_CLIENT_ID/TRUELAYER_CLIENT_SECRET")
        return client_id, client_secret

    def _expires_at(self, expires_in) -> int:
        return int(self.clock() + expires_in * 1000 - EXPIRY_SAFETY_MARGIN_MS)

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenBundle:
        """
        Exchange an authorization code for a token bundle.

        Args:
            code: Authorization code from the callback
            redirect_uri: Must match the one sent in the authorization URL

        Returns:
            New TokenBundle

        Raises:
            ConfigError: Client credentials missing (no request is made)
            ExchangeError: Provider rejected the code or returned an incomplete response
        """
        client_id, client_secret = self._client_credentials()

        response = await self.provider.post_token({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': redirect_uri,
            'client_id': client_id,
            'client_secret': client_secret,
        })
        payload = response.payload

        if (
            not response.ok
            or not _non_empty_str(payload.get('access_token'))
            or not _non_empty_str(payload.get('refresh_token'))
            or not _positive_number(payload.get('expires_in'))
        ):
            raise self._grant_error(ExchangeError, response, "Token exchange failed")

        logger.info(f"Authorization code exchanged, token valid for {payload['expires_in']}s")
        return TokenBundle(
            access_token=payload['access_token'],
            refresh_token=payload['refresh_token'],
            expires_at=self._expires_at(payload['expires_in']),
            scope=payload.get('scope'),
            token_type=payload.get('token_type'),
        )

    async def refresh(self, refresh_token: str) -> TokenBundle:
        """
        Exchange a refresh token for a new access token.

        Providers do not always rotate the refresh token; when none comes
        back the one passed in is kept.

        Raises:
            ConfigError: Client credentials missing (no request is made)
            RefreshError: Provider rejected the refresh token or returned an incomplete response
        """
        client_id, client_secret = self._client_credentials()

        response = await self.provider.post_token({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': client_id,
            'client_secret': client_secret,
        })
        payload = response.payload

        if (
            not response.ok
            or not _non_empty_str(payload.get('access_token'))
            or not _positive_number(payload.get('expires_in'))
        ):
            raise self._grant_error(RefreshError, response, "Token refresh failed")

        logger.info(f"Access token refreshed, valid for {payload['expires_in']}s")
        return TokenBundle(
            access_token=payload['access_token'],
            refresh_token=payload['refresh_token'] if _non_empty_str(payload.get('refresh_token')) else refresh_token,
            expires_at=self._expires_at(payload['expires_in']),
            scope=payload.get('scope'),
            token_type=payload.get('token_type'),
        )

    async def ensure_valid(self, bundle: TokenBundle) -> TokenBundle:
        """
        Return a bundle that is valid right now.

        Unexpired bundles are returned as-is without any network call.
        Refresh failures propagate (RefreshError / ConfigError).
        """
        if bundle.expires_at > self.clock():
            return bundle

        logger.info("Access token expired, refreshing")
        return await self.refresh(bundle.refresh_token)

    @staticmethod
    def _grant_error(error_cls, response: ProviderResponse, fallback: str):
        description = response.payload.get('error_description')
        return error_cls(
            response.error_reason(fallback),
            status_code=response.status_code,
            description=description if isinstance(description, str) else None,
        )
