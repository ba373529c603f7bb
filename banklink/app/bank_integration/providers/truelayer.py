"""
TrueLayer Provider Implementation

TrueLayer Data API: OAuth 2.0 authorization-code flow with refresh tokens,
separate auth and API hosts per environment (sandbox / production).

Documentation: https://docs.truelayer.com/docs/data-api-basics
"""

import httpx
import logging
from typing import Dict, Any, Optional
from urllib.parse import quote, urlencode

from .base import BaseBankProvider, ProviderResponse


logger = logging.getLogger(__name__)

DATA_SCOPES = "accounts transactions balance"


class TrueLayerProvider(BaseBankProvider):
    """
    TrueLayer Data API integration.

    A new httpx.AsyncClient is opened per call; there is no connection state
    shared between requests.
    """

    def __init__(self, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            settings: Application Settings
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        super().__init__(settings)
        self.transport = transport
        self.timeout = 30.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def get_authorization_url(self, state: str, redirect_uri: str) -> str:
        """
        Build the TrueLayer consent URL.

        country_id narrows the bank picker; TRUELAYER_PROVIDERS is passed
        through as-is, except the common mistake "nl" which is a country,
        not a provider list.
        """
        params = {
            'response_type': 'code',
            'client_id': self.settings.truelayer_client_id,
            'redirect_uri': redirect_uri,
            'scope': DATA_SCOPES,
            'state': state,
            'country_id': (self.settings.truelayer_country_id or 'NL').upper(),
        }

        providers = (self.settings.truelayer_providers or '').strip()
        if providers and providers.lower() != 'nl':
            params['providers'] = providers
        elif providers:
            logger.warning("Ignoring TRUELAYER_PROVIDERS=nl; use TRUELAYER_COUNTRY_ID=NL instead")

        return f"{self.settings.auth_base_url}/?{urlencode(params)}"

    async def post_token(self, form: Dict[str, str]) -> ProviderResponse:
        url = f"{self.settings.auth_base_url}/connect/token"
        async with self._client() as client:
            return await self._send(
                client.post(
                    url,
                    data=form,
                    headers={'Accept': 'application/json'}
                ),
                label="token"
            )

    async def fetch_accounts(self, access_token: str) -> ProviderResponse:
        url = f"{self.settings.api_base_url}/data/v1/accounts"
        async with self._client() as client:
            return await self._send(
                client.get(url, headers=self._bearer(access_token)),
                label="accounts"
            )

    async def fetch_transactions(self, access_token: str, account_id: str) -> ProviderResponse:
        url = f"{self.settings.api_base_url}/data/v1/accounts/{quote(account_id, safe='')}/transactions"
        async with self._client() as client:
            return await self._send(
                client.get(url, headers=self._bearer(access_token)),
                label=f"transactions[{account_id}]"
            )

    @staticmethod
    def _bearer(access_token: str) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {access_token}',
            'Accept': 'application/json'
        }

    @staticmethod
    async def _send(request, label: str) -> ProviderResponse:
        """
        Await an httpx request and normalize it to a ProviderResponse.

        Transport errors (timeouts, DNS, refused connections) become a
        response without status code so callers map them onto their own
        error kinds instead of hanging or leaking httpx exceptions.
        """
        try:
            response = await request
        except httpx.HTTPError as e:
            logger.error(f"TrueLayer {label} request failed: {type(e).__name__}: {e}")
            return ProviderResponse(status_code=None, payload={'error': f"network_error: {type(e).__name__}"})

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if not response.is_success:
            logger.error(f"TrueLayer {label} error - Status: {response.status_code}, error: {payload.get('error')}")

        return ProviderResponse(status_code=response.status_code, payload=payload)
