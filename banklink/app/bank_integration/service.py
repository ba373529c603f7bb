"""
Bank Integration Service

Orchestration for the linked-bank session:
- Connect: CSRF state + authorization URL
- Callback: state check, code exchange, token persistence, initial sync
- Status: freshness check with transparent refresh
- Sync: refresh if needed, then pull accounts and transactions
- Disconnect: drop tokens and pending state

All session state lives in the SlotStore handed in by the caller (cookies in
production), so the service itself is stateless between requests.
"""

import logging
from typing import Dict, Any, Optional
from urllib.parse import urlparse

from banklink.app.schemas import BankSyncResult, TokenBundle
from .encryption import SealedBoxCodec
from .errors import BankIntegrationError, ConfigError, NotConnectedError, RefreshError
from .lifecycle import TokenLifecycleManager
from .oauth_state import OAuthStateLedger
from .providers.base import BaseBankProvider
from .storage import SlotStore
from .sync import BankSyncEngine, SyncReporter
from .token_store import TokenBundleStore, TOKENS_SLOT


logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/bank/callback"

OUTCOME_CONNECTED = "connected"
OUTCOME_ERROR = "error"
OUTCOME_STATE_ERROR = "state_error"


class BankIntegrationService:
    """
    High-level operations behind the /api/bank routes.

    Example:
        >>> service = BankIntegrationService(settings, CookieSlotStore(request.cookies), provider)
        >>> url = service.start_connect(service.resolve_redirect_uri("https", "app.example", None))
        >>> # Redirect user to url, then on callback:
        >>> outcome = await service.handle_callback(code, state, None, None, redirect_uri)
    """

    def __init__(
        self,
        settings,
        store: SlotStore,
        provider: BaseBankProvider,
        reporter: Optional[SyncReporter] = None,
        clock=None
    ):
        """
        Args:
            settings: Application Settings
            store: Scoped storage for state and token slots
            provider: Open-banking provider client
            reporter: Receives per-account sync failures
            clock: Epoch-millisecond clock for token expiry (tests)
        """
        self.settings = settings
        self.store = store
        self.provider = provider
        self.oauth_state = OAuthStateLedger(store)
        self.lifecycle = TokenLifecycleManager(settings, provider, clock=clock)
        self.engine = BankSyncEngine(provider, reporter=reporter)
        self._tokens: Optional[TokenBundleStore] = None

    @property
    def tokens(self) -> TokenBundleStore:
        # Built lazily so a missing encryption secret only fails token operations
        if self._tokens is None:
            self._tokens = TokenBundleStore(self.store, SealedBoxCodec.from_settings(self.settings))
        return self._tokens

    def resolve_redirect_uri(
        self,
        forwarded_proto: Optional[str],
        forwarded_host: Optional[str],
        host: Optional[str]
    ) -> str:
        """
        Determine the OAuth callback URL.

        TRUELAYER_REDIRECT_URI is used only if it parses and points at the
        callback route; otherwise the URL is rebuilt from request headers.
        """
        proto = forwarded_proto or "https"
        request_host = forwarded_host or host or "localhost:3000"
        computed = f"{proto}://{request_host}{CALLBACK_PATH}"

        configured = (self.settings.truelayer_redirect_uri or "").strip()
        if not configured:
            return computed

        try:
            parsed = urlparse(configured)
        except ValueError:
            logger.warning(f"Invalid TRUELAYER_REDIRECT_URI value, using computed callback {computed}")
            return computed

        if not parsed.scheme or not parsed.netloc:
            logger.warning(f"Invalid TRUELAYER_REDIRECT_URI value, using computed callback {computed}")
            return computed

        if parsed.path != CALLBACK_PATH:
            logger.warning(
                f"TRUELAYER_REDIRECT_URI path {parsed.path!r} is not {CALLBACK_PATH}, "
                f"using computed callback {computed}"
            )
            return computed

        return configured

    def start_connect(self, redirect_uri: str) -> str:
        """
        Begin the authorization-code flow.

        Returns:
            Provider consent URL carrying a freshly issued CSRF state

        Raises:
            ConfigError: TRUELAYER_CLIENT_ID is not configured
        """
        if not self.settings.truelayer_client_id:
            raise ConfigError("Missing TRUELAYER_CLIENT_ID")

        state = self.oauth_state.issue()
        url = self.provider.get_authorization_url(state=state, redirect_uri=redirect_uri)
        logger.info(
            f"Redirecting to consent: auth_base={self.settings.auth_base_url}, redirect_uri={redirect_uri}"
        )
        return url

    async def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
        error_description: Optional[str],
        redirect_uri: str
    ) -> str:
        """
        Complete the authorization-code flow.

        Returns:
            One of OUTCOME_CONNECTED, OUTCOME_ERROR, OUTCOME_STATE_ERROR
        """
        if error:
            logger.error(f"Consent error from provider: {error} ({error_description})")
            return OUTCOME_ERROR

        if not code:
            logger.error("Callback without authorization code")
            return OUTCOME_ERROR

        if not self.oauth_state.consume(state or ""):
            return OUTCOME_STATE_ERROR

        try:
            bundle = await self.lifecycle.exchange_code(code, redirect_uri)
            self.tokens.persist(bundle)

            # Sync once right away so integration problems show up immediately
            result = await self.engine.sync(bundle.access_token)
            logger.info(
                f"Initial sync complete: {len(result.accounts)} accounts, "
                f"{len(result.transactions)} transactions"
            )
        except BankIntegrationError as e:
            logger.error(f"Token exchange or initial sync failed: {type(e).__name__}: {e}")
            return OUTCOME_ERROR

        return OUTCOME_CONNECTED

    async def _valid_bundle(self, stored: TokenBundle) -> TokenBundle:
        valid = await self.lifecycle.ensure_valid(stored)
        if valid.access_token != stored.access_token or valid.expires_at != stored.expires_at:
            self.tokens.persist(valid)
            logger.info("Stored refreshed token bundle")
        return valid

    async def get_status(self) -> Dict[str, Any]:
        """
        Report whether a usable bank session exists.

        A failed refresh ends the session: the stored bundle is cleared.
        """
        stored = self.tokens.read()
        if stored is None:
            return {'connected': False}

        try:
            valid = await self._valid_bundle(stored)
        except RefreshError as e:
            logger.error(f"Stored session could not be refreshed: {e}")
            self.tokens.clear()
            return {'connected': False}
        except ConfigError as e:
            logger.error(f"Cannot refresh session: {e}")
            return {'connected': False}

        return {'connected': True, 'expires_at': valid.expires_at_datetime}

    async def sync(self) -> BankSyncResult:
        """
        Synchronize accounts and transactions for the stored session.

        Raises:
            NotConnectedError: No readable token bundle
            RefreshError / ConfigError: Token could not be refreshed
            SyncError: Account list fetch failed
        """
        stored = self.tokens.read()
        if stored is None:
            raise NotConnectedError("No linked bank session found")

        valid = await self._valid_bundle(stored)
        return await self.engine.sync(valid.access_token)

    def disconnect(self) -> None:
        # Direct slot delete: clearing must work even without an encryption secret
        self.store.delete(TOKENS_SLOT)
        self.oauth_state.clear()
        logger.info("Bank session cleared")
