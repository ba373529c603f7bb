"""
Bank Connection Routes

User-facing endpoints for:
- Connecting a bank (OAuth consent redirect)
- OAuth callback handling
- Session status
- Syncing accounts and transactions
- Disconnecting

Session state travels in HttpOnly cookies; every handler builds a
CookieSlotStore from the request and copies its writes onto the response.
"""

import logging
from datetime import datetime, UTC
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from banklink.config import Settings, get_settings
from banklink.app import schemas
from banklink.app.bank_integration.errors import BankIntegrationError, ConfigError, NotConnectedError
from banklink.app.bank_integration.providers.base import BaseBankProvider
from banklink.app.bank_integration.providers.truelayer import TrueLayerProvider
from banklink.app.bank_integration.service import BankIntegrationService
from banklink.app.bank_integration.storage import CookieSlotStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bank", tags=["bank"])


def get_bank_provider(settings: Settings = Depends(get_settings)) -> BaseBankProvider:
    return TrueLayerProvider(settings)


def _service(request: Request, settings: Settings, provider: BaseBankProvider):
    store = CookieSlotStore(request.cookies, secure=settings.cookie_secure)
    return BankIntegrationService(settings, store, provider), store


def _redirect_uri(request: Request, service: BankIntegrationService) -> str:
    return service.resolve_redirect_uri(
        forwarded_proto=request.headers.get("x-forwarded-proto"),
        forwarded_host=request.headers.get("x-forwarded-host"),
        host=request.headers.get("host"),
    )


@router.get("/connect")
def connect_bank(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: BaseBankProvider = Depends(get_bank_provider)
):
    """
    Start the bank connection.

    Stores a CSRF state cookie and redirects (302) to the provider's
    consent screen.
    """
    service, store = _service(request, settings, provider)

    try:
        url = service.start_connect(_redirect_uri(request, service))
    except ConfigError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e)}
        )

    response = RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)
    store.apply(response)
    return response


@router.get("/callback")
async def bank_callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code"),
    state: Optional[str] = Query(None, description="CSRF state token"),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    provider: BaseBankProvider = Depends(get_bank_provider)
):
    """
    OAuth callback endpoint.

    Redirects back to the frontend with ?bank=connected, ?bank=error or
    ?bank=state_error. The outcome never says why a state check failed.
    """
    service, store = _service(request, settings, provider)

    outcome = await service.handle_callback(
        code=code,
        state=state,
        error=error,
        error_description=error_description,
        redirect_uri=_redirect_uri(request, service)
    )

    response = RedirectResponse(
        url=f"{settings.frontend_url}/?bank={outcome}",
        status_code=status.HTTP_302_FOUND
    )
    store.apply(response)
    return response


@router.get("/status", response_model=schemas.BankStatusResponse)
async def bank_status(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: BaseBankProvider = Depends(get_bank_provider)
):
    """Report whether a bank session is linked, refreshing it if expired."""
    service, store = _service(request, settings, provider)

    try:
        result = schemas.BankStatusResponse(**await service.get_status())
    except ConfigError as e:
        logger.error(f"Bank status unavailable: {e}")
        result = schemas.BankStatusResponse(connected=False)

    response = JSONResponse(content=result.model_dump(mode="json", exclude_none=True))
    store.apply(response)
    return response


@router.api_route("/sync", methods=["GET", "POST"], response_model=schemas.SyncResponse)
async def sync_bank(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: BaseBankProvider = Depends(get_bank_provider)
):
    """
    Synchronize accounts and transactions.

    Responses:
        200: {ok, synced_at, accounts, transactions}
        401: no linked bank session
        502: token refresh or account fetch failed
    """
    service, store = _service(request, settings, provider)

    try:
        result = await service.sync()
    except NotConnectedError:
        response = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "No linked bank session found"}
        )
    except BankIntegrationError as e:
        logger.error(f"Bank sync failed: {type(e).__name__}: {e}")
        response = JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Bank sync failed"}
        )
    else:
        logger.info(
            f"Bank sync complete: {len(result.accounts)} accounts, "
            f"{len(result.transactions)} transactions"
        )
        payload = schemas.SyncResponse(
            accounts=result.accounts,
            transactions=result.transactions,
            synced_at=datetime.now(UTC)
        )
        response = JSONResponse(content=payload.model_dump(mode="json"))

    store.apply(response)
    return response


@router.post("/disconnect", response_model=schemas.DisconnectResponse)
def disconnect_bank(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: BaseBankProvider = Depends(get_bank_provider)
):
    """
    Forget the linked bank session.

    purge_recommended tells the client to drop any locally cached bank data.
    """
    service, store = _service(request, settings, provider)
    service.disconnect()

    response = JSONResponse(content=schemas.DisconnectResponse().model_dump())
    store.apply(response)
    return response
