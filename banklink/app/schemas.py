from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, UTC
from decimal import Decimal


class TokenBundle(BaseModel):
    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_at: int = Field(gt=0)  # epoch milliseconds, already minus the safety margin
    scope: Optional[str] = None
    token_type: Optional[str] = None

    @property
    def expires_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at / 1000, tz=UTC)


class SyncedTransaction(BaseModel):
    external_id: str
    account_id: str
    date: str  # YYYY-MM-DD
    amount: Decimal
    description: str
    counterparty: Optional[str] = None
    category: Optional[str] = None


class BankSyncResult(BaseModel):
    accounts: List[Dict[str, Any]]  # provider account objects, untouched
    transactions: List[SyncedTransaction]


class BankStatusResponse(BaseModel):
    connected: bool
    expires_at: Optional[datetime] = None


class SyncResponse(BankSyncResult):
    ok: bool = True
    synced_at: datetime


class DisconnectResponse(BaseModel):
    ok: bool = True
    connected: bool = False
    purge_recommended: bool = True
