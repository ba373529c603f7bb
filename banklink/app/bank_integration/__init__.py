"""
Bank Integration Module

Credential lifecycle and synchronization engine for open-banking providers:
sealed client-side token storage, CSRF state, token refresh, and
deduplicated account/transaction sync.
"""

from .service import BankIntegrationService
from .encryption import SealedBoxCodec
from .deduplication import TransactionDeduplicator
from .lifecycle import TokenLifecycleManager
from .sync import BankSyncEngine

__all__ = [
    'BankIntegrationService',
    'SealedBoxCodec',
    'TransactionDeduplicator',
    'TokenLifecycleManager',
    'BankSyncEngine',
]
