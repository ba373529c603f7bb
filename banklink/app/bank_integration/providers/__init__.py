"""
Bank Provider Implementations

Abstract base class and concrete implementations for open-banking APIs.
"""

from .base import BaseBankProvider, ProviderResponse
from .truelayer import TrueLayerProvider

__all__ = ['BaseBankProvider', 'ProviderResponse', 'TrueLayerProvider']
