"""
Scoped Storage Slots

Key/value slots with a max-age, used to keep OAuth state and sealed token
bundles on the client between stateless requests.

Two implementations:
- CookieSlotStore: backed by the request's cookies and the response's
  Set-Cookie headers (production path)
- MemorySlotStore: process-lifetime dict, for local runs and tests
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Tuple


# Browsers cap a single cookie (name, value and attributes) at about 4096 bytes
MAX_SLOT_BYTES = 4096


class SlotStore(ABC):
    """
    Abstract scoped key/value storage.

    Values are opaque strings; the store never interprets them.
    """

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Return the slot value, or None if absent or expired."""
        pass

    @abstractmethod
    def set(self, name: str, value: str, max_age: int) -> None:
        """Write a slot that lives for max_age seconds."""
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove a slot. Deleting a missing slot is not an error."""
        pass

    def envelope_size(self, name: str, value: str) -> int:
        """
        Approximate the stored size of a slot in bytes.

        Default estimate is the serialized Set-Cookie header with the
        attributes this application always sends.
        """
        header = f"{name}={value}; Path=/; SameSite=Lax; HttpOnly; Secure"
        return len(header.encode("utf-8"))


class CookieSlotStore(SlotStore):
    """
    Cookie-backed slots for one request/response cycle.

    Reads come from the incoming request cookies. Writes are queued and later
    copied onto the outgoing response with apply(), so the route can build
    its response (redirect or JSON) after the store has been used. Reads see
    this request's own queued writes, last writer wins.
    """

    def __init__(self, request_cookies: Mapping[str, str], secure: bool = False):
        """
        Args:
            request_cookies: Cookies sent by the browser (request.cookies)
            secure: Add the Secure attribute (production only)
        """
        self._cookies: Dict[str, Optional[str]] = dict(request_cookies)
        self._pending: List[Tuple[str, str, int]] = []
        self.secure = secure

    def get(self, name: str) -> Optional[str]:
        value = self._cookies.get(name)
        return value or None

    def set(self, name: str, value: str, max_age: int) -> None:
        max_age = max(0, int(max_age))
        self._cookies[name] = value if max_age > 0 else None
        self._pending.append((name, value, max_age))

    def delete(self, name: str) -> None:
        self.set(name, "", 0)

    def apply(self, response) -> None:
        """Write queued cookie operations onto a Starlette/FastAPI response."""
        for name, value, max_age in self._pending:
            response.set_cookie(
                key=name,
                value=value,
                max_age=max_age,
                path="/",
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        self._pending = []


class MemorySlotStore(SlotStore):
    """
    In-process slot store.

    NOT durable: contents vanish on restart and are not shared between worker
    processes or serverless instances. Only suitable for local development
    and tests.
    """

    def __init__(self, clock=time.monotonic):
        self._slots: Dict[str, Tuple[str, float]] = {}
        self._clock = clock

    def get(self, name: str) -> Optional[str]:
        entry = self._slots.get(name)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._slots[name]
            return None
        return value or None

    def set(self, name: str, value: str, max_age: int) -> None:
        if max_age <= 0:
            self.delete(name)
            return
        self._slots[name] = (value, self._clock() + max_age)

    def delete(self, name: str) -> None:
        self._slots.pop(name, None)
