"""Short-lived in-process cache of decrypted provider credentials.

Records hold no authority: dropping the cache only costs a store round trip
and a decrypt on the next lookup. There is no per-key lock, so two concurrent
misses for the same provider may both decrypt; the later write wins and both
callers receive identical payloads. Every lookup hands out its own copy, so an
operation mutating its credentials never affects later requests.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from channel_router.core.exceptions import CredentialError
from channel_router.security.cipher import CredentialCipher
from channel_router.storage import providers as provider_store

logger = logging.getLogger("channel_router.credentials")

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CachedCredential:
    credentials: dict[str, Any]
    expires_at: float


class CredentialCache:
    """TTL cache mapping provider id to its decrypted credential payload."""

    def __init__(
        self,
        cipher: CredentialCipher,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cipher = cipher
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[int, CachedCredential] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cipher(self) -> CredentialCipher:
        return self._cipher

    def get(self, provider_id: int) -> dict[str, Any]:
        """Return decrypted credentials, decrypting from the store on miss or expiry."""
        now = self._clock()
        cached = self._entries.get(provider_id)
        if cached is not None and cached.expires_at > now:
            return copy.deepcopy(cached.credentials)

        encrypted = provider_store.get_encrypted_credential(provider_id)
        if encrypted is None:
            self._entries.pop(provider_id, None)
            raise CredentialError(provider_id, message="Provider credentials not found")

        ciphertext, iv = encrypted
        credentials = self._cipher.decrypt(ciphertext, iv, provider_id=provider_id)
        self._store(provider_id, CachedCredential(credentials, now + self._ttl))
        logger.debug(
            "Provider credentials decrypted",
            extra={"event": "credential_cache_miss", "provider_id": provider_id},
        )
        return copy.deepcopy(credentials)

    def _store(self, provider_id: int, record: CachedCredential) -> None:
        # Re-insert so dict order tracks the most recent refresh.
        self._entries.pop(provider_id, None)
        self._entries[provider_id] = record
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries), None)
            if oldest is None:
                break
            self._entries.pop(oldest, None)

    def invalidate(self, provider_id: int) -> None:
        """Drop the cached credential for a provider, e.g. after rotation."""
        self._entries.pop(provider_id, None)

    def clear(self) -> None:
        self._entries.clear()


__all__ = ["CachedCredential", "CredentialCache"]
