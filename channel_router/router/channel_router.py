"""Facade used by channel senders (SMS, email, TTS, STT, dialer).

Callers hand over a catalog code and an async operation; the router selects
candidates, resolves each candidate's decrypted credentials and runs the
failover loop. Credentials passed to the operation are only valid for the
current request and must not be persisted by the caller.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from channel_router.core.config import ChannelType, RouterSettings, load_settings
from channel_router.credentials.cache import CredentialCache
from channel_router.logging import bind_request_id
from channel_router.router.failover import FailoverExecutor, RequestContext, UsageSink
from channel_router.router.health import HealthFeedback
from channel_router.router.selector import Candidate, ProviderSelector, Selection
from channel_router.security.cipher import CredentialCipher
from channel_router.storage.usage_log import record_usage

T = TypeVar("T")

CredentialedOperation = Callable[[Candidate, dict[str, Any]], Awaitable[T]]


class ChannelRouter:
    def __init__(
        self,
        settings: RouterSettings | None = None,
        *,
        cipher: CredentialCipher | None = None,
        credential_cache: CredentialCache | None = None,
        usage_sink: UsageSink = record_usage,
    ) -> None:
        self.settings = settings if settings is not None else load_settings()
        self.selector = ProviderSelector(self.settings)
        if credential_cache is None:
            credential_cache = CredentialCache(
                cipher if cipher is not None else CredentialCipher(),
                ttl_seconds=self.settings.credential_cache_ttl_seconds,
                max_entries=self.settings.credential_cache_max_entries,
            )
        self.credentials = credential_cache
        self.executor = FailoverExecutor(HealthFeedback(self.settings), usage_sink=usage_sink)

    async def route(
        self,
        code: str,
        operation: CredentialedOperation[T],
        *,
        tenant_id: int | None = None,
        channel_type: ChannelType | None = None,
        context: RequestContext | None = None,
    ) -> T:
        """Serve a request addressed by catalog code."""
        selection = self.selector.select(code, tenant_id, channel_type)
        return await self.run(selection, operation, context=context)

    async def route_channel(
        self,
        channel_type: ChannelType,
        operation: CredentialedOperation[T],
        *,
        tenant_id: int | None = None,
        context: RequestContext | None = None,
    ) -> T:
        """Serve a request for a channel that has no catalog code (SMS, email)."""
        selection = self.selector.select_for_channel(channel_type, tenant_id)
        return await self.run(selection, operation, context=context)

    async def route_carrier(
        self,
        destination_number: str,
        operation: CredentialedOperation[T],
        *,
        tenant_id: int | None = None,
        context: RequestContext | None = None,
    ) -> T:
        """Serve an outbound call through a carrier reaching the destination."""
        selection = self.selector.select_carrier(destination_number, tenant_id)
        return await self.run(selection, operation, context=context)

    async def run(
        self,
        selection: Selection,
        operation: CredentialedOperation[T],
        *,
        context: RequestContext | None = None,
    ) -> T:
        context = context if context is not None else RequestContext()
        if context.tenant_id is None:
            context.tenant_id = selection.tenant_id

        async def attempt(candidate: Candidate) -> T:
            # A credential failure only fails this candidate.
            credentials = self.credentials.get(candidate.provider_id)
            return await operation(candidate, credentials)

        # Log lines emitted by the operation carry the request id of this route.
        with bind_request_id(context.resolved_request_id()) as request_id:
            context.request_id = request_id
            return await self.executor.execute(
                selection.channel_type, selection.candidates, attempt, context
            )


_default_router: ChannelRouter | None = None


def get_router() -> ChannelRouter:
    """Return the process-wide router, building it from settings on first use."""
    global _default_router
    if _default_router is None:
        _default_router = ChannelRouter()
    return _default_router


__all__ = ["ChannelRouter", "CredentialedOperation", "get_router"]
