"""Custom exception types."""

from __future__ import annotations

from typing import Any


class RoutingError(Exception):
    """Base class for errors raised by the routing core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SelectionError(RoutingError):
    """Raised when no eligible provider exists for a channel and tenant."""

    def __init__(
        self,
        channel_type: Any,
        tenant_id: int | None = None,
        message: str | None = None,
    ) -> None:
        channel = getattr(channel_type, "value", channel_type)
        if message is None:
            message = f"No available {channel} provider"
            if tenant_id is not None:
                message = f"{message} for tenant {tenant_id}"
        super().__init__(message)
        self.channel_type = channel_type
        self.tenant_id = tenant_id


class CatalogEntryNotFoundError(SelectionError):
    """Raised when a catalog code does not resolve to an active entry."""

    def __init__(self, code: str, channel_type: Any = None) -> None:
        super().__init__(channel_type, message=f"Catalog entry '{code}' not found")
        self.code = code


class CredentialError(RoutingError):
    """Raised when a provider credential is missing or cannot be decrypted."""

    def __init__(self, provider_id: int | None, message: str = "Provider credentials unavailable") -> None:
        super().__init__(message)
        self.provider_id = provider_id


class ExecutionError(RoutingError):
    """Raised once every candidate in a failover chain has failed."""

    def __init__(self, channel_type: Any, attempts: int, last_error: BaseException | None) -> None:
        channel = getattr(channel_type, "value", channel_type)
        detail = str(last_error) if last_error is not None else "no candidates attempted"
        super().__init__(
            f"All {channel} providers failed after {attempts} attempt(s). Last error: {detail}"
        )
        self.channel_type = channel_type
        self.attempts = attempts
        self.last_error = last_error
