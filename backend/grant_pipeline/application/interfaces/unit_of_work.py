"""Commit hook passed into services that must publish state mid-operation."""

from collections.abc import Awaitable, Callable

# Services call this after writes another process must see (a job the worker
# is about to read, or an embedding claim).
Commit = Callable[[], Awaitable[None]]


async def no_commit() -> None:
    """Default hook for callers that own the transaction themselves."""
    return None
