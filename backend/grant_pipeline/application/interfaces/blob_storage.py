"""Abstract interface (port) for attachment blob storage."""

from abc import ABC, abstractmethod


class BlobStorage(ABC):
    """Port for reading stored attachment files."""

    @abstractmethod
    async def read(self, storage_path: str) -> bytes | None:
        """Return the stored bytes, or None when nothing is stored at the path."""
        ...
