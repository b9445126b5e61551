"""
Storage Interface - Abstract base class for all storage backends.
The document store only depends on this contract, so a bucket-backed
implementation can replace the local filesystem one.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """Contract every storage backend implements."""

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path, replacing what was there.

        Args:
            path: Relative path (e.g., "chat_sessions/3f2a.json")
            content: bytes or text

        Returns:
            bool: True if save was successful, False otherwise
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if the file doesn't exist
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file exists at the specified path."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the file at the specified path.

        Returns:
            bool: True if a file was deleted
        """
        pass

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List files directly inside a directory.

        Args:
            path: Directory path
            pattern: Optional glob pattern (e.g., "*.json")

        Returns:
            List[str]: Sorted relative file paths
        """
        pass
