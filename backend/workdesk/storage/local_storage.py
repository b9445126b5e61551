"""
Local Filesystem Storage Implementation.
Stores every document as a file below a base directory on the server.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional, List

import aiofiles
import aiofiles.os

from .interface import StorageInterface

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Writes go to a temporary sibling file first and are moved into place,
    so readers never observe a half-written document.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Convert relative path to full absolute path within base directory."""
        full_path = (self.base_dir / path).resolve()

        # Security check: ensure path is within base_dir
        if not full_path.is_relative_to(self.base_dir):
            raise ValueError(f"Invalid path: {path} - path traversal detected")

        return full_path

    async def save(self, path: str, content: bytes | str) -> bool:
        """Save content to local filesystem."""
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex}.tmp")

            if isinstance(content, str):
                content = content.encode('utf-8')
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(content)

            await aiofiles.os.replace(tmp_path, full_path)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error saving file {path}: {e}", exc_info=True)
            return False

    async def load(self, path: str) -> Optional[bytes]:
        """Load content from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return None

            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except (OSError, ValueError) as e:
            logger.error(f"Error loading file {path}: {e}", exc_info=True)
            return None

    async def exists(self, path: str) -> bool:
        """Check if file exists."""
        try:
            return self._get_full_path(path).exists()
        except ValueError:
            return False

    async def delete(self, path: str) -> bool:
        """Delete file from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if full_path.exists():
                await aiofiles.os.remove(full_path)
                return True
            return False
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting file {path}: {e}", exc_info=True)
            return False

    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """List files in directory, skipping in-flight temporary files."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return []

            files = [
                p for p in full_path.glob(pattern or "*")
                if p.is_file() and not p.name.startswith(".")
            ]
            return sorted(
                str(p.relative_to(self.base_dir)).replace(os.sep, "/")
                for p in files
            )
        except (OSError, ValueError) as e:
            logger.error(f"Error listing files in {path}: {e}", exc_info=True)
            return []
