"""Storage module - provides interface and implementations for data persistence."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .document_store import DocumentStore

__all__ = ['StorageInterface', 'LocalStorage', 'DocumentStore']
