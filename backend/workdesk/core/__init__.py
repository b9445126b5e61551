"""Core module - error taxonomy and logging setup."""

from .errors import (
    WorkdeskError,
    UnauthenticatedError,
    ResourceAccessError,
    NotFoundError,
    UnauthorizedError,
    InsufficientCreditsError,
    InvalidStreamStateError,
    ProviderFailureError,
    StorageError,
)
from .logging_config import setup_logging, filter_sensitive_data, truncate_large_data

__all__ = [
    'WorkdeskError',
    'UnauthenticatedError',
    'ResourceAccessError',
    'NotFoundError',
    'UnauthorizedError',
    'InsufficientCreditsError',
    'InvalidStreamStateError',
    'ProviderFailureError',
    'StorageError',
    'setup_logging',
    'filter_sensitive_data',
    'truncate_large_data',
]
