"""API module."""

from .chat import router as chat_router
from .credits import router as credits_router
from .billing_webhook import router as billing_router
from .errors import register_exception_handlers

__all__ = ['chat_router', 'credits_router', 'billing_router', 'register_exception_handlers']
