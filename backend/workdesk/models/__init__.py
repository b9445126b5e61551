"""Models module."""

from .user import TokenData
from .chat import (
    MessageRole, ChatSession, ChatMessage, SessionCreate, SessionUpdate,
    SessionPage, SendMessageRequest, MessageList, ChatReply
)
from .credits import SubscriptionTier, CreditLedgerRecord, CreditBalance, CreditCheck
from .workspace import Project, Task

__all__ = [
    'TokenData',
    'MessageRole', 'ChatSession', 'ChatMessage', 'SessionCreate', 'SessionUpdate',
    'SessionPage', 'SendMessageRequest', 'MessageList', 'ChatReply',
    'SubscriptionTier', 'CreditLedgerRecord', 'CreditBalance', 'CreditCheck',
    'Project', 'Task',
]
