"""
Credit Models - per-user ledger record and the balances exposed to clients.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"


class CreditLedgerRecord(BaseModel):
    """Stored ledger document, one per user."""
    user_id: str
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    credits_remaining: int = Field(..., ge=0)
    credits_total: int = Field(..., ge=0)
    last_credit_reset: datetime
    created_at: datetime

    @property
    def is_unlimited(self) -> bool:
        return self.subscription_tier == SubscriptionTier.PRO


class CreditBalance(BaseModel):
    """Balance as seen by clients. Amounts are None on unlimited plans."""
    credits_remaining: Optional[int] = None
    credits_total: Optional[int] = None
    tier: SubscriptionTier
    is_unlimited: bool
    last_credit_reset: datetime

    @classmethod
    def from_record(cls, record: CreditLedgerRecord) -> "CreditBalance":
        unlimited = record.is_unlimited
        return cls(
            credits_remaining=None if unlimited else record.credits_remaining,
            credits_total=None if unlimited else record.credits_total,
            tier=record.subscription_tier,
            is_unlimited=unlimited,
            last_credit_reset=record.last_credit_reset,
        )


class CreditCheck(BaseModel):
    """Advisory pre-flight check result."""
    has_enough: bool
    required: int
    credits_remaining: Optional[int] = None
    shortfall: int = 0
