"""
Credit Ledger - monthly credit allotment and consumption per user.

The ledger document of a user is created on first use with the free-tier
allotment. Metered balances are refilled lazily: the first read or write in a
new calendar month (UTC) resets ``credits_remaining`` to ``credits_total``.
All mutations happen while holding the ledger document's lock, so the balance
check in ``debit`` and the write that follows cannot interleave with another
debit for the same user.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.errors import InsufficientCreditsError
from ..models.credits import CreditBalance, CreditCheck, CreditLedgerRecord, SubscriptionTier
from ..storage.document_store import Document, DocumentStore

logger = logging.getLogger(__name__)

LEDGER_COLLECTION = "credit_ledgers"

# Fixed cost per metered feature
CREDIT_COSTS = {
    "chat_message": 3,
    "ai_generation": 15,
    "url_scrape": 5,
    "website_analysis": 10,
}
CHAT_MESSAGE_COST = CREDIT_COSTS["chat_message"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _month_key(moment: datetime) -> tuple[int, int]:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.year, moment.month


class CreditLedger:
    """Reads and mutates per-user credit ledgers."""

    def __init__(
        self,
        store: DocumentStore,
        free_tier_credits: int = 100,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Args:
            store: Document store holding the ledgers
            free_tier_credits: Monthly allotment of new (free) users
            clock: Returns the current UTC time
        """
        self.store = store
        self.free_tier_credits = free_tier_credits
        self.clock = clock

    async def _load_locked(self, user_id: str) -> Document:
        """
        Return the ledger document, creating it or applying the monthly reset.
        Caller must hold the ledger lock.
        """
        now = self.clock()
        document = await self.store.get(LEDGER_COLLECTION, user_id)

        # First use: start on the free tier
        if document is None:
            record = CreditLedgerRecord(
                user_id=user_id,
                credits_remaining=self.free_tier_credits,
                credits_total=self.free_tier_credits,
                last_credit_reset=now,
                created_at=now,
            )
            logger.info(
                f"Created credit ledger for user {user_id}",
                extra={"extra_fields": {"user_id": user_id, "credits_total": record.credits_total}}
            )
            return await self.store.insert(
                LEDGER_COLLECTION, record.model_dump(mode="json"), doc_id=user_id
            )

        # Lazy monthly reset for metered plans
        record = CreditLedgerRecord.model_validate(document)
        if not record.is_unlimited and _month_key(record.last_credit_reset) != _month_key(now):
            document["credits_remaining"] = record.credits_total
            document["last_credit_reset"] = now.isoformat()
            await self.store.replace(LEDGER_COLLECTION, document)
            logger.info(
                f"Monthly credit reset for user {user_id}",
                extra={"extra_fields": {
                    "user_id": user_id,
                    "previous_reset": record.last_credit_reset.isoformat(),
                    "credits_remaining": record.credits_total,
                }}
            )
        return document

    async def get_record(self, user_id: str) -> CreditLedgerRecord:
        """Ledger record after lazy creation and monthly reset."""
        async with self.store.locked(LEDGER_COLLECTION, user_id):
            document = await self._load_locked(user_id)
        return CreditLedgerRecord.model_validate(document)

    async def get_balance(self, user_id: str) -> CreditBalance:
        """
        Current balance of a user.

        Args:
            user_id: Ledger owner

        Returns:
            CreditBalance: amounts are None for unlimited plans
        """
        return CreditBalance.from_record(await self.get_record(user_id))

    async def check_credits(self, user_id: str, amount: int) -> CreditCheck:
        """
        Advisory pre-flight check. ``debit`` re-validates at spend time.
        """
        record = await self.get_record(user_id)
        if record.is_unlimited:
            return CreditCheck(has_enough=True, required=amount)

        return CreditCheck(
            has_enough=record.credits_remaining >= amount,
            required=amount,
            credits_remaining=record.credits_remaining,
            shortfall=max(0, amount - record.credits_remaining),
        )

    async def has_sufficient_credits(self, user_id: str, amount: int) -> bool:
        return (await self.check_credits(user_id, amount)).has_enough

    async def debit(self, user_id: str, amount: int, reason: Optional[str] = None) -> CreditBalance:
        """
        Spend credits.

        Args:
            user_id: Ledger owner
            amount: Credits to spend (>= 0)
            reason: Free text for the log

        Returns:
            CreditBalance: Balance after the debit

        Raises:
            InsufficientCreditsError: Metered balance is lower than amount;
                the balance is left unchanged
        """
        if amount < 0:
            raise ValueError(f"Debit amount must be non-negative, got {amount}")

        async with self.store.locked(LEDGER_COLLECTION, user_id):
            document = await self._load_locked(user_id)
            record = CreditLedgerRecord.model_validate(document)

            # Unlimited plans are never charged
            if record.is_unlimited:
                logger.debug(f"Skipping debit of {amount} credits for unlimited user {user_id}")
                return CreditBalance.from_record(record)

            if record.credits_remaining < amount:
                logger.warning(
                    f"Debit rejected for user {user_id}: insufficient credits",
                    extra={"extra_fields": {
                        "user_id": user_id,
                        "required": amount,
                        "available": record.credits_remaining,
                        "reason": reason,
                    }}
                )
                raise InsufficientCreditsError(required=amount, available=record.credits_remaining)

            # Deduct and persist while still holding the lock
            document["credits_remaining"] = record.credits_remaining - amount
            await self.store.replace(LEDGER_COLLECTION, document)

        logger.info(
            f"Credits deducted: {amount} ({reason or 'no reason'}). New balance: {document['credits_remaining']}",
            extra={"extra_fields": {
                "user_id": user_id,
                "amount": amount,
                "credits_remaining": document["credits_remaining"],
            }}
        )
        return CreditBalance.from_record(CreditLedgerRecord.model_validate(document))

    async def add_credits(self, user_id: str, amount: int, reason: Optional[str] = None) -> CreditBalance:
        """
        Grant purchased credits. Unlimited users are left as they are.
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive, got {amount}")

        async with self.store.locked(LEDGER_COLLECTION, user_id):
            document = await self._load_locked(user_id)
            if document["subscription_tier"] != SubscriptionTier.PRO.value:
                document["credits_remaining"] += amount
                await self.store.replace(LEDGER_COLLECTION, document)

        logger.info(
            f"Credits added: {amount} ({reason or 'no reason'}). New balance: {document['credits_remaining']}",
            extra={"extra_fields": {"user_id": user_id, "amount": amount}}
        )
        return CreditBalance.from_record(CreditLedgerRecord.model_validate(document))

    async def set_subscription_tier(self, user_id: str, tier: SubscriptionTier) -> CreditBalance:
        """
        Apply a plan change reported by the payment provider.
        Downgrading to free starts a fresh free-tier month.
        """
        async with self.store.locked(LEDGER_COLLECTION, user_id):
            document = await self._load_locked(user_id)
            previous = document["subscription_tier"]
            document["subscription_tier"] = tier.value
            # Downgrade starts a fresh free month
            if tier == SubscriptionTier.FREE and previous != SubscriptionTier.FREE.value:
                document["credits_remaining"] = self.free_tier_credits
                document["credits_total"] = self.free_tier_credits
                document["last_credit_reset"] = self.clock().isoformat()
            await self.store.replace(LEDGER_COLLECTION, document)

        logger.info(
            f"Subscription tier for user {user_id}: {previous} -> {tier.value}",
            extra={"extra_fields": {"user_id": user_id, "tier": tier.value}}
        )
        return CreditBalance.from_record(CreditLedgerRecord.model_validate(document))

    async def reset_monthly_credits(self, user_id: str) -> CreditBalance:
        """Manually refill a metered balance to its monthly total."""
        async with self.store.locked(LEDGER_COLLECTION, user_id):
            document = await self._load_locked(user_id)
            if document["subscription_tier"] == SubscriptionTier.FREE.value:
                document["credits_remaining"] = document["credits_total"]
                document["last_credit_reset"] = self.clock().isoformat()
                await self.store.replace(LEDGER_COLLECTION, document)
        return CreditBalance.from_record(CreditLedgerRecord.model_validate(document))
