"""
Billing Webhook API - plan and credit updates pushed by the payment provider.

The payment provider is the source of truth for the unlimited (pro) plan
and for purchased credit packs. Requests are signed with HMAC-SHA256 over
the raw body using the shared ``billing_webhook_secret``.
"""

import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from ..config import settings
from ..models import SubscriptionTier
from ..services import Services, get_services
from ..storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])

PROCESSED_EVENTS_COLLECTION = "billing_events"

PAYMENT_SUCCEEDED = {"checkout.completed", "payment.succeeded"}
PAYMENT_FAILED = {"checkout.failed", "payment.failed"}
SUBSCRIPTION_UPDATED = {"subscription.created", "subscription.updated"}
SUBSCRIPTION_CANCELLED = {"subscription.cancelled", "subscription.deleted"}


class BillingEvent(BaseModel):
    """Webhook payload. Only the fields we act on are declared."""
    id: Optional[str] = None
    type: Optional[str] = None
    event_type: Optional[str] = None
    customer_id: Optional[str] = None
    product_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = {}

    @property
    def kind(self) -> str:
        return self.type or self.event_type or ""


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of the hex HMAC-SHA256 of the raw body."""
    if not signature:
        return False
    computed = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature.strip().lower())


def _require_customer(event: BillingEvent) -> str:
    if not event.customer_id:
        raise ValueError("Missing customer_id in webhook payload")
    return event.customer_id


async def _handle_payment_succeeded(event: BillingEvent, services: Services) -> None:
    customer_id = _require_customer(event)
    if event.metadata.get("type") != "credit_purchase":
        logger.debug(f"Payment {event.id} is not a credit purchase, no action taken")
        return

    try:
        credits = int(str(event.metadata.get("credits", "")))
    except ValueError:
        raise ValueError("Invalid credits amount in metadata") from None
    if credits <= 0:
        raise ValueError("Invalid credits amount in metadata")

    package = event.metadata.get("packageId") or "unknown package"
    await services.ledger.add_credits(customer_id, credits, reason=f"Credit purchase: {package}")


async def _handle_subscription_updated(event: BillingEvent, services: Services) -> None:
    customer_id = _require_customer(event)
    if not event.product_id:
        logger.warning("Subscription update missing product_id, skipping")
        return

    is_pro_plan = event.product_id.strip().lower() in settings.pro_product_id_set
    if not is_pro_plan:
        logger.debug(f"Subscription update for non-Pro product {event.product_id}, no action taken")
        return
    if event.status == "active":
        await services.ledger.set_subscription_tier(customer_id, SubscriptionTier.PRO)


async def _handle_subscription_cancelled(event: BillingEvent, services: Services) -> None:
    await services.ledger.set_subscription_tier(_require_customer(event), SubscriptionTier.FREE)


async def _dispatch(event: BillingEvent, services: Services) -> None:
    kind = event.kind
    if kind in PAYMENT_SUCCEEDED:
        await _handle_payment_succeeded(event, services)
    elif kind in PAYMENT_FAILED:
        logger.error(
            f"Payment failed for customer {event.customer_id}: {event.error or 'Unknown error'}",
            extra={"extra_fields": {"customer_id": event.customer_id, "event_id": event.id}}
        )
    elif kind in SUBSCRIPTION_UPDATED:
        await _handle_subscription_updated(event, services)
    elif kind in SUBSCRIPTION_CANCELLED:
        await _handle_subscription_cancelled(event, services)
    else:
        logger.debug(f"Unhandled webhook event type: {kind}")


async def _process_once(event: BillingEvent, store: DocumentStore, services: Services) -> bool:
    """Run an event unless its id was already processed. Returns False for duplicates."""
    if not event.id:
        await _dispatch(event, services)
        return True

    async with store.locked(PROCESSED_EVENTS_COLLECTION, event.id):
        if await store.get(PROCESSED_EVENTS_COLLECTION, event.id) is not None:
            return False
        await _dispatch(event, services)
        await store.insert(
            PROCESSED_EVENTS_COLLECTION, {"type": event.kind}, doc_id=event.id
        )
    return True


@router.post("/webhook")
async def billing_webhook(
    request: Request,
    x_billing_signature: Optional[str] = Header(None),
    services: Services = Depends(get_services),
):
    """
    Handle a payment provider event.

    Duplicated deliveries (same event id) are acknowledged without effect.
    """
    secret = settings.billing_webhook_secret
    if not secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Billing webhook not configured")

    raw_body = await request.body()
    if not verify_signature(secret, raw_body, x_billing_signature):
        logger.error("Invalid billing webhook signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        event = BillingEvent.model_validate(json.loads(raw_body))
    # ValueError covers JSONDecodeError and bodies that are not valid UTF-8
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid payload: {e}")

    logger.info(
        f"Billing webhook received: {event.kind}",
        extra={"extra_fields": {"event_id": event.id, "customer_id": event.customer_id}}
    )

    try:
        processed = await _process_once(event, services.store, services)
    except ValueError as e:
        logger.error(f"Billing webhook rejected: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"received": True, "duplicate": not processed}
