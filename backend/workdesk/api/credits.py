"""
Credits API endpoints - balance and pre-flight checks for metered features.
"""

from fastapi import APIRouter, Depends, Query

from ..models import CreditBalance, CreditCheck
from ..services import Services, get_services
from ..utils.auth import get_current_user_id

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("", response_model=CreditBalance)
async def get_user_credits(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Current balance; applies the monthly reset when a new month started."""
    return await services.ledger.get_balance(user_id)


@router.get("/check", response_model=CreditCheck)
async def check_credits(
    amount: int = Query(..., ge=0),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Advisory check used by the UI before starting a metered action."""
    return await services.ledger.check_credits(user_id, amount)
