"""
Consulting purchase routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import logging

from auth.dependencies import get_current_user, get_stripe_service
from config.plan_config import CONSULTING_OPTIONS, get_consulting_option
from services.stripe_service import StripeService

router = APIRouter(prefix="/api/consulting", tags=["Consulting"])
logger = logging.getLogger(__name__)

class ConsultingPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    option_id: Optional[str] = Field(default=None, alias="optionId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    amount: Optional[int] = Field(default=None, description="Minor currency units")
    description: Optional[str] = None

class ConsultingPaymentResponse(BaseModel):
    paymentUrl: str

@router.get("/options")
async def get_consulting_options():
    """
    Consulting packages that can be purchased
    """
    return {
        "options": [
            {"id": option_id, **option}
            for option_id, option in CONSULTING_OPTIONS.items()
        ]
    }

@router.post("/create-payment", response_model=ConsultingPaymentResponse)
async def create_consulting_payment(
    request: ConsultingPaymentRequest,
    current_user: dict = Depends(get_current_user),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> ConsultingPaymentResponse:
    """
    Create a Stripe payment link for a consulting package
    """
    if not request.option_id or not request.user_id or not request.amount or not request.description:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields"
        )

    option = get_consulting_option(request.option_id)
    if option is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unknown consulting option"
        )

    if request.amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="amount must be a positive integer"
        )

    if request.amount != option["price"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="amount does not match the price of the consulting option"
        )

    if request.user_id != current_user["id"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="userId does not match the authenticated user"
        )

    try:
        payment_url = await stripe_service.create_consulting_payment_link(
            user_id=current_user["id"],
            option_id=request.option_id,
            product_name=option["name"],
            description=request.description,
            amount=request.amount,
        )

        return ConsultingPaymentResponse(paymentUrl=payment_url)

    except Exception as e:
        logger.error(f"Error creating consulting payment for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create payment link"
        )
