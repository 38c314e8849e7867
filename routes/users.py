"""
User profile, personal recipe lists and usage routes
"""
from fastapi import APIRouter, HTTPException, status, Depends, Query
from typing import List
import logging
from supabase import Client

from auth.dependencies import get_current_user, get_supabase
from models.recipe import RecipeResponse
from models.usage import ImageUsageRequest, UsageCounter
from models.subscription import SubscriptionDetails
from models.user import UserProfile, UserUpdate
from services.entitlement_service import EntitlementService
from services.favorite_service import FavoriteService
from services.recipe_service import RecipeService
from services.user_service import UserService
from services.usage_service import image_limit_reason

router = APIRouter(prefix="/api/users", tags=["Users"])
logger = logging.getLogger(__name__)

@router.get("/me", response_model=UserProfile)
async def get_current_user_profile(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Get current user profile
    """
    try:
        user_profile = await UserService(supabase).get_user_profile(current_user["id"])

        if not user_profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User profile not found"
            )

        return UserProfile(**user_profile)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Get current user error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user profile"
        )

@router.patch("/me", response_model=UserProfile)
async def update_current_user_profile(
    update: UserUpdate,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Update the profile, creating it on first write
    """
    try:
        profile = await UserService(supabase).update_user_profile(current_user["id"], update)
        return UserProfile(**profile)

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Update profile error for user {current_user['id']}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user profile"
        )

@router.get("/me/recipes", response_model=List[RecipeResponse])
async def get_my_recipes(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    All recipes owned by the current user, private ones included
    """
    try:
        return await RecipeService(supabase).list_user_recipes(current_user["id"])
    except Exception as e:
        logger.error(f"Error getting recipes for user {current_user['id']}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get recipes"
        )

@router.get("/me/favorites", response_model=List[RecipeResponse])
async def get_my_favorites(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    """
    Favorited recipes, most recently favorited first. Recipes that were
    deleted or made private by their owner are left out.
    """
    user_id = current_user["id"]
    try:
        favorites = await FavoriteService(supabase).list_favorites(user_id, limit=limit, offset=offset)
        recipe_ids = [row["recipe_id"] for row in favorites]

        recipes = await RecipeService(supabase).get_recipes_by_ids(recipe_ids)
        by_id = {recipe["id"]: recipe for recipe in recipes}

        return [
            {**by_id[recipe_id], "is_favorited": True}
            for recipe_id in recipe_ids
            if recipe_id in by_id and (by_id[recipe_id]["is_public"] or by_id[recipe_id]["user_id"] == user_id)
        ]

    except Exception as e:
        logger.error(f"Error getting favorites for user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get favorites"
        )

@router.get("/me/usage", response_model=SubscriptionDetails)
async def get_usage_stats(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Get this month's usage together with the limits that apply to it
    """
    try:
        return await EntitlementService(supabase).get_details(current_user["id"])
    except Exception as e:
        logger.error(f"Usage stats error for user {current_user['id']}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get usage statistics"
        )

@router.post("/me/usage/images", response_model=UsageCounter)
async def record_image_upload(
    request: ImageUsageRequest,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Record an uploaded image against this month's storage allowance
    """
    if request.size_bytes is None or request.size_bytes < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="size_bytes must be a non-negative integer"
        )

    user_id = current_user["id"]
    try:
        entitlements = EntitlementService(supabase)
        details = await entitlements.get_details(user_id)
        if not details.limits.can_upload_image:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"{image_limit_reason(details.plan)}. Upgrade to increase your limit."
            )

        return await entitlements.usage.increment_image_usage(user_id, details.usage.month_year, request.size_bytes)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Image usage error for user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record image usage"
        )
