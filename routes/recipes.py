"""
Recipe catalog and favorite routes
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
import logging
from supabase import Client

from auth.dependencies import get_current_user, get_current_user_optional, get_supabase
from models.recipe import FavoriteResponse, RecipeCategory, RecipeCreate, RecipeResponse, RecipeUpdate
from services.entitlement_service import EntitlementService
from services.favorite_service import FavoriteService
from services.recipe_service import RecipeService

router = APIRouter(prefix="/api/recipes", tags=["Recipes"])
logger = logging.getLogger(__name__)

@router.get("", response_model=List[RecipeResponse])
async def list_recipes(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    category: Optional[RecipeCategory] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=100),
    current_user: Optional[dict] = Depends(get_current_user_optional),
    supabase: Client = Depends(get_supabase),
):
    """
    Browse or search public recipes, newest first
    """
    try:
        recipes = await RecipeService(supabase).list_public_recipes(
            limit=limit,
            offset=offset,
            category=category.value if category else None,
            search=q,
        )

        if current_user:
            favorited = await FavoriteService(supabase).favorited_recipe_ids(
                current_user["id"], [recipe["id"] for recipe in recipes]
            )
            recipes = [{**recipe, "is_favorited": recipe["id"] in favorited} for recipe in recipes]

        return recipes

    except Exception as e:
        logger.error(f"Error listing recipes: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load recipes"
        )

@router.post("", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
async def create_recipe(
    recipe: RecipeCreate,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Publish a recipe if the plan allows another upload this month
    """
    user_id = current_user["id"]
    try:
        entitlements = EntitlementService(supabase)
        details = await entitlements.get_details(user_id)
        if not details.limits.can_upload:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=details.limits.reason or "Usage limit exceeded. Upgrade to increase your limit."
            )

        recipes = RecipeService(supabase)
        created = await recipes.create_recipe(user_id, recipe)
        try:
            await entitlements.usage.increment_recipe_usage(user_id, details.usage.month_year)
        except Exception:
            await recipes.discard_recipe(created["id"], user_id)
            raise
        return created

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating recipe for user {user_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create recipe"
        )

@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: str,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    supabase: Client = Depends(get_supabase),
):
    viewer_id = current_user["id"] if current_user else None
    try:
        recipe = await RecipeService(supabase).get_visible_recipe(recipe_id, viewer_id)
        if viewer_id:
            recipe["is_favorited"] = await FavoriteService(supabase).is_favorited(recipe_id, viewer_id)
        return recipe

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting recipe {recipe_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load recipe"
        )

@router.patch("/{recipe_id}", response_model=RecipeResponse)
async def update_recipe(
    recipe_id: str,
    update: RecipeUpdate,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    try:
        return await RecipeService(supabase).update_recipe(recipe_id, current_user["id"], update)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating recipe {recipe_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update recipe"
        )

@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
    recipe_id: str,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    try:
        await RecipeService(supabase).delete_recipe(recipe_id, current_user["id"])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting recipe {recipe_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete recipe"
        )

async def _change_favorite(recipe_id: str, user_id: str, supabase: Client, action: str) -> FavoriteResponse:
    # Favoriting requires the recipe to be visible to the user
    await RecipeService(supabase).get_visible_recipe(recipe_id, user_id)

    favorites = FavoriteService(supabase)
    if action == "toggle":
        favorited = await favorites.toggle_favorite(recipe_id, user_id)
    elif action == "add":
        favorited = await favorites.add_favorite(recipe_id, user_id)
    else:
        favorited = await favorites.remove_favorite(recipe_id, user_id)
    return FavoriteResponse(recipe_id=recipe_id, favorited=favorited)

@router.post("/{recipe_id}/favorite", response_model=FavoriteResponse)
async def toggle_favorite(
    recipe_id: str,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Flip the favorite state for the current user
    """
    try:
        return await _change_favorite(recipe_id, current_user["id"], supabase, "toggle")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error toggling favorite on {recipe_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update favorite"
        )

@router.put("/{recipe_id}/favorite", response_model=FavoriteResponse)
async def add_favorite(
    recipe_id: str,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    try:
        return await _change_favorite(recipe_id, current_user["id"], supabase, "add")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding favorite on {recipe_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update favorite"
        )

@router.delete("/{recipe_id}/favorite", response_model=FavoriteResponse)
async def remove_favorite(
    recipe_id: str,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    try:
        return await _change_favorite(recipe_id, current_user["id"], supabase, "remove")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing favorite on {recipe_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update favorite"
        )
