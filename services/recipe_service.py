"""
Recipe catalog operations
"""
import re
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import logging
from fastapi import HTTPException, status
from supabase import Client

from config.decorators import retry_on_ssl_error
from models.recipe import RecipeCreate, RecipeUpdate

logger = logging.getLogger(__name__)

RECIPES_TABLE = "recipes"
USERS_TABLE = "users"
AUTHOR_COLUMNS = "id, username, avatar_url"

# Characters with meaning inside a PostgREST or=(...) filter
_FILTER_CHARS = re.compile(r"[,()%*\\:\"]")


def sanitize_search(query: str) -> str:
    """Strip PostgREST filter syntax out of a free-text search term"""
    return " ".join(_FILTER_CHARS.sub(" ", query).split())


def _clean_lines(lines: Optional[List[str]]) -> List[str]:
    return [line.strip() for line in lines or [] if line and line.strip()]


class RecipeService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    @retry_on_ssl_error
    async def list_public_recipes(
        self,
        limit: int = 10,
        offset: int = 0,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Public recipes newest first, with author info
        """
        query = self.supabase.table(RECIPES_TABLE).select("*").eq("is_public", True)

        if category:
            query = query.eq("category", category)

        if search:
            term = sanitize_search(search)
            if term:
                query = query.or_(f"title.ilike.%{term}%,description.ilike.%{term}%")

        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return await self._attach_authors(response.data or [])

    @retry_on_ssl_error
    async def list_user_recipes(self, user_id: str) -> List[Dict[str, Any]]:
        """All recipes owned by a user, private ones included"""
        response = (
            self.supabase.table(RECIPES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return await self._attach_authors(response.data or [])

    @retry_on_ssl_error
    async def get_recipe(self, recipe_id: str) -> Optional[Dict[str, Any]]:
        response = self.supabase.table(RECIPES_TABLE).select("*").eq("id", recipe_id).limit(1).execute()
        return response.data[0] if response.data else None

    async def get_visible_recipe(self, recipe_id: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """
        A public recipe, or a private one when the viewer owns it
        """
        recipe = await self.get_recipe(recipe_id)
        if not recipe or (not recipe["is_public"] and recipe["user_id"] != viewer_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")

        with_author = await self._attach_authors([recipe])
        return with_author[0]

    async def get_recipes_by_ids(self, recipe_ids: List[str]) -> List[Dict[str, Any]]:
        if not recipe_ids:
            return []
        response = self.supabase.table(RECIPES_TABLE).select("*").in_("id", recipe_ids).execute()
        return await self._attach_authors(response.data or [])

    def validate_recipe(self, title: Optional[str], ingredients: List[str], steps: List[str]):
        if not title or not title.strip():
            raise ValueError("Recipe title is required")
        if not ingredients:
            raise ValueError("At least one ingredient is required")
        if not steps:
            raise ValueError("At least one step is required")

    async def create_recipe(self, user_id: str, recipe: RecipeCreate) -> Dict[str, Any]:
        """
        Insert a recipe for the user. Quota checks happen before this call.
        """
        ingredients = _clean_lines(recipe.ingredients)
        steps = _clean_lines(recipe.steps)
        self.validate_recipe(recipe.title, ingredients, steps)

        record = {
            "user_id": user_id,
            "title": recipe.title.strip(),
            "description": (recipe.description or "").strip() or None,
            "ingredients": ingredients,
            "steps": steps,
            "cooking_time": recipe.cooking_time,
            "servings": recipe.servings,
            "difficulty_level": recipe.difficulty_level,
            "category": recipe.category.value,
            "image_url": recipe.image_url,
            "is_public": recipe.is_public,
        }

        response = self.supabase.table(RECIPES_TABLE).insert(record).execute()
        if not response.data:
            raise RuntimeError("Recipe insert returned no row")

        created = response.data[0]
        logger.info(f"Created recipe {created['id']} for user {user_id}")
        return created

    async def _get_owned_recipe(self, recipe_id: str, user_id: str) -> Dict[str, Any]:
        recipe = await self.get_recipe(recipe_id)
        if not recipe:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
        if recipe["user_id"] != user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only modify your own recipes")
        return recipe

    async def update_recipe(self, recipe_id: str, user_id: str, update: RecipeUpdate) -> Dict[str, Any]:
        """
        Update recipe fields that were sent; owner only
        """
        current = await self._get_owned_recipe(recipe_id, user_id)

        update_data = update.model_dump(exclude_unset=True)
        for field in ("title", "category", "is_public", "ingredients", "steps"):
            if field in update_data and update_data[field] is None:
                raise ValueError(f"{field} cannot be null")
        if "ingredients" in update_data:
            update_data["ingredients"] = _clean_lines(update_data["ingredients"])
        if "steps" in update_data:
            update_data["steps"] = _clean_lines(update_data["steps"])
        if "title" in update_data and update_data["title"] is not None:
            update_data["title"] = update_data["title"].strip()
        if "description" in update_data:
            update_data["description"] = (update_data["description"] or "").strip() or None
        if update_data.get("category") is not None:
            update_data["category"] = update.category.value

        self.validate_recipe(
            update_data.get("title", current["title"]),
            update_data.get("ingredients", current.get("ingredients") or []),
            update_data.get("steps", current.get("steps") or []),
        )

        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = (
            self.supabase.table(RECIPES_TABLE)
            .update(update_data)
            .eq("id", recipe_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not response.data:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")

        logger.info(f"Updated recipe {recipe_id}")
        return response.data[0]

    async def delete_recipe(self, recipe_id: str, user_id: str) -> None:
        """
        Delete a recipe; owner only. Usage counters are not decremented.
        """
        await self._get_owned_recipe(recipe_id, user_id)
        self.supabase.table(RECIPES_TABLE).delete().eq("id", recipe_id).eq("user_id", user_id).execute()
        logger.info(f"Deleted recipe {recipe_id}")

    async def discard_recipe(self, recipe_id: str, user_id: str) -> None:
        """
        Remove a just-created recipe whose upload could not be counted
        """
        self.supabase.table(RECIPES_TABLE).delete().eq("id", recipe_id).eq("user_id", user_id).execute()
        logger.warning(f"Discarded recipe {recipe_id} after usage update failed")

    async def _attach_authors(self, recipes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        author_ids = sorted({recipe["user_id"] for recipe in recipes})
        if not author_ids:
            return recipes

        response = self.supabase.table(USERS_TABLE).select(AUTHOR_COLUMNS).in_("id", author_ids).execute()
        authors = {row["id"]: row for row in response.data or []}

        return [
            {**recipe, "author": authors.get(recipe["user_id"], {"id": recipe["user_id"]})}
            for recipe in recipes
        ]
