"""
Favorite recipes
"""
from typing import List, Dict, Any, Set
import logging
from supabase import Client

logger = logging.getLogger(__name__)

FAVORITES_TABLE = "favorites"


class FavoriteService:
    """
    favorites is unique on (user_id, recipe_id): adding twice or removing a
    missing favorite are both no-ops.
    """

    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    async def is_favorited(self, recipe_id: str, user_id: str) -> bool:
        response = (
            self.supabase.table(FAVORITES_TABLE)
            .select("id")
            .eq("recipe_id", recipe_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    async def favorited_recipe_ids(self, user_id: str, recipe_ids: List[str]) -> Set[str]:
        if not recipe_ids:
            return set()
        response = (
            self.supabase.table(FAVORITES_TABLE)
            .select("recipe_id")
            .eq("user_id", user_id)
            .in_("recipe_id", recipe_ids)
            .execute()
        )
        return {row["recipe_id"] for row in response.data or []}

    async def add_favorite(self, recipe_id: str, user_id: str) -> bool:
        self.supabase.table(FAVORITES_TABLE).upsert(
            {"recipe_id": recipe_id, "user_id": user_id},
            on_conflict="user_id,recipe_id",
            ignore_duplicates=True,
        ).execute()
        logger.info(f"User {user_id} favorited recipe {recipe_id}")
        return True

    async def remove_favorite(self, recipe_id: str, user_id: str) -> bool:
        self.supabase.table(FAVORITES_TABLE).delete().eq("recipe_id", recipe_id).eq("user_id", user_id).execute()
        logger.info(f"User {user_id} unfavorited recipe {recipe_id}")
        return False

    async def toggle_favorite(self, recipe_id: str, user_id: str) -> bool:
        """
        Flip the favorite state and return the new state
        """
        if await self.is_favorited(recipe_id, user_id):
            return await self.remove_favorite(recipe_id, user_id)
        return await self.add_favorite(recipe_id, user_id)

    async def list_favorites(self, user_id: str, limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
        """Favorite rows, most recent first"""
        response = (
            self.supabase.table(FAVORITES_TABLE)
            .select("recipe_id, created_at")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return response.data or []
