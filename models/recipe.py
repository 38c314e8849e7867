"""
Recipe and favorite models
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

class RecipeCategory(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    DESSERT = "dessert"
    SNACK = "snack"
    APPETIZER = "appetizer"
    SOUP = "soup"
    SALAD = "salad"
    BEVERAGE = "beverage"
    OTHER = "other"

DIFFICULTY_LEVELS = {
    1: "Easy",
    2: "Easy-Medium",
    3: "Medium",
    4: "Medium-Hard",
    5: "Hard",
}

class RecipeAuthor(BaseModel):
    id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None

class RecipeCreate(BaseModel):
    title: str
    description: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    cooking_time: Optional[int] = Field(default=None, ge=0, description="Minutes")
    servings: Optional[int] = Field(default=None, ge=1)
    difficulty_level: Optional[int] = Field(default=None, ge=1, le=5)
    category: RecipeCategory = RecipeCategory.OTHER
    image_url: Optional[str] = None
    is_public: bool = True

class RecipeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    ingredients: Optional[List[str]] = None
    steps: Optional[List[str]] = None
    cooking_time: Optional[int] = Field(default=None, ge=0)
    servings: Optional[int] = Field(default=None, ge=1)
    difficulty_level: Optional[int] = Field(default=None, ge=1, le=5)
    category: Optional[RecipeCategory] = None
    image_url: Optional[str] = None
    is_public: Optional[bool] = None

class RecipeResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    cooking_time: Optional[int] = None
    servings: Optional[int] = None
    difficulty_level: Optional[int] = None
    category: RecipeCategory
    image_url: Optional[str] = None
    is_public: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: Optional[RecipeAuthor] = None
    is_favorited: bool = False

class FavoriteResponse(BaseModel):
    recipe_id: str
    favorited: bool
