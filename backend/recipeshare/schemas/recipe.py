"""
RecipeShare Backend - Pydantic Request/Response Schemas
=========================================================

What:  Pydantic models defining the API contract between clients and the backend.
Why:   Strict input validation, automatic serialization, and OpenAPI doc generation.
How:   External names are camelCase (`prepTimeMinutes`); Python attributes and
       storage columns are snake_case (`prep_time_minutes`). The alias generator
       bridges the two, and RecipeField enumerates exactly which external names
       a client may write.

Design Decision:
    Schemas are separate from SQLAlchemy models because:
    1. API contracts change independently of the database schema
    2. We control exactly which data is exposed
    3. The partial-update type (RecipeUpdate) has no database counterpart
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Generic, List, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from recipeshare.models.recipe import Recipe

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Writable Fields
# ══════════════════════════════════════════════════════════════════════════


class RecipeField(str, Enum):
    """
    The complete set of recipe fields a client may supply on create or update.

    Values are the external (form/JSON) names. `column` gives the storage
    column each one is written to. Names outside this set are rejected.
    """

    TITLE = "title"
    DESCRIPTION = "description"
    INGREDIENTS = "ingredients"
    INSTRUCTIONS = "instructions"
    PREP_TIME_MINUTES = "prepTimeMinutes"
    COOKING_TIME_MINUTES = "cookingTimeMinutes"
    SERVING_SIZE = "servingSize"
    IS_PUBLISHED = "isPublished"

    @property
    def column(self) -> str:
        return FIELD_COLUMNS[self]

    @property
    def is_list(self) -> bool:
        return self in (RecipeField.INGREDIENTS, RecipeField.INSTRUCTIONS)


FIELD_COLUMNS: Dict[RecipeField, str] = {
    RecipeField.TITLE: "title",
    RecipeField.DESCRIPTION: "description",
    RecipeField.INGREDIENTS: "ingredients",
    RecipeField.INSTRUCTIONS: "instructions",
    RecipeField.PREP_TIME_MINUTES: "prep_time_minutes",
    RecipeField.COOKING_TIME_MINUTES: "cooking_time_minutes",
    RecipeField.SERVING_SIZE: "serving_size",
    RecipeField.IS_PUBLISHED: "is_published",
}


def _clean_title(v: str) -> str:
    stripped = v.strip()
    if not stripped:
        raise ValueError("title must not be blank")
    return stripped


Title = Annotated[str, Field(max_length=255), AfterValidator(_clean_title)]


class RecipeCreate(CamelModel):
    """
    Validated field set for a new recipe.

    Omitted optional fields take the same defaults the form decoder applies:
    empty lists, zero minutes, one serving, unpublished.
    """

    model_config = ConfigDict(extra="forbid")

    title: Title
    description: str = Field(default="")
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    prep_time_minutes: int = Field(default=0, ge=0)
    cooking_time_minutes: int = Field(default=0, ge=0)
    serving_size: int = Field(default=1, ge=1)
    is_published: bool = Field(default=False)


class RecipeUpdate(CamelModel):
    """
    Typed partial update.

    Every field is optional; a field left as None is not written. `to_columns()`
    yields the storage-column mapping for exactly the fields that were supplied.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[Title] = None
    description: Optional[str] = None
    ingredients: Optional[List[str]] = None
    instructions: Optional[List[str]] = None
    prep_time_minutes: Optional[int] = Field(default=None, ge=0)
    cooking_time_minutes: Optional[int] = Field(default=None, ge=0)
    serving_size: Optional[int] = Field(default=None, ge=1)
    is_published: Optional[bool] = None

    def to_columns(self) -> Dict[str, Any]:
        supplied = self.model_dump(by_alias=True, exclude_none=True)
        return {RecipeField(name).column: value for name, value in supplied.items()}

    def is_empty(self) -> bool:
        return not self.to_columns()


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ApiResponse(BaseModel, Generic[T]):
    """
    Success envelope returned by every recipe endpoint.

    Errors use the same top-level `success` flag (see ErrorResponse).
    """

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class RecipeResponse(CamelModel):
    """Full recipe row as returned after create and update."""

    id: uuid.UUID
    title: str
    description: str
    ingredients: List[str]
    instructions: List[str]
    prep_time_minutes: int
    cooking_time_minutes: int
    serving_size: int
    is_published: bool
    thumbnail_url: Optional[str] = None
    large_url: Optional[str] = None
    author_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "RecipeResponse":
        return cls(
            id=recipe.id,
            title=recipe.title,
            description=recipe.description,
            ingredients=list(recipe.ingredients),
            instructions=list(recipe.instructions),
            prep_time_minutes=recipe.prep_time_minutes,
            cooking_time_minutes=recipe.cooking_time_minutes,
            serving_size=recipe.serving_size,
            is_published=recipe.is_published,
            thumbnail_url=recipe.thumbnail_image_url,
            large_url=recipe.large_image_url,
            author_id=recipe.author_id,
            created_at=recipe.created_at,
            updated_at=recipe.updated_at,
        )


class RecipeListItem(CamelModel):
    """Card in the public listing. `imageUrl` is the thumbnail."""

    recipe_id: uuid.UUID
    title: str
    prep_time_minutes: int
    cooking_time_minutes: int
    serving_size: int
    image_url: Optional[str] = None
    author_name: str
    author_avatar_url: Optional[str] = None


class AuthorRecipeListItem(CamelModel):
    """Card in the author's own listing, drafts included."""

    recipe_id: uuid.UUID
    title: str
    prep_time_minutes: int
    cooking_time_minutes: int
    serving_size: int
    image_url: Optional[str] = None
    is_published: bool


class RecipeListData(CamelModel):
    recipe_data: List[RecipeListItem]
    total_items: int
    has_more: bool


class AuthorRecipeListData(CamelModel):
    recipe_data: List[AuthorRecipeListItem]
    total_items: int
    draft_items: int
    has_more: bool


class RecipeDetail(CamelModel):
    """
    Detail view. `imageUrl` is the large derivative; `isOwner` is derived
    from the requesting user, false for anonymous callers.
    """

    id: uuid.UUID
    title: str
    description: str
    ingredients: List[str]
    instructions: List[str]
    prep_time_minutes: int
    cooking_time_minutes: int
    serving_size: int
    is_published: bool
    image_url: Optional[str] = None
    recipe_updated_at: datetime
    author_name: str
    author_avatar_url: Optional[str] = None
    is_owner: bool


# ══════════════════════════════════════════════════════════════════════════
# Query Parameter Models
# ══════════════════════════════════════════════════════════════════════════


class PaginationParams(BaseModel):
    """
    page:  1-based page number
    limit: items per page (1-20, default 6)
    """

    page: int = Field(default=1, ge=1, description="Page number (starts from 1)")
    limit: int = Field(default=6, ge=1, le=20, description="Items per page (max 20)")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "success": false,
            "error": "not_found",
            "message": "The requested recipe was not found",
            "request_id": "1f2e3d4c"
        }
    """

    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    object_store: str = Field(description="Object store status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
