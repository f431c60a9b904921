"""
RecipeShare Backend - Recipe Query Service
============================================

What:  Read side of the API: the public listing, the author's own listing,
       and the detail view.
Why:   Keeps pagination math and response shaping out of the routes and out
       of the store.
How:   Converts page/limit into offset/limit, asks RecipeStore for rows and
       counts, and maps rows into listing/detail schemas.

Pagination:
    offset   = (page - 1) * limit
    has_more = page * limit <= total_items

    `has_more` is true when the current page ends exactly on the last item;
    clients then fetch one empty page. Existing clients stop on an empty page,
    so the formula is kept as is.

Visibility:
    Listings: published recipes only (public) or every recipe of the author.
    Detail:   published recipes for everyone; drafts only for their owner.
"""

import logging
import uuid
from typing import Optional

from recipeshare.exceptions import NotFoundError
from recipeshare.models.recipe import Recipe
from recipeshare.schemas.recipe import (
    AuthorRecipeListData,
    AuthorRecipeListItem,
    PaginationParams,
    RecipeDetail,
    RecipeListData,
    RecipeListItem,
)
from recipeshare.services.recipe_store import RecipeStore

logger = logging.getLogger(__name__)


class RecipeQueryService:
    def __init__(self, store: RecipeStore):
        self.store = store

    async def list_published(self, page: int = 1, limit: int = 6) -> RecipeListData:
        params = PaginationParams(page=page, limit=limit)
        rows, total = await self.store.list_published(params.offset, params.limit)
        return RecipeListData(
            recipe_data=[_list_item(recipe) for recipe in rows],
            total_items=total,
            has_more=_has_more(params, total),
        )

    async def list_by_author(
        self,
        author_id: uuid.UUID,
        page: int = 1,
        limit: int = 6,
    ) -> AuthorRecipeListData:
        params = PaginationParams(page=page, limit=limit)
        rows, total, drafts = await self.store.list_by_author(author_id, params.offset, params.limit)
        return AuthorRecipeListData(
            recipe_data=[_author_item(recipe) for recipe in rows],
            total_items=total,
            draft_items=drafts,
            has_more=_has_more(params, total),
        )

    async def get_detail(
        self,
        recipe_id: uuid.UUID,
        requesting_user_id: Optional[uuid.UUID] = None,
    ) -> RecipeDetail:
        """
        Detail view of one recipe.

        Raises:
            NotFoundError: no such recipe, or a draft requested by someone
                other than its author
        """
        recipe = await self.store.get(recipe_id)
        is_owner = recipe is not None and requesting_user_id == recipe.author_id
        if recipe is None or not (recipe.is_published or is_owner):
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))

        return RecipeDetail(
            id=recipe.id,
            title=recipe.title,
            description=recipe.description,
            ingredients=list(recipe.ingredients),
            instructions=list(recipe.instructions),
            prep_time_minutes=recipe.prep_time_minutes,
            cooking_time_minutes=recipe.cooking_time_minutes,
            serving_size=recipe.serving_size,
            is_published=recipe.is_published,
            image_url=recipe.large_image_url,
            recipe_updated_at=recipe.updated_at,
            author_name=recipe.author.display_name,
            author_avatar_url=recipe.author.avatar_url,
            is_owner=is_owner,
        )


def _has_more(params: PaginationParams, total: int) -> bool:
    return params.page * params.limit <= total


def _list_item(recipe: Recipe) -> RecipeListItem:
    return RecipeListItem(
        recipe_id=recipe.id,
        title=recipe.title,
        prep_time_minutes=recipe.prep_time_minutes,
        cooking_time_minutes=recipe.cooking_time_minutes,
        serving_size=recipe.serving_size,
        image_url=recipe.thumbnail_image_url,
        author_name=recipe.author.display_name,
        author_avatar_url=recipe.author.avatar_url,
    )


def _author_item(recipe: Recipe) -> AuthorRecipeListItem:
    return AuthorRecipeListItem(
        recipe_id=recipe.id,
        title=recipe.title,
        prep_time_minutes=recipe.prep_time_minutes,
        cooking_time_minutes=recipe.cooking_time_minutes,
        serving_size=recipe.serving_size,
        image_url=recipe.thumbnail_image_url,
        is_published=recipe.is_published,
    )
