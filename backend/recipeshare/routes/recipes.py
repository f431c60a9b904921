"""
RecipeShare Backend - Recipe Route Handlers
=============================================

What:  HTTP surface for recipes: create, list, author listing, detail, update, delete.
Why:   Entry point for the frontend recipe editor and browsing pages.
How:   Reads the multipart body, delegates to RecipePipeline (writes) or
       RecipeQueryService (reads), wraps the result in the success envelope.
Who:   Called by the frontend; authenticated routes need a bearer token.

Request Flow (POST /api/recipes):
    1. get_current_user verifies the bearer token (401 otherwise)
    2. Multipart body → scalar fields + at most one image
    3. Fields → RecipeCreate (400 on unknown/invalid fields)
    4. RecipePipeline.create_recipe: validate → transform → upload → commit
    5. 201 Created with the stored recipe

Multipart fields:
    title, description, ingredients (JSON array), instructions (JSON array),
    prepTimeMinutes, cookingTimeMinutes, servingSize, isPublished ("true"/"false"),
    image (optional file, PNG or JPEG, max 1 MiB)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from recipeshare.auth import AuthenticatedUser, get_current_user, get_optional_user
from recipeshare.schemas.recipe import (
    ApiResponse,
    AuthorRecipeListData,
    ErrorResponse,
    RecipeDetail,
    RecipeListData,
    RecipeResponse,
)
from recipeshare.services.recipe_form import decode_multipart, parse_recipe_fields
from recipeshare.services.recipe_pipeline import RecipePipeline
from recipeshare.services.recipe_queries import RecipeQueryService

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/recipes", tags=["Recipes"])

_WRITE_ERRORS = {
    400: {"description": "Invalid fields or image", "model": ErrorResponse},
    401: {"description": "Missing or invalid credentials", "model": ErrorResponse},
    503: {"description": "Image storage unavailable", "model": ErrorResponse},
}


def get_pipeline(request: Request) -> RecipePipeline:
    return request.app.state.recipe_pipeline


def get_queries(request: Request) -> RecipeQueryService:
    return request.app.state.recipe_queries


# ══════════════════════════════════════════════════════════════════════════
# Writes
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[RecipeResponse],
    responses=_WRITE_ERRORS,
    summary="Create a recipe",
    description=(
        "Multipart form with the recipe fields and an optional PNG/JPEG image. "
        "When an image is supplied, a 400x300 thumbnail and a 1200x800 large "
        "version are stored; if that fails, no recipe is created."
    ),
)
async def create_recipe(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    pipeline: RecipePipeline = Depends(get_pipeline),
) -> ApiResponse[RecipeResponse]:
    form = await decode_multipart(await request.form())
    fields = parse_recipe_fields(form.fields, partial=False)

    recipe = await pipeline.create_recipe(user.user_id, fields, form.image)
    return ApiResponse(message="Recipe created successfully", data=RecipeResponse.from_recipe(recipe))


@router.put(
    "/{recipe_id}",
    response_model=ApiResponse[RecipeResponse],
    responses={**_WRITE_ERRORS, 404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Update a recipe",
    description=(
        "Partial update: only non-empty fields are written. A new image replaces "
        "both stored versions. Recipes owned by someone else are reported as not found."
    ),
)
async def update_recipe(
    recipe_id: uuid.UUID,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    pipeline: RecipePipeline = Depends(get_pipeline),
) -> ApiResponse[RecipeResponse]:
    form = await decode_multipart(await request.form())
    changes = parse_recipe_fields(form.fields, partial=True)

    recipe = await pipeline.update_recipe(recipe_id, user.user_id, changes, form.image)
    return ApiResponse(message="Recipe updated successfully", data=RecipeResponse.from_recipe(recipe))


@router.delete(
    "/{recipe_id}",
    response_model=ApiResponse,
    responses={
        401: {"description": "Missing or invalid credentials", "model": ErrorResponse},
        404: {"description": "Recipe not found", "model": ErrorResponse},
    },
    summary="Delete a recipe",
)
async def delete_recipe(
    recipe_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    pipeline: RecipePipeline = Depends(get_pipeline),
) -> ApiResponse:
    await pipeline.delete_recipe(recipe_id, user.user_id)
    return ApiResponse(message="Recipe deleted successfully")


# ══════════════════════════════════════════════════════════════════════════
# Reads
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    response_model=ApiResponse[RecipeListData],
    summary="List published recipes",
    description="Newest first. `hasMore` tells the client whether to request the next page.",
)
async def list_recipes(
    page: int = Query(default=1, ge=1, description="Page number (starts from 1)"),
    limit: int = Query(default=6, ge=1, le=20, description="Items per page (max 20)"),
    queries: RecipeQueryService = Depends(get_queries),
) -> ApiResponse[RecipeListData]:
    data = await queries.list_published(page=page, limit=limit)
    return ApiResponse(data=data)


@router.get(
    "/author",
    response_model=ApiResponse[AuthorRecipeListData],
    responses={401: {"description": "Missing or invalid credentials", "model": ErrorResponse}},
    summary="List the caller's own recipes, drafts included",
)
async def list_author_recipes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=6, ge=1, le=20),
    user: AuthenticatedUser = Depends(get_current_user),
    queries: RecipeQueryService = Depends(get_queries),
) -> ApiResponse[AuthorRecipeListData]:
    data = await queries.list_by_author(user.user_id, page=page, limit=limit)
    return ApiResponse(data=data)


@router.get(
    "/{recipe_id}",
    response_model=ApiResponse[RecipeDetail],
    responses={404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Get one recipe",
    description="Anonymous callers see published recipes; authors also see their drafts.",
)
async def get_recipe(
    recipe_id: uuid.UUID,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    queries: RecipeQueryService = Depends(get_queries),
) -> ApiResponse[RecipeDetail]:
    data = await queries.get_detail(recipe_id, user.user_id if user else None)
    return ApiResponse(data=data)
