"""
RecipeShare Backend - Recipe Pipeline Orchestrator
====================================================

What:  Creates, updates and deletes recipes together with their image derivatives.
Why:   The database is transactional, the object store is not. This is where the
       two are reconciled so that every create/update is all-or-nothing from the
       client's point of view.
How:   Validation happens first. When an image is present, resize + upload run as
       a callback INSIDE the RecipeStore transaction, so an image failure rolls
       back the row write. Uploads are retried with tenacity; anything uploaded
       by a create that then fails is deleted again (compensation).
Who:   Called by the recipe routes; one pipeline instance is built per app.

Per-call stages:
    VALIDATING → NO_IMAGE | IMAGE_PRESENT → PERSISTING → [IMAGE_CALLBACK]
               → COMMITTED | ROLLED_BACK

Failure policy:
    ┌─────────────────────────────┬─────────────────────────────────────────┐
    │ Failure                     │ Outcome                                 │
    ├─────────────────────────────┼─────────────────────────────────────────┤
    │ Bad fields / size / type    │ ValidationError, storage never touched  │
    │ Undecodable image           │ Rollback, no row                        │
    │ Upload fails after retries  │ Rollback; create deletes its uploads    │
    │ Blob delete after row delete│ Logged as orphan, request still succeeds│
    └─────────────────────────────┴─────────────────────────────────────────┘

    Update never compensates: its keys are the same keys that hold the
    previously committed image, so deleting them would break the old row.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import List, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from recipeshare.config import settings
from recipeshare.exceptions import StoreUnavailableError, ValidationError
from recipeshare.models.recipe import Recipe
from recipeshare.schemas.recipe import RecipeCreate, RecipeUpdate
from recipeshare.services.image_service import (
    DERIVATIVE_CONTENT_TYPE,
    ImageService,
    UploadedImage,
)
from recipeshare.services.object_store import (
    LARGE,
    THUMBNAIL,
    ObjectStoreClient,
    key_from_url,
    recipe_image_key,
)
from recipeshare.services.recipe_store import ImageUrls, RecipeDraft, RecipeStore

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    VALIDATING = "validating"
    NO_IMAGE = "no_image"
    IMAGE_PRESENT = "image_present"
    PERSISTING = "persisting"
    IMAGE_CALLBACK = "image_callback"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class _PipelineRun:
    """State for one pipeline invocation. Never shared between calls."""

    def __init__(self, operation: str, author_id: uuid.UUID, recipe_id: Optional[uuid.UUID] = None):
        self.operation = operation
        self.author_id = author_id
        self.recipe_id = recipe_id
        self.stage: Optional[PipelineStage] = None
        self.attempted_keys: List[str] = []
        self.in_flight: List[asyncio.Future] = []

    def advance(self, stage: PipelineStage) -> None:
        logger.debug(
            "Pipeline %s: %s → %s (author=%s, recipe=%s)",
            self.operation,
            self.stage.value if self.stage else "start",
            stage.value,
            self.author_id,
            self.recipe_id,
        )
        self.stage = stage


class RecipePipeline:
    """
    Orchestrates validation, image processing, upload and persistence.

    Collaborators are injected so tests can swap in a mock object store and a
    SQLite-backed RecipeStore.
    """

    def __init__(
        self,
        store: RecipeStore,
        object_store: ObjectStoreClient,
        image_service: Optional[ImageService] = None,
        retry_attempts: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
    ):
        self.store = store
        self.object_store = object_store
        self.image_service = image_service or ImageService()
        self.retry_attempts = retry_attempts if retry_attempts is not None else settings.store_retry_attempts
        self.retry_min_wait = retry_min_wait if retry_min_wait is not None else settings.store_retry_min_wait
        self.retry_max_wait = retry_max_wait if retry_max_wait is not None else settings.store_retry_max_wait

    # ══════════════════════════════════════════════════════════════════════
    # Create
    # ══════════════════════════════════════════════════════════════════════

    async def create_recipe(
        self,
        author_id: uuid.UUID,
        fields: RecipeCreate,
        image: Optional[UploadedImage] = None,
    ) -> Recipe:
        """
        Create a recipe, with both image derivatives when `image` is given.

        Raises:
            ValidationError:       rejected image (size, declared or real type)
            StoreUnavailableError: upload still failing after all retries
            DatabaseError:         storage failure or transaction timeout
        """
        run = _PipelineRun("create", author_id)
        run.advance(PipelineStage.VALIDATING)
        if image is not None:
            self._check_image(image)
        draft = RecipeDraft(author_id=author_id, fields=fields)

        if image is None:
            run.advance(PipelineStage.NO_IMAGE)
            run.advance(PipelineStage.PERSISTING)
            recipe = await self.store.create_without_image(draft)
            run.recipe_id = recipe.id
            run.advance(PipelineStage.COMMITTED)
            return recipe

        run.advance(PipelineStage.IMAGE_PRESENT)
        run.advance(PipelineStage.PERSISTING)

        async def on_recipe_created(recipe_id: uuid.UUID) -> ImageUrls:
            run.recipe_id = recipe_id
            return await self._process_image(run, recipe_id, image)

        try:
            recipe = await self.store.create_with_images(draft, on_recipe_created)
        except Exception:
            run.advance(PipelineStage.ROLLED_BACK)
            await self._discard_uploads(run)
            raise

        run.advance(PipelineStage.COMMITTED)
        return recipe

    # ══════════════════════════════════════════════════════════════════════
    # Update
    # ══════════════════════════════════════════════════════════════════════

    async def update_recipe(
        self,
        recipe_id: uuid.UUID,
        author_id: uuid.UUID,
        changes: RecipeUpdate,
        image: Optional[UploadedImage] = None,
    ) -> Recipe:
        """
        Apply a partial update and/or replace the recipe's image.

        Only the fields present in `changes` are written. A new image is
        uploaded to the same keys as the old one, overwriting it.

        Raises:
            ValidationError: nothing to update, or a rejected image
            NotFoundError:   recipe missing or owned by someone else
        """
        run = _PipelineRun("update", author_id, recipe_id)
        run.advance(PipelineStage.VALIDATING)
        columns = changes.to_columns()
        if not columns and image is None:
            raise ValidationError("Provide at least one field or an image to update")
        if image is not None:
            self._check_image(image)

        if image is None:
            run.advance(PipelineStage.NO_IMAGE)
            run.advance(PipelineStage.PERSISTING)
            recipe = await self.store.update_without_image(recipe_id, author_id, columns)
            run.advance(PipelineStage.COMMITTED)
            return recipe

        run.advance(PipelineStage.IMAGE_PRESENT)
        run.advance(PipelineStage.PERSISTING)

        async def on_updated(locked_id: uuid.UUID) -> ImageUrls:
            return await self._process_image(run, locked_id, image)

        try:
            recipe = await self.store.update_with_images(recipe_id, author_id, columns, on_updated)
        except Exception:
            run.advance(PipelineStage.ROLLED_BACK)
            if run.attempted_keys:
                logger.warning(
                    "Update of recipe %s rolled back after writing %s; "
                    "stored blobs may no longer match the row",
                    recipe_id,
                    run.attempted_keys,
                )
            raise

        run.advance(PipelineStage.COMMITTED)
        return recipe

    # ══════════════════════════════════════════════════════════════════════
    # Delete
    # ══════════════════════════════════════════════════════════════════════

    async def delete_recipe(self, recipe_id: uuid.UUID, author_id: uuid.UUID) -> None:
        """Delete the row, then best-effort delete both image blobs."""
        await self.store.delete(recipe_id, author_id, on_deleted=self._remove_images)

    async def _remove_images(self, thumbnail_url: Optional[str], large_url: Optional[str]) -> None:
        for url in (thumbnail_url, large_url):
            if url is None:
                continue
            key = key_from_url(url)
            try:
                await self.object_store.delete(key)
            except StoreUnavailableError as e:
                logger.warning("Orphaned image blob: key=%s (%s)", key, e.message)

    # ══════════════════════════════════════════════════════════════════════
    # Image Handling
    # ══════════════════════════════════════════════════════════════════════

    def _check_image(self, image: UploadedImage) -> None:
        # Cheap checks; no decoding, no transaction yet
        self.image_service.validate_size(image.data)
        self.image_service.validate_format(image.content_type)

    async def _process_image(
        self,
        run: _PipelineRun,
        recipe_id: uuid.UUID,
        image: UploadedImage,
    ) -> ImageUrls:
        """Transactional callback body: render both derivatives and upload them."""
        run.advance(PipelineStage.IMAGE_CALLBACK)
        derivatives = await self.image_service.render_derivatives_async(image.data)

        thumbnail_url = await self._upload(
            run, recipe_image_key(run.author_id, recipe_id, THUMBNAIL), derivatives.thumbnail
        )
        large_url = await self._upload(
            run, recipe_image_key(run.author_id, recipe_id, LARGE), derivatives.large
        )
        return ImageUrls(thumbnail_url=thumbnail_url, large_url=large_url)

    async def _upload(self, run: _PipelineRun, key: str, data: bytes) -> str:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(StoreUnavailableError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_random_exponential(multiplier=self.retry_min_wait, max=self.retry_max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        run.attempted_keys.append(key)
        async for attempt in retrying:
            with attempt:
                # Shielded: a transaction timeout cancels this coroutine, but the
                # put_object thread keeps running and must be awaited before cleanup.
                upload = asyncio.ensure_future(
                    self.object_store.upload(key, data, DERIVATIVE_CONTENT_TYPE)
                )
                run.in_flight.append(upload)
                url = await asyncio.shield(upload)
        return url

    async def _discard_uploads(self, run: _PipelineRun) -> None:
        """
        Compensation for a failed create: the recipe never existed.

        Waits for uploads still running after a timeout, then deletes every
        key an upload was attempted for. Deleting a key that was never
        written is a no-op in S3.
        """
        # Upload outcomes were already reported through the failed transaction
        await asyncio.gather(*run.in_flight, return_exceptions=True)
        for key in run.attempted_keys:
            try:
                await self.object_store.delete(key)
                logger.info("Compensation: removed %s", key)
            except StoreUnavailableError as e:
                logger.warning("Orphaned image blob: key=%s (%s)", key, e.message)
