"""
RecipeShare Backend - Recipe Store
====================================

What:  Relational persistence of recipe rows.
Why:   The only component that talks to the `recipes` table; everything that
       must be atomic with a row write happens inside one of its transactions.
How:   Each operation opens its own UnitOfWork (one session, one transaction).
       The with-image operations accept an async callback that runs while the
       transaction is still open: the row exists (and is locked) but nothing is
       visible to other sessions until commit.
Who:   Used by RecipePipeline (mutations) and RecipeQueryService (reads).

Transactional callback flow (create_with_images):
    BEGIN
    INSERT recipe (image URLs NULL)
    urls = await on_recipe_created(recipe.id)   ← any exception → ROLLBACK
    UPDATE recipe SET thumbnail/large URL
    COMMIT

Ownership:
    update/delete select the row with `WHERE id = :id AND author_id = :author
    FOR UPDATE`. No match (missing id or someone else's recipe) is NotFoundError.
    Concurrent mutations of the same recipe are serialized by that row lock.

Timeouts:
    Ordinary operations are bounded by `statement_timeout`. The with-image
    operations are bounded by the longer `transaction_timeout`, since they
    resize images and upload to the object store while the transaction is open.
    On timeout the transaction is rolled back before DatabaseError is raised.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from recipeshare.config import settings
from recipeshare.database import async_session_factory
from recipeshare.exceptions import DatabaseError, NotFoundError
from recipeshare.models.recipe import Recipe, utc_now
from recipeshare.schemas.recipe import FIELD_COLUMNS, RecipeCreate

logger = logging.getLogger(__name__)

T = TypeVar("T")

WRITABLE_COLUMNS = frozenset(FIELD_COLUMNS.values())


@dataclass(frozen=True)
class RecipeDraft:
    """Validated field set for a recipe that does not exist yet."""

    author_id: uuid.UUID
    fields: RecipeCreate


@dataclass(frozen=True)
class ImageUrls:
    """Public URLs of both derivatives; always set together."""

    thumbnail_url: str
    large_url: str


ImageCallback = Callable[[uuid.UUID], Awaitable[ImageUrls]]
CleanupCallback = Callable[[Optional[str], Optional[str]], Awaitable[None]]


class UnitOfWork:
    """
    One session plus one open transaction.

    Commits on a clean exit; rolls back on any exception, including
    CancelledError raised into the awaiting task by a timeout.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        statement_timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._statement_timeout = statement_timeout
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> AsyncSession:
        self.session = self._session_factory()
        try:
            await self.session.begin()
            connection = await self.session.connection()
            if self._statement_timeout and connection.dialect.name == "postgresql":
                millis = int(self._statement_timeout * 1000)
                await self.session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        except BaseException:
            await self.session.close()
            raise
        return self.session

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                await self.session.commit()
            else:
                await self.session.rollback()
                logger.debug("Transaction rolled back (%s)", exc_type.__name__)
        finally:
            await self.session.close()


class RecipeStore:
    """
    CRUD for recipe rows, including the transaction-scoped image variants.

    A store instance holds no per-request state and is safe to share.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        transaction_timeout: Optional[float] = None,
        statement_timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.transaction_timeout = transaction_timeout or settings.db_transaction_timeout
        self.statement_timeout = statement_timeout or settings.db_statement_timeout

    # ── Create ────────────────────────────────────────────────────────────

    async def create_without_image(self, draft: RecipeDraft) -> Recipe:
        async def work() -> Recipe:
            async with self._unit_of_work() as session:
                recipe = self._new_recipe(draft)
                session.add(recipe)
            return recipe

        recipe = await self._run("create", work, self.statement_timeout)
        logger.info("Recipe created: id=%s, author=%s", recipe.id, recipe.author_id)
        return recipe

    async def create_with_images(
        self,
        draft: RecipeDraft,
        on_recipe_created: ImageCallback,
    ) -> Recipe:
        """
        Insert the row, run `on_recipe_created(recipe_id)` inside the same
        transaction, store the returned URLs, commit.

        Any exception from the callback rolls the insert back and propagates
        unchanged.
        """

        async def work() -> Recipe:
            async with self._unit_of_work() as session:
                recipe = self._new_recipe(draft)
                session.add(recipe)
                await session.flush()

                urls = await on_recipe_created(recipe.id)
                recipe.thumbnail_image_url = urls.thumbnail_url
                recipe.large_image_url = urls.large_url
            return recipe

        recipe = await self._run("create_with_images", work, self.transaction_timeout)
        logger.info("Recipe created with images: id=%s, author=%s", recipe.id, recipe.author_id)
        return recipe

    # ── Update ────────────────────────────────────────────────────────────

    async def update_without_image(
        self,
        recipe_id: uuid.UUID,
        author_id: uuid.UUID,
        changes: Dict[str, Any],
    ) -> Recipe:
        """
        Apply `changes` (storage column → value) to the author's recipe.

        Raises:
            NotFoundError: no recipe with this id belongs to `author_id`
        """
        _check_columns(changes)

        async def work() -> Recipe:
            async with self._unit_of_work() as session:
                recipe = await self._lock_owned(session, recipe_id, author_id)
                _apply(recipe, changes)
                recipe.updated_at = utc_now()
            return recipe

        recipe = await self._run("update", work, self.statement_timeout)
        logger.info("Recipe updated: id=%s, columns=%s", recipe_id, sorted(changes))
        return recipe

    async def update_with_images(
        self,
        recipe_id: uuid.UUID,
        author_id: uuid.UUID,
        changes: Dict[str, Any],
        on_updated: ImageCallback,
    ) -> Recipe:
        """
        Apply `changes`, run `on_updated(recipe_id)` inside the transaction,
        store the returned URLs, commit. A callback failure rolls back the
        scalar changes too.

        The ownership check happens before the callback runs, so a non-owner
        never triggers an image upload.
        """
        _check_columns(changes)

        async def work() -> Recipe:
            async with self._unit_of_work() as session:
                recipe = await self._lock_owned(session, recipe_id, author_id)
                _apply(recipe, changes)

                urls = await on_updated(recipe.id)
                recipe.thumbnail_image_url = urls.thumbnail_url
                recipe.large_image_url = urls.large_url
                recipe.updated_at = utc_now()
            return recipe

        recipe = await self._run("update_with_images", work, self.transaction_timeout)
        logger.info("Recipe updated with images: id=%s, columns=%s", recipe_id, sorted(changes))
        return recipe

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete(
        self,
        recipe_id: uuid.UUID,
        author_id: uuid.UUID,
        on_deleted: Optional[CleanupCallback] = None,
    ) -> None:
        """
        Delete the author's recipe, commit, then call
        `on_deleted(old_thumbnail_url, old_large_url)`.

        The callback runs after commit: its failure is logged and never
        undoes the deletion.
        """

        async def work() -> Tuple[Optional[str], Optional[str]]:
            async with self._unit_of_work() as session:
                recipe = await self._lock_owned(session, recipe_id, author_id)
                urls = (recipe.thumbnail_image_url, recipe.large_image_url)
                await session.delete(recipe)
            return urls

        thumbnail_url, large_url = await self._run("delete", work, self.statement_timeout)
        logger.info("Recipe deleted: id=%s, author=%s", recipe_id, author_id)

        if on_deleted is None:
            return
        try:
            await on_deleted(thumbnail_url, large_url)
        except Exception as e:
            # Row is gone; leftover blobs are reconciled out of band
            logger.warning(
                "Post-delete cleanup failed for recipe %s: %s (thumbnail=%s, large=%s)",
                recipe_id,
                e,
                thumbnail_url,
                large_url,
            )

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(self, recipe_id: uuid.UUID) -> Optional[Recipe]:
        """Return the recipe with its author loaded, or None."""

        async def work() -> Optional[Recipe]:
            async with self.session_factory() as session:
                stmt = select(Recipe).options(joinedload(Recipe.author)).where(Recipe.id == recipe_id)
                return await session.scalar(stmt)

        return await self._run("get", work, self.statement_timeout)

    async def list_published(self, offset: int, limit: int) -> Tuple[List[Recipe], int]:
        """Published recipes, newest first, plus the total published count."""

        async def work() -> Tuple[List[Recipe], int]:
            async with self.session_factory() as session:
                published = Recipe.is_published.is_(True)
                total = await session.scalar(
                    select(func.count()).select_from(Recipe).where(published)
                )
                stmt = (
                    select(Recipe)
                    .options(joinedload(Recipe.author))
                    .where(published)
                    .order_by(Recipe.created_at.desc(), Recipe.id)
                    .offset(offset)
                    .limit(limit)
                )
                rows = (await session.scalars(stmt)).all()
                return list(rows), total or 0

        return await self._run("list_published", work, self.statement_timeout)

    async def list_by_author(
        self,
        author_id: uuid.UUID,
        offset: int,
        limit: int,
    ) -> Tuple[List[Recipe], int, int]:
        """The author's recipes (drafts included), the total, and the draft count."""

        async def work() -> Tuple[List[Recipe], int, int]:
            async with self.session_factory() as session:
                owned = Recipe.author_id == author_id
                total = await session.scalar(select(func.count()).select_from(Recipe).where(owned))
                drafts = await session.scalar(
                    select(func.count())
                    .select_from(Recipe)
                    .where(owned, Recipe.is_published.is_(False))
                )
                stmt = (
                    select(Recipe)
                    .options(joinedload(Recipe.author))
                    .where(owned)
                    .order_by(Recipe.created_at.desc(), Recipe.id)
                    .offset(offset)
                    .limit(limit)
                )
                rows = (await session.scalars(stmt)).all()
                return list(rows), total or 0, drafts or 0

        return await self._run("list_by_author", work, self.statement_timeout)

    # ── Internals ─────────────────────────────────────────────────────────

    def _unit_of_work(self) -> UnitOfWork:
        return UnitOfWork(self.session_factory, self.statement_timeout)

    @staticmethod
    def _new_recipe(draft: RecipeDraft) -> Recipe:
        now = utc_now()
        return Recipe(
            id=uuid.uuid4(),
            author_id=draft.author_id,
            created_at=now,
            updated_at=now,
            **draft.fields.model_dump(),
        )

    @staticmethod
    async def _lock_owned(
        session: AsyncSession,
        recipe_id: uuid.UUID,
        author_id: uuid.UUID,
    ) -> Recipe:
        stmt = (
            select(Recipe)
            .where(Recipe.id == recipe_id, Recipe.author_id == author_id)
            .with_for_update()
        )
        recipe = await session.scalar(stmt)
        if recipe is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))
        return recipe

    async def _run(
        self,
        operation: str,
        work: Callable[[], Awaitable[T]],
        timeout: float,
    ) -> T:
        """
        Await `work()` under `timeout`, translating storage failures.

        SQLAlchemy errors become DatabaseError. Domain errors (NotFoundError,
        anything raised by an image callback) pass through untouched.
        """
        try:
            return await asyncio.wait_for(work(), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error("Recipe store %s timed out after %.1fs", operation, timeout)
            raise DatabaseError(
                message="The operation took too long. Please try again later.",
                context={"operation": operation, "timeout": timeout},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Recipe store %s failed: %s", operation, e, exc_info=True)
            raise DatabaseError(
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e


def _check_columns(changes: Dict[str, Any]) -> None:
    unknown = set(changes) - WRITABLE_COLUMNS
    if unknown:
        raise ValueError(f"Not writable recipe columns: {sorted(unknown)}")


def _apply(recipe: Recipe, changes: Dict[str, Any]) -> None:
    for column, value in changes.items():
        setattr(recipe, column, value)
