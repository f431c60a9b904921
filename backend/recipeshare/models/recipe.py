"""
RecipeShare Backend - Recipe SQLAlchemy Model
===============================================

What:  ORM model representing the `recipes` table.
Why:   Maps Python objects to database rows for type-safe database operations.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used by RecipeStore for all reads and writes.

Table Design:
    - UUID primary key generated by the application at insert time
    - ingredients / instructions: ordered JSON arrays of strings
    - thumbnail_image_url / large_image_url: public object-store URLs,
      both NULL or both set (enforced by ck_recipes_image_pair)
    - author_id: immutable owner reference to users.id
    - created_at / updated_at: UTC; updated_at advances on every update

Indexes:
    idx_recipes_published_created  → public listing (is_published, newest first)
    idx_recipes_author_created     → "my recipes" listing
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recipeshare.database import Base
from recipeshare.models.user import User


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonList = JSON().with_variant(JSONB(), "postgresql")


class Recipe(Base):
    """
    One dish submission.

    Lifecycle:
        1. Inserted with NULL image URLs (inside the create transaction)
        2. Image URLs filled in by the same transaction once both derivatives
           are uploaded, or the insert is rolled back
        3. Scalar fields and/or image URLs updated by the owning author
        4. Deleted by the owning author; image blobs removed afterwards
    """

    __tablename__ = "recipes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    ingredients: Mapped[List[str]] = mapped_column(JsonList, nullable=False, default=list)
    instructions: Mapped[List[str]] = mapped_column(JsonList, nullable=False, default=list)

    prep_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cooking_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    serving_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    is_published: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    # ── Image URLs ────────────────────────────────────────────────────────
    # Format: https://{bucket}.s3.{region}.amazonaws.com/{author_id}/{recipe_id}/thumbnail.jpg
    thumbnail_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    large_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # ── Ownership ─────────────────────────────────────────────────────────
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    author: Mapped[User] = relationship(lazy="raise")

    __table_args__ = (
        CheckConstraint(
            "(thumbnail_image_url IS NULL) = (large_image_url IS NULL)",
            name="ck_recipes_image_pair",
        ),
        CheckConstraint("serving_size >= 1", name="ck_recipes_serving_size"),
        CheckConstraint(
            "prep_time_minutes >= 0 AND cooking_time_minutes >= 0",
            name="ck_recipes_times",
        ),
        CheckConstraint("updated_at >= created_at", name="ck_recipes_updated_after_created"),
        Index("idx_recipes_published_created", "is_published", created_at.desc()),
        Index("idx_recipes_author_created", "author_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Recipe(id={self.id}, title='{self.title}', "
            f"author_id={self.author_id}, published={self.is_published})>"
        )
