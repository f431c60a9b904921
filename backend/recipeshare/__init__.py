"""
RecipeShare Backend - Application Package Initializer
=======================================================

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Pipeline, Queries)      │  ← Orchestration, validation
    ├─────────────────────────────────────┤
    │  Store / Object Store / Images      │  ← Postgres, S3, Pillow
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
