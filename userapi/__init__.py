"""
User API Backend — Application Package Initializer
====================================================

What: Marks the `userapi` directory as a Python package.
Why:  Enables module imports like `from userapi.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Routes (API Layer, chains)     │  ← HTTP concerns, step ordering
    ├─────────────────────────────────────┤
    │  Middleware steps + Controllers     │  ← validation, auth, actions
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← user persistence rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (Connection Provider)    │  ← engine, sessions, query metrics
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
