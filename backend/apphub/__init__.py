"""
AppHub Backend — Application Package Initializer
=================================================

What: The engagement and workflow engine of the AppHub marketplace.
Who:  Imported by uvicorn (`apphub.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← actor extraction, HTTP status codes
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← toggles, state machines, transactions
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Every rule about bookmarks, ratings, developer requests and app status
    lives in the services layer. Routes only translate HTTP into service calls.
"""

__version__ = "1.0.0"
