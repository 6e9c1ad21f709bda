# Schemas package init
"""
AppHub Backend — API Schemas
=============================

What:  Pydantic request/response models, kept apart from the ORM models so
       the HTTP contract can change without touching the tables.

Modules:
    - common.py:      ErrorResponse, HealthResponse
    - engagement.py:  bookmarks, bookmark folders, ratings
    - workflow.py:    developer requests, app status changes
"""
