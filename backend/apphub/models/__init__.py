"""
AppHub Backend — ORM Models
============================

Importing this package registers every table with `Base.metadata`
(Alembic autogenerate and the test suite's `create_all` rely on it).
"""

from apphub.models.user import User, UserRole
from apphub.models.app import App, AppStatus
from apphub.models.bookmark import Bookmark, BookmarkFolder
from apphub.models.rating import Rating, RatingType
from apphub.models.developer_request import DeveloperRequest, DeveloperRequestStatus

__all__ = [
    "App",
    "AppStatus",
    "Bookmark",
    "BookmarkFolder",
    "DeveloperRequest",
    "DeveloperRequestStatus",
    "Rating",
    "RatingType",
    "User",
    "UserRole",
]
