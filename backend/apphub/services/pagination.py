"""
AppHub Backend — Cursor Pagination Helpers
===========================================

What:  Shared pieces of the cursor-based list endpoints.
How:   The cursor is the ISO timestamp of the last item on the previous page.
       Services fetch `limit + 1` rows; the extra row only tells whether
       another page exists.

Example:
    Page 1: GET /api/me/bookmark-folders/{id}/bookmarks?limit=20
    Page 2: GET /api/me/bookmark-folders/{id}/bookmarks?limit=20&cursor=2026-01-15T12:00:00
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generic, List, Optional, TypeVar

from apphub.exceptions import InvalidArgumentError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class Page(Generic[T]):
    items: List[T]
    total_count: int
    next_cursor: Optional[str]
    has_more: bool


def parse_cursor(cursor: Optional[str]) -> Optional[datetime]:
    """ISO timestamp → datetime. A malformed cursor is a client error."""
    if not cursor:
        return None
    try:
        return datetime.fromisoformat(cursor)
    except ValueError:
        raise InvalidArgumentError(message="Malformed pagination cursor", field="cursor")


def check_limit(limit: int) -> int:
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidArgumentError(
            message=f"limit must be between 1 and {MAX_PAGE_SIZE}",
            field="limit",
        )
    return limit


def build_page(
    rows: List[T],
    limit: int,
    total_count: int,
    cursor_of: Callable[[T], datetime],
) -> Page[T]:
    """Trim the look-ahead row and derive the next cursor from the last item."""
    has_more = len(rows) > limit
    if has_more:
        rows = rows[:limit]
    next_cursor = cursor_of(rows[-1]).isoformat() if has_more and rows else None
    return Page(items=rows, total_count=total_count, next_cursor=next_cursor, has_more=has_more)
