"""
AppHub Backend — Rating Toggle Service
=======================================

What:  Tri-state like/dislike per (user, app), plus the per-app counts.
Who:   POST /api/me/apps/{app_id}/rating, GET /api/apps/{app_id}/ratings,
       GET /api/me/liked-apps.

State Machine (per user, per app):
    absent  ──LIKE──▶ LIKE     ──LIKE──▶    absent
    absent  ──DISLIKE──▶ DISLIKE ──DISLIKE──▶ absent
    LIKE    ──DISLIKE──▶ DISLIKE   (updated in place)
    DISLIKE ──LIKE──▶    LIKE      (updated in place)

    The (owner_id, app_id) unique constraint keeps it at 0 or 1 row; a
    violation on create means an identical request won the race, and its row
    is returned.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apphub.database import unit_of_work, utc_now
from apphub.exceptions import AppHubError, DatabaseError, InvalidArgumentError, NotFoundError
from apphub.models.app import App, AppStatus
from apphub.models.rating import Rating, RatingType
from apphub.models.user import User
from apphub.services.pagination import (
    DEFAULT_PAGE_SIZE,
    Page,
    build_page,
    check_limit,
    parse_cursor,
)

logger = logging.getLogger(__name__)


@dataclass
class LikedApp:
    app: App
    liked_at: datetime
    like_count: int
    dislike_count: int


class RatingService:

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    async def toggle(
        self,
        db: AsyncSession,
        owner_id: UUID,
        app_id: UUID,
        rating_type: RatingType,
    ) -> Optional[Rating]:
        """
        Apply `rating_type` to the user's rating of `app_id`.

        Returns:
            The created or updated Rating, or None when the same type was
            sent again and the rating was removed.

        Raises:
            InvalidArgumentError: Unknown rating type
            NotFoundError:        User or app does not exist
        """
        try:
            rating_type = RatingType(rating_type)
        except ValueError:
            raise InvalidArgumentError(
                message=f"Unknown rating type '{rating_type}'",
                field="type",
            )

        try:
            try:
                async with unit_of_work(db):
                    if await db.get(User, owner_id) is None:
                        raise NotFoundError(resource="user", resource_id=owner_id)
                    if await db.get(App, app_id) is None:
                        raise NotFoundError(resource="app", resource_id=app_id)

                    existing = await self._find(db, owner_id, app_id)
                    now = self._clock()
                    if existing is None:
                        rating = Rating(
                            owner_id=owner_id,
                            app_id=app_id,
                            type=rating_type,
                            created_at=now,
                            updated_at=now,
                        )
                        db.add(rating)
                        await db.flush()
                        action = "created"
                    elif existing.type == rating_type:
                        await db.delete(existing)
                        rating = None
                        action = "removed"
                    else:
                        existing.type = rating_type
                        existing.updated_at = now
                        rating = existing
                        action = "changed"
            except IntegrityError:
                winner = await self._find(db, owner_id, app_id)
                if winner is None:
                    raise
                logger.info("Rating of app %s by %s was created concurrently; returning it", app_id, owner_id)
                return winner

            logger.info(
                "Rating %s: user=%s app=%s type=%s",
                action, owner_id, app_id, rating_type.value,
            )
            return rating

        except AppHubError:
            raise
        except Exception as e:
            logger.error(
                "Error toggling rating (user=%s app=%s): %s",
                owner_id, app_id, str(e),
                exc_info=True,
            )
            raise DatabaseError(
                message="Could not update the rating. Please try again.",
                context={"app_id": str(app_id)},
            )

    async def summarize(self, db: AsyncSession, app_id: UUID) -> Dict[str, int]:
        """
        Like/dislike counts for one app.

        Returns:
            {"like_count": int, "dislike_count": int}

        Raises:
            NotFoundError: App does not exist
        """
        try:
            if await db.get(App, app_id) is None:
                raise NotFoundError(resource="app", resource_id=app_id)

            rows = await db.execute(
                select(Rating.type, func.count(Rating.id))
                .where(Rating.app_id == app_id)
                .group_by(Rating.type)
            )
            counts = {rating_type: count for rating_type, count in rows.all()}
            return {
                "like_count": counts.get(RatingType.LIKE, 0),
                "dislike_count": counts.get(RatingType.DISLIKE, 0),
            }

        except AppHubError:
            raise
        except Exception as e:
            logger.error("Error counting ratings for app %s: %s", app_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load ratings. Please try again.",
                context={"app_id": str(app_id)},
            )

    async def list_liked_apps(
        self,
        db: AsyncSession,
        owner_id: UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> Page[LikedApp]:
        """
        One page of the published apps the user likes, most recently liked first.

        Each item carries the app's like/dislike counts. Apps that left
        PUBLISHED keep their rating but drop out of this list.

        Query plan:
            page:   ratings ⋈ apps WHERE owner_id = :owner AND type = LIKE
                    AND apps.status = PUBLISHED, ORDER BY ratings.updated_at DESC
            counts: one GROUP BY (app_id, type) over the apps on the page

        Raises:
            InvalidArgumentError: Bad limit or malformed cursor
        """
        limit = check_limit(limit)
        cursor_dt = parse_cursor(cursor)
        liked = (
            Rating.owner_id == owner_id,
            Rating.type == RatingType.LIKE,
            App.status == AppStatus.PUBLISHED,
        )
        try:
            query = select(App, Rating.updated_at).join(Rating, Rating.app_id == App.id).where(*liked)
            if cursor_dt is not None:
                query = query.where(Rating.updated_at < cursor_dt)
            query = query.order_by(Rating.updated_at.desc()).limit(limit + 1)
            rows = (await db.execute(query)).all()

            total_count = (
                await db.execute(
                    select(func.count(Rating.id)).join(App, Rating.app_id == App.id).where(*liked)
                )
            ).scalar_one()

            counts: Dict[UUID, Dict[RatingType, int]] = {}
            if rows:
                grouped = await db.execute(
                    select(Rating.app_id, Rating.type, func.count(Rating.id))
                    .where(Rating.app_id.in_([app.id for app, _ in rows]))
                    .group_by(Rating.app_id, Rating.type)
                )
                for app_id, rating_type, count in grouped.all():
                    counts.setdefault(app_id, {})[rating_type] = count

            items = [
                LikedApp(
                    app=app,
                    liked_at=liked_at,
                    like_count=counts.get(app.id, {}).get(RatingType.LIKE, 0),
                    dislike_count=counts.get(app.id, {}).get(RatingType.DISLIKE, 0),
                )
                for app, liked_at in rows
            ]
            return build_page(items, limit, total_count, lambda item: item.liked_at)

        except Exception as e:
            logger.error("Error listing liked apps of %s: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load liked apps. Please try again.",
                context={"owner_id": str(owner_id)},
            )

    async def _find(self, db: AsyncSession, owner_id: UUID, app_id: UUID) -> Optional[Rating]:
        result = await db.execute(
            select(Rating).where(Rating.owner_id == owner_id, Rating.app_id == app_id)
        )
        return result.scalar_one_or_none()


# ── Singleton Instance ────────────────────────────────────────────────────
rating_service = RatingService()
