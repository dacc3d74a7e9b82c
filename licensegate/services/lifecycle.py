"""
Restaurant Lifecycle Service.

Resolves the installation this terminal serves and reports or enforces its
live status. `status` is authoritative; nothing here reads a cached flag.
"""

from uuid import UUID

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.db.models import Restaurant
from licensegate.exceptions import (
    NotActivatedError,
    ResourceNotFoundError,
    RestaurantNotActiveError,
)
from licensegate.models.api import RestaurantStatus
from licensegate.models.domain import SystemStatus

logger = get_logger(__name__)


class LifecycleService:
    """Reads restaurant state for the gate, login and status endpoints."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _newest(self, *criteria: ColumnElement[bool]) -> Restaurant | None:
        stmt = (
            select(Restaurant)
            .where(*criteria)
            .order_by(Restaurant.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_current(self) -> Restaurant | None:
        """
        The in-scope restaurant.

        The newest restaurant that has completed setup wins, so activating a
        spare code never displaces a configured install. Only when none is
        configured does the newest restaurant of any kind stand in.
        """
        configured = await self._newest(Restaurant.admin_pin_hash.is_not(None))
        return configured or await self._newest()

    async def require_current(self) -> Restaurant:
        """Like get_current, but raise NotActivatedError when nothing is activated."""
        restaurant = await self.get_current()
        if restaurant is None:
            raise NotActivatedError()
        return restaurant

    async def get_by_id(self, restaurant_id: UUID) -> Restaurant | None:
        """Fresh read of a restaurant row (never served from the identity map)."""
        stmt = (
            select(Restaurant)
            .where(Restaurant.id == restaurant_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def require_active(self, restaurant_id: UUID) -> Restaurant:
        """
        Return the restaurant if it exists and is ACTIVE.

        Raises:
            ResourceNotFoundError: no such restaurant
            RestaurantNotActiveError: status is anything but ACTIVE
        """
        restaurant = await self.get_by_id(restaurant_id)
        if restaurant is None:
            raise ResourceNotFoundError("Restaurant", str(restaurant_id))
        ensure_active(restaurant)
        return restaurant

    async def system_status(self) -> SystemStatus:
        """Activation and setup state of this terminal."""
        restaurant = await self.get_current()
        if restaurant is None:
            return SystemStatus(
                activated=False, setup_complete=False, restaurant_id=None, status=None
            )
        return SystemStatus(
            activated=True,
            setup_complete=restaurant.setup_complete,
            restaurant_id=restaurant.id,
            status=RestaurantStatus(restaurant.status),
        )


def ensure_active(restaurant: Restaurant) -> None:
    """Raise RestaurantNotActiveError unless the restaurant is ACTIVE."""
    if not restaurant.is_active:
        logger.warning(
            "restaurant_not_active",
            restaurant_id=str(restaurant.id),
            status=restaurant.status,
        )
        raise RestaurantNotActiveError(restaurant.id, restaurant.status)
