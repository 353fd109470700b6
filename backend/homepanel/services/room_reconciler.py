"""
Self-healing room reconciler.

Device.location names a room by string. Any path that sets a location
without creating the matching Room leaves the two out of step; the
reconciler synthesizes the missing Room rows. It is idempotent: the
(house_name, name) unique constraint plus get-or-create means repeated
runs, including concurrent ones, never duplicate a room.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.models.device import UNKNOWN_LOCATION, Device
from homepanel.models.room import Room

logger = logging.getLogger(__name__)


def find_missing_rooms(
    room_names: Iterable[str],
    device_locations: Iterable[Optional[str]],
) -> List[str]:
    """Distinct device locations that have no room, sorted by name."""
    existing = set(room_names)
    missing = {
        location
        for location in device_locations
        if location and location != UNKNOWN_LOCATION and location not in existing
    }
    return sorted(missing)


async def get_or_create_room(
    db: AsyncSession,
    house_name: str,
    name: str,
    created_by: Optional[str],
) -> Tuple[Room, bool]:
    """Return the (house_name, name) room, inserting it if absent."""
    existing = await _find_room(db, house_name, name)
    if existing is not None:
        return existing, False

    room = Room(house_name=house_name, name=name, created_by=created_by)
    db.add(room)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a creation race; the winner's row is the answer
        await db.rollback()
        existing = await _find_room(db, house_name, name)
        if existing is None:
            raise
        return existing, False
    return room, True


async def reconcile_rooms(
    db: AsyncSession,
    house_name: str,
    created_by: Optional[str],
) -> List[str]:
    """Create rooms for orphan device locations. Returns the names created."""
    room_names = await db.execute(select(Room.name).where(Room.house_name == house_name))
    locations = await db.execute(
        select(Device.location).where(Device.house_name == house_name).distinct()
    )
    missing = find_missing_rooms(room_names.scalars().all(), locations.scalars().all())
    if not missing:
        return []

    logger.info(f"Self-healing: creating {len(missing)} missing rooms in {house_name}: {missing}")
    created = []
    for name in missing:
        _, was_created = await get_or_create_room(db, house_name, name, created_by)
        if was_created:
            created.append(name)
    return created


async def _find_room(db: AsyncSession, house_name: str, name: str) -> Optional[Room]:
    result = await db.execute(
        select(Room).where(Room.house_name == house_name, Room.name == name)
    )
    return result.scalar_one_or_none()
