"""Read-only queries against the plant catalog."""
import logging
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy import select

from app.database import async_session
from app.models.plant import Plant
from app.schemas.plant import CatalogPlant
from app.services.zones import InvalidZoneCode, is_in_range

logger = logging.getLogger(__name__)


class PlantCatalog(Protocol):
    async def find_by_type_and_light(
        self, plant_type: str, light: str, zone: str | None
    ) -> list[CatalogPlant]: ...

    async def find_for_zone(self, zone: str) -> list[CatalogPlant]: ...


def grows_in_zone(plant: CatalogPlant, zone: str) -> bool:
    try:
        return is_in_range(zone, plant.zone_min, plant.zone_max)
    except InvalidZoneCode as e:
        logger.warning("Skipping plant %s with bad hardiness range: %s", plant.id, e)
        return False


class SqlPlantCatalog:
    def __init__(self, session_factory=async_session):
        self._session_factory = session_factory

    async def _query(self, stmt) -> list[CatalogPlant]:
        async with self._session_factory() as db:
            result = await db.execute(stmt.order_by(Plant.common_name, Plant.id))
            rows = result.scalars().all()

        plants = []
        for row in rows:
            try:
                plants.append(CatalogPlant.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping malformed catalog plant %s (%d validation errors)", row.id, e.error_count())
        return plants

    async def find_by_type_and_light(
        self, plant_type: str, light: str, zone: str | None
    ) -> list[CatalogPlant]:
        plants = await self._query(select(Plant).where(Plant.type == plant_type))
        return [
            p for p in plants
            if light in p.light and (zone is None or grows_in_zone(p, zone))
        ]

    async def find_for_zone(self, zone: str) -> list[CatalogPlant]:
        plants = await self._query(select(Plant))
        return [p for p in plants if grows_in_zone(p, zone)]
