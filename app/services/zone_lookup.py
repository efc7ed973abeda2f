"""Resolve a submitted location to a hardiness zone."""
import json
import logging
from typing import Protocol

from pydantic import BaseModel

from app.schemas.submission import LocationInput
from app.services.zones import describe_zone, is_valid_zone

logger = logging.getLogger(__name__)


class ResolvedZone(BaseModel):
    model_config = {"frozen": True}

    zone_code: str | None
    zone_description: str


class ZoneLookup(Protocol):
    def resolve(self, location: LocationInput) -> ResolvedZone | None: ...


def format_coordinates(latitude: float, longitude: float) -> str:
    lat = f"{abs(latitude)}°{'N' if latitude >= 0 else 'S'}"
    lng = f"{abs(longitude)}°{'E' if longitude >= 0 else 'W'}"
    return f"{lat}, {lng}"


class ZipZoneLookup:
    """ZIP → zone from a static JSON table (``{"28202": "7b", ...}``).

    There is no coordinate table, so a coordinates + name location resolves
    without a zone code; the place name is still passed on as the climate
    description for the vision prompt.
    """

    def __init__(self, path: str):
        self._path = path
        self._table: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._table is None:
            with open(self._path, encoding="utf-8") as f:
                self._table = json.load(f)
            logger.info("Loaded %d ZIP zone entries from %s", len(self._table), self._path)
        return self._table

    def resolve(self, location: LocationInput) -> ResolvedZone | None:
        if location.zip_code is not None:
            zone = self._load().get(location.zip_code[:5])
            if zone is None:
                return None
            if not is_valid_zone(zone):
                logger.warning("ZIP %s maps to invalid zone %r", location.zip_code, zone)
                return None
            return ResolvedZone(zone_code=zone, zone_description=describe_zone(zone))

        return ResolvedZone(
            zone_code=None,
            zone_description=(
                f"{location.location_name} "
                f"({format_coordinates(location.latitude, location.longitude)})"
            ),
        )
