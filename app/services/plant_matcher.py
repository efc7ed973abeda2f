"""Resolve AI-suggested plant archetypes to concrete catalog plants."""
import logging

from app.schemas.analysis import (
    MatureSize,
    PlantArchetype,
    PlantRecommendation,
    SizeRange,
    ZoneRange,
)
from app.schemas.plant import CatalogPlant
from app.services.catalog import PlantCatalog

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 10
PICKS_PER_ARCHETYPE = 2
FALLBACK_COUNT = 5
FALLBACK_REASON = "Popular plant for your hardiness zone"


def tag_score(archetype: PlantArchetype, plant: CatalogPlant) -> int:
    """Number of archetype tags found as a substring of any plant tag, case-insensitive."""
    plant_tags = [t.lower() for t in plant.tags]
    return sum(
        1 for tag in archetype.search_criteria.tags
        if any(tag.lower() in pt for pt in plant_tags)
    )


def to_recommendation(plant: CatalogPlant, reason: str, category: str, light: str) -> PlantRecommendation:
    return PlantRecommendation(
        plant_id=plant.id,
        common_name=plant.common_name,
        scientific_name=plant.scientific_name,
        photo_url=plant.photo_url,
        reason=reason,
        category=category,
        light=light,
        water_needs=plant.water_needs,
        hardiness_zones=ZoneRange(min=plant.zone_min, max=plant.zone_max),
        mature_size=MatureSize(
            height_ft=SizeRange(min=plant.mature_height_ft_min, max=plant.mature_height_ft_max),
            width_ft=SizeRange(min=plant.mature_width_ft_min, max=plant.mature_width_ft_max),
        ),
        bloom_season=plant.bloom_season,
        cost_range=plant.cost_range,
        difficulty=plant.difficulty,
    )


async def match_plants(
    archetypes: list[PlantArchetype],
    zone: str | None,
    catalog: PlantCatalog,
    limit: int = MAX_RECOMMENDATIONS,
) -> list[PlantRecommendation]:
    """Up to two catalog plants per archetype, never repeating a plant.

    When nothing matched and the zone is known, falls back to plants that
    grow in that zone. The cap is applied once, at the end.
    """
    recommendations: list[PlantRecommendation] = []
    used: set[str] = set()

    for archetype in archetypes:
        candidates = await catalog.find_by_type_and_light(
            archetype.search_criteria.type,
            archetype.search_criteria.light,
            zone,
        )
        # sorted() is stable: equal scores keep catalog order
        ranked = sorted(candidates, key=lambda p: tag_score(archetype, p), reverse=True)
        available = [p for p in ranked if p.id not in used]

        for plant in available[:PICKS_PER_ARCHETYPE]:
            used.add(plant.id)
            recommendations.append(
                to_recommendation(plant, archetype.reason, archetype.category, archetype.light_requirement)
            )

    if not recommendations and zone is not None:
        fallback = [p for p in await catalog.find_for_zone(zone) if p.id not in used]
        logger.info("No archetype matches for zone %s, using %d fallback plants", zone, min(len(fallback), FALLBACK_COUNT))
        for plant in fallback[:FALLBACK_COUNT]:
            used.add(plant.id)
            light = plant.light[0] if plant.light else "full_sun"
            recommendations.append(to_recommendation(plant, FALLBACK_REASON, "quick_win", light))

    return recommendations[:limit]
