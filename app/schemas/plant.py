from pydantic import BaseModel, Field

from app.schemas.analysis import PlantType, SunExposure


class CatalogPlant(BaseModel):
    id: str
    common_name: str
    scientific_name: str
    description: str | None = None
    photo_url: str | None = None
    type: PlantType
    light: list[SunExposure]
    water_needs: str
    zone_min: str
    zone_max: str
    mature_height_ft_min: float = Field(gt=0)
    mature_height_ft_max: float = Field(gt=0)
    mature_width_ft_min: float = Field(gt=0)
    mature_width_ft_max: float = Field(gt=0)
    bloom_season: str | None = None
    cost_range: str
    difficulty: str
    tags: list[str] = []

    model_config = {"from_attributes": True}
