from typing import Literal

from pydantic import BaseModel, Field

SunExposure = Literal["full_sun", "partial_shade", "full_shade"]
Confidence = Literal["high", "medium", "low"]
YardSize = Literal["small", "medium", "large"]
SoilType = Literal["clay", "sandy", "loamy", "silty", "rocky", "unknown"]
FeatureType = Literal[
    "tree", "shrub", "flower", "grass", "patio", "walkway", "fence", "wall",
    "deck", "water_feature", "slope", "flat_area", "garden_bed", "other",
]
PlantType = Literal["tree", "shrub", "perennial", "annual", "grass", "vine", "groundcover", "bulb"]
RecommendationCategory = Literal["quick_win", "foundation_plant", "seasonal_color", "problem_solver"]
AnalysisStatus = Literal["pending", "analyzing", "matching", "complete", "failed"]


class AiFeature(BaseModel):
    type: FeatureType
    label: str = Field(min_length=1, max_length=100)
    species: str | None = Field(default=None, max_length=100)
    confidence: Confidence | None = None
    sun_exposure: SunExposure | None = None
    notes: str | None = Field(default=None, max_length=500)


class SearchCriteria(BaseModel):
    type: str = Field(min_length=1, max_length=50)
    light: str = Field(min_length=1, max_length=50)
    tags: list[str] = Field(default_factory=list, max_length=10)


class PlantArchetype(BaseModel):
    """A plant *type* suggested by the model, not yet resolved to a catalog entry."""

    category: RecommendationCategory
    plant_type: PlantType
    light_requirement: SunExposure
    reason: str = Field(min_length=1, max_length=500)
    search_criteria: SearchCriteria


class AiOutput(BaseModel):
    summary: str = Field(default="", max_length=2000)
    yard_size: YardSize = "medium"
    overall_sun_exposure: SunExposure = "partial_shade"
    estimated_soil_type: SoilType = "unknown"
    features: list[AiFeature] = Field(default_factory=list)
    recommended_plant_types: list[PlantArchetype] = Field(default_factory=list)
    is_valid_subject_photo: bool
    invalid_reason: str | None = Field(default=None, max_length=500)


class IdentifiedFeature(AiFeature):
    id: str


class ZoneRange(BaseModel):
    min: str
    max: str


class SizeRange(BaseModel):
    min: float
    max: float


class MatureSize(BaseModel):
    height_ft: SizeRange
    width_ft: SizeRange


class PlantRecommendation(BaseModel):
    plant_id: str
    common_name: str
    scientific_name: str
    photo_url: str | None = None
    reason: str
    category: RecommendationCategory
    light: SunExposure
    water_needs: str
    hardiness_zones: ZoneRange
    mature_size: MatureSize
    bloom_season: str | None = None
    cost_range: str
    difficulty: str


class AnalysisResult(BaseModel):
    summary: str
    yard_size: YardSize
    overall_sun_exposure: SunExposure
    estimated_soil_type: SoilType
    features: list[IdentifiedFeature] = Field(default_factory=list)
    recommendations: list[PlantRecommendation] = Field(default_factory=list, max_length=10)


class AnalysisCreated(BaseModel):
    id: str
    status: AnalysisStatus


class AnalysisStatusView(BaseModel):
    id: str
    status: AnalysisStatus
    created_at: str
    zone_code: str | None = None
    zone_description: str | None = None
    photo_url: str | None = None
    result: AnalysisResult | None = None
    error: str | None = None
    expires_at: str | None = None
