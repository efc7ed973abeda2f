from sqlalchemy import Column, Float, String, JSON

from app.database import Base


class Plant(Base):
    """Catalog entry. Owned by the catalog tooling; read-only to the analysis pipeline."""

    __tablename__ = "plants"

    id = Column(String, primary_key=True)
    common_name = Column(String, nullable=False)
    scientific_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    type = Column(String, nullable=False, index=True)
    light = Column(JSON, nullable=False, default=list)
    water_needs = Column(String, nullable=False)
    zone_min = Column(String, nullable=False)
    zone_max = Column(String, nullable=False)
    mature_height_ft_min = Column(Float, nullable=False)
    mature_height_ft_max = Column(Float, nullable=False)
    mature_width_ft_min = Column(Float, nullable=False)
    mature_width_ft_max = Column(Float, nullable=False)
    bloom_season = Column(String, nullable=True)
    cost_range = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
