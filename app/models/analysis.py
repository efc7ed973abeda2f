from sqlalchemy import Column, String, Float

from app.database import Base


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(String, primary_key=True)
    status = Column(String, nullable=False, default="pending")
    photo_ref = Column(String, nullable=False)
    zip_code = Column(String, nullable=True)
    location_name = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    zone_code = Column(String, nullable=True)
    zone_description = Column(String, nullable=True)
    result = Column(String, nullable=True)  # JSON-encoded AnalysisResult
    error = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
    expires_at = Column(String, nullable=False)
