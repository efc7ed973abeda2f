import re

from pydantic import BaseModel, Field, model_validator

ZIP_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


class LocationInput(BaseModel):
    """Either a ZIP code, or coordinates plus a place name. Never a mix."""

    zip_code: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    location_name: str | None = Field(default=None, min_length=1, max_length=200)

    @model_validator(mode="after")
    def _check_complete(self):
        coords = [self.latitude, self.longitude, self.location_name]
        has_coords = any(v is not None for v in coords)
        if has_coords and any(v is None for v in coords):
            raise ValueError("latitude, longitude and location_name must be provided together")
        if self.zip_code is not None and has_coords:
            raise ValueError("provide either zip_code or coordinates, not both")
        if self.zip_code is None and not has_coords:
            raise ValueError("zip_code or coordinates are required")
        if self.zip_code is not None and not ZIP_CODE_PATTERN.fullmatch(self.zip_code):
            raise ValueError("zip_code must be a valid US ZIP code (e.g. 28202 or 28202-1234)")
        return self


class AnalysisCreate(BaseModel):
    photo_ref: str = Field(min_length=1, max_length=255)
    location: LocationInput


class PhotoUploaded(BaseModel):
    photo_ref: str
    media_type: str
