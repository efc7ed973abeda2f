from functools import lru_cache

from fastapi import Header, HTTPException

from app.config import settings
from app.services.analysis_store import AnalysisStore
from app.services.dispatcher import AsyncioTaskDispatcher, TaskDispatcher
from app.services.photo_store import LocalPhotoStore, build_photo_store
from app.services.pipeline import AnalysisPipeline, build_pipeline
from app.services.zone_lookup import ZipZoneLookup, ZoneLookup


async def verify_api_key(x_api_key: str = Header(default="")) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


# Process-wide singletons; override with app.dependency_overrides in tests.

@lru_cache
def get_photo_store() -> LocalPhotoStore:
    return build_photo_store()


@lru_cache
def get_zone_lookup() -> ZoneLookup:
    return ZipZoneLookup(settings.zip_zones_path)


@lru_cache
def get_analysis_store() -> AnalysisStore:
    return AnalysisStore()


@lru_cache
def get_pipeline() -> AnalysisPipeline:
    return build_pipeline()


@lru_cache
def get_dispatcher() -> TaskDispatcher:
    return AsyncioTaskDispatcher(get_pipeline().run)
