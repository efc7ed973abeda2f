import json
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.config import settings
from app.dependencies import (
    get_analysis_store,
    get_dispatcher,
    get_photo_store,
    get_zone_lookup,
)
from app.models.analysis import Analysis
from app.schemas.analysis import AnalysisCreated, AnalysisResult, AnalysisStatusView
from app.schemas.submission import AnalysisCreate
from app.services.analysis_store import AnalysisStore
from app.services.dispatcher import AnalysisJob, TaskDispatcher
from app.services.photo_store import PhotoStore
from app.services.zone_lookup import ZoneLookup
from app.utils.exceptions import AppException
from app.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyses", tags=["analyses"])


@router.post("", status_code=202)
async def create_analysis(
    payload: AnalysisCreate,
    store: AnalysisStore = Depends(get_analysis_store),
    photos: PhotoStore = Depends(get_photo_store),
    zones: ZoneLookup = Depends(get_zone_lookup),
    dispatcher: TaskDispatcher = Depends(get_dispatcher),
):
    if not await photos.exists(payload.photo_ref):
        raise AppException("Photo not found, upload it first", status_code=400)

    location = payload.location
    zone = zones.resolve(location)
    if zone is None:
        raise HTTPException(status_code=404, detail="Location could not be resolved to a hardiness zone")

    record = await store.create(
        photo_ref=payload.photo_ref,
        zone_code=zone.zone_code,
        zone_description=zone.zone_description,
        zip_code=location.zip_code,
        location_name=location.location_name,
        latitude=location.latitude,
        longitude=location.longitude,
    )

    # Not awaited: the client polls GET /analyses/{id}
    dispatcher.dispatch(AnalysisJob(
        analysis_id=record.id,
        photo_ref=record.photo_ref,
        zone_code=record.zone_code,
        zone_description=record.zone_description,
    ))

    return success_response(data=AnalysisCreated(id=record.id, status=record.status).model_dump())


async def _fresh_photo_url(record: Analysis, photos: PhotoStore) -> str | None:
    try:
        return await photos.presign(record.photo_ref)
    except Exception:
        logger.warning("Could not presign photo for analysis %s, using stored URL", record.id, exc_info=True)
        return record.photo_url


def _load_result(record: Analysis) -> AnalysisResult:
    payload = json.loads(record.result)
    # records written under an older, looser cap may hold more
    payload["recommendations"] = payload.get("recommendations", [])[: settings.max_recommendations]
    return AnalysisResult.model_validate(payload)


@router.get("/{analysis_id}")
async def get_analysis(
    analysis_id: str,
    store: AnalysisStore = Depends(get_analysis_store),
    photos: PhotoStore = Depends(get_photo_store),
):
    record = await store.get(analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")

    fields: dict = {"id": record.id, "status": record.status, "created_at": record.created_at}
    if record.status == "complete":
        fields.update(
            result=_load_result(record),
            photo_url=await _fresh_photo_url(record, photos),
            zone_code=record.zone_code,
            zone_description=record.zone_description,
            expires_at=record.expires_at,
        )
    elif record.status == "failed":
        fields["error"] = record.error

    view = AnalysisStatusView(**fields)
    return success_response(data=view.model_dump(exclude_unset=True))
