from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from app.dependencies import get_photo_store
from app.schemas.submission import PhotoUploaded
from app.services.photo_processing import PhotoValidationError, validate_photo
from app.services.photo_store import LocalPhotoStore, is_valid_ref
from app.utils.exceptions import AppException
from app.utils.response import success_response

router = APIRouter(prefix="/photos", tags=["photos"])

# Signed-URL downloads; the signature is the credential, so no API key
public_router = APIRouter(prefix="/photos", tags=["photos"])

_MEDIA_TYPES = {"jpg": "image/jpeg", "png": "image/png", "heic": "image/heic"}


@router.post("", status_code=201)
async def upload_photo(
    file: UploadFile = File(...),
    photos: LocalPhotoStore = Depends(get_photo_store),
):
    content = await file.read()
    try:
        photo_type = validate_photo(content)
    except PhotoValidationError as e:
        raise AppException(str(e), status_code=400)

    ref = await photos.put(content, photo_type.extension)
    return success_response(data=PhotoUploaded(photo_ref=ref, media_type=photo_type.media_type).model_dump())


@public_router.get("/{ref}")
async def download_photo(
    ref: str,
    expires: int,
    signature: str,
    photos: LocalPhotoStore = Depends(get_photo_store),
):
    if not is_valid_ref(ref):
        raise HTTPException(status_code=404, detail="Photo not found")
    if not photos.verify(ref, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired photo link")
    if not await photos.exists(ref):
        raise HTTPException(status_code=404, detail="Photo not found")

    extension = ref.rsplit(".", 1)[-1]
    return FileResponse(photos.local_path(ref), media_type=_MEDIA_TYPES[extension])
