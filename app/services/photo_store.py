"""Photo object storage with time-limited signed read URLs."""
import hashlib
import hmac
import logging
import os
import re
import time
import uuid
from typing import Protocol
from urllib.parse import urlencode

from app.config import settings

logger = logging.getLogger(__name__)

_REF_PATTERN = re.compile(r"^[0-9a-f]{32}\.(jpg|png|heic)$")


class PhotoNotFound(Exception):
    pass


class PhotoStore(Protocol):
    async def put(self, data: bytes, extension: str) -> str: ...

    async def get(self, ref: str) -> bytes: ...

    async def exists(self, ref: str) -> bool: ...

    async def presign(self, ref: str) -> str: ...


def is_valid_ref(ref: str) -> bool:
    return bool(_REF_PATTERN.fullmatch(ref))


class LocalPhotoStore:
    """Stores photos under ``<data_dir>/photos`` and signs URLs with HMAC-SHA256.

    Photos are written once and never modified, so no locking is needed.
    """

    def __init__(
        self,
        root: str,
        signing_secret: str,
        base_url: str,
        expiry_seconds: int = 900,
    ):
        self._root = root
        self._secret = signing_secret.encode()
        self._base_url = base_url.rstrip("/")
        self._expiry_seconds = expiry_seconds

    def _path(self, ref: str) -> str:
        if not is_valid_ref(ref):
            raise PhotoNotFound(ref)
        return os.path.join(self._root, ref)

    async def put(self, data: bytes, extension: str) -> str:
        os.makedirs(self._root, exist_ok=True)
        ref = f"{uuid.uuid4().hex}.{extension}"
        with open(self._path(ref), "wb") as f:
            f.write(data)
        logger.info("Stored photo %s (%d bytes)", ref, len(data))
        return ref

    async def get(self, ref: str) -> bytes:
        path = self._path(ref)
        if not os.path.exists(path):
            raise PhotoNotFound(ref)
        with open(path, "rb") as f:
            return f.read()

    async def exists(self, ref: str) -> bool:
        return is_valid_ref(ref) and os.path.exists(self._path(ref))

    def sign(self, ref: str, expires: int) -> str:
        message = f"{ref}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def presign(self, ref: str, now: float | None = None) -> str:
        if not is_valid_ref(ref):
            raise PhotoNotFound(ref)
        issued = time.time() if now is None else now
        expires = int(issued) + self._expiry_seconds
        query = urlencode({"expires": expires, "signature": self.sign(ref, expires)})
        return f"{self._base_url}/photos/{ref}?{query}"

    def verify(self, ref: str, expires: int, signature: str, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        if expires < current:
            return False
        return hmac.compare_digest(self.sign(ref, expires), signature)

    def local_path(self, ref: str) -> str:
        return self._path(ref)


def build_photo_store() -> LocalPhotoStore:
    return LocalPhotoStore(
        root=os.path.join(settings.data_dir, "photos"),
        signing_secret=settings.url_signing_secret,
        base_url=settings.public_base_url,
        expiry_seconds=settings.presign_expiry_seconds,
    )
