from urllib.parse import parse_qs, urlparse

import pytest

from app.services.photo_store import LocalPhotoStore, PhotoNotFound


@pytest.fixture
def store(tmp_path):
    return LocalPhotoStore(str(tmp_path), "test-secret", "http://photos.test/", expiry_seconds=900)


@pytest.mark.asyncio
async def test_put_then_get(store):
    ref = await store.put(b"\xff\xd8\xff" + b"\x00" * 20, "jpg")
    assert ref.endswith(".jpg")
    assert await store.exists(ref)
    assert await store.get(ref) == b"\xff\xd8\xff" + b"\x00" * 20


@pytest.mark.asyncio
async def test_get_missing_raises(store):
    with pytest.raises(PhotoNotFound):
        await store.get("0" * 32 + ".jpg")


@pytest.mark.asyncio
async def test_refs_cannot_escape_root(store):
    assert not await store.exists("../etc/passwd")
    with pytest.raises(PhotoNotFound):
        await store.get("../etc/passwd")


@pytest.mark.asyncio
async def test_presigned_url_verifies(store):
    ref = await store.put(b"data", "png")
    url = await store.presign(ref, now=1_000_000)

    parsed = urlparse(url)
    assert parsed.netloc == "photos.test"
    assert parsed.path == f"/photos/{ref}"
    query = parse_qs(parsed.query)
    expires = int(query["expires"][0])
    assert expires == 1_000_900
    assert store.verify(ref, expires, query["signature"][0], now=1_000_000)


@pytest.mark.asyncio
async def test_presigned_url_expires_and_is_ref_bound(store):
    ref = await store.put(b"data", "png")
    other = await store.put(b"other", "png")
    query = parse_qs(urlparse(await store.presign(ref, now=1_000_000)).query)
    expires, signature = int(query["expires"][0]), query["signature"][0]

    assert not store.verify(ref, expires, signature, now=1_000_901)
    assert not store.verify(other, expires, signature, now=1_000_000)
    assert not store.verify(ref, expires + 60, signature, now=1_000_000)
