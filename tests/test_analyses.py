import json
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from app.database import async_session
from app.dependencies import get_dispatcher, get_photo_store
from app.main import app
from app.models.analysis import Analysis
from app.schemas.analysis import AnalysisResult
from app.services.analysis_store import AnalysisStore
from app.services.photo_store import LocalPhotoStore


class RecordingDispatcher:
    def __init__(self):
        self.jobs = []

    def dispatch(self, job):
        self.jobs.append(job)


class BrokenPresignStore(LocalPhotoStore):
    async def presign(self, ref, now=None):
        raise RuntimeError("signing key unavailable")


RESULT = AnalysisResult(
    summary="A sunny front yard.", yard_size="small",
    overall_sun_exposure="full_sun", estimated_soil_type="loamy",
)


def _recommendation(i):
    return {
        "plant_id": f"plant-{i}", "common_name": f"Plant {i}", "scientific_name": "Plantus",
        "reason": "Looks nice", "category": "quick_win", "light": "full_sun",
        "water_needs": "low", "hardiness_zones": {"min": "3a", "max": "9b"},
        "mature_size": {"height_ft": {"min": 1, "max": 3}, "width_ft": {"min": 1, "max": 2}},
        "cost_range": "low", "difficulty": "beginner",
    }


@pytest.fixture
def photo_store(tmp_path):
    return LocalPhotoStore(str(tmp_path), "test-secret", "http://test")


@pytest_asyncio.fixture
async def client(photo_store):
    dispatcher = RecordingDispatcher()
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_photo_store] = lambda: photo_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        c.dispatcher = dispatcher
        yield c
    app.dependency_overrides.clear()


async def _complete_record(photo_ref, result_json=None):
    store = AnalysisStore()
    record = await store.create(photo_ref=photo_ref, zone_code="7b", zone_description="Zone 7b", zip_code="28202")
    await store.transition(record.id, "pending", "analyzing")
    await store.transition(record.id, "analyzing", "complete", result=RESULT, photo_url="http://stale/url")
    if result_json is not None:
        async with async_session() as db:
            await db.execute(update(Analysis).where(Analysis.id == record.id).values(result=result_json))
            await db.commit()
    return record


@pytest.mark.asyncio
async def test_submit_with_zip_creates_pending_record(client, photo_store):
    ref = await photo_store.put(b"\xff\xd8\xff\xe0" + b"\x00" * 100, "jpg")

    response = await client.post("/api/v1/analyses", json={"photo_ref": ref, "location": {"zip_code": "28202"}})

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["status"] == "pending"
    analysis_id = body["data"]["id"]

    [job] = client.dispatcher.jobs
    assert job.analysis_id == analysis_id
    assert job.zone_code == "7b"
    assert job.photo_ref == ref

    record = await AnalysisStore().get(analysis_id)
    assert record.zone_code == "7b"

    response = await client.get(f"/api/v1/analyses/{analysis_id}")
    assert response.status_code == 200
    assert response.json()["data"] == {
        "id": analysis_id,
        "status": "pending",
        "created_at": record.created_at,
    }


@pytest.mark.asyncio
async def test_submit_with_coordinates(client, photo_store):
    ref = await photo_store.put(b"\x89PNG\r\n\x1a\n" + b"\x00" * 100, "png")

    response = await client.post("/api/v1/analyses", json={
        "photo_ref": ref,
        "location": {"latitude": 35.2271, "longitude": -80.8431, "location_name": "Charlotte, NC"},
    })

    assert response.status_code == 202
    [job] = client.dispatcher.jobs
    assert job.zone_code is None
    assert job.zone_description.startswith("Charlotte, NC")


@pytest.mark.parametrize("payload", [
    {"location": {"zip_code": "28202"}},
    {"photo_ref": "x.jpg"},
    {"photo_ref": "x.jpg", "location": {}},
    {"photo_ref": "x.jpg", "location": {"latitude": 35.2, "location_name": "Charlotte"}},
    {"photo_ref": "x.jpg", "location": {"zip_code": "28202", "latitude": 1, "longitude": 2, "location_name": "x"}},
    {"photo_ref": "x.jpg", "location": {"zip_code": "2820"}},
])
@pytest.mark.asyncio
async def test_submit_rejects_bad_fields(client, payload):
    response = await client.post("/api/v1/analyses", json=payload)

    assert response.status_code == 400
    assert response.json()["status"] == "error"
    assert client.dispatcher.jobs == []


@pytest.mark.asyncio
async def test_submit_unknown_photo(client):
    response = await client.post("/api/v1/analyses", json={
        "photo_ref": "0" * 32 + ".jpg", "location": {"zip_code": "28202"},
    })
    assert response.status_code == 400
    assert client.dispatcher.jobs == []


@pytest.mark.asyncio
async def test_submit_unresolvable_zip(client, photo_store):
    ref = await photo_store.put(b"\xff\xd8\xff\xe0" + b"\x00" * 100, "jpg")
    response = await client.post("/api/v1/analyses", json={"photo_ref": ref, "location": {"zip_code": "00000"}})

    assert response.status_code == 404
    assert client.dispatcher.jobs == []


@pytest.mark.asyncio
async def test_get_unknown_analysis(client):
    response = await client.get("/api/v1/analyses/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_expired_analysis(client):
    record = await AnalysisStore(ttl_seconds=60).create(
        photo_ref="p.jpg", zone_code="7b", zone_description="Zone 7b",
        now=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    response = await client.get(f"/api/v1/analyses/{record.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_complete_refreshes_photo_url(client, photo_store):
    ref = await photo_store.put(b"\xff\xd8\xff\xe0" + b"\x00" * 100, "jpg")
    record = await _complete_record(ref)

    first = (await client.get(f"/api/v1/analyses/{record.id}")).json()["data"]
    second = (await client.get(f"/api/v1/analyses/{record.id}")).json()["data"]

    assert first["status"] == "complete"
    assert first["photo_url"].startswith(f"http://test/photos/{ref}?")
    assert first["photo_url"] != "http://stale/url"
    assert first["result"]["summary"] == "A sunny front yard."
    assert first["zone_code"] == "7b"
    assert "error" not in first
    first.pop("photo_url")
    second.pop("photo_url")
    assert first == second


@pytest.mark.asyncio
async def test_get_complete_falls_back_to_stored_url(tmp_path):
    broken = BrokenPresignStore(str(tmp_path), "test-secret", "http://test")
    app.dependency_overrides[get_photo_store] = lambda: broken
    try:
        record = await _complete_record("0" * 32 + ".jpg")
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            response = await c.get(f"/api/v1/analyses/{record.id}")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["data"]["photo_url"] == "http://stale/url"


@pytest.mark.asyncio
async def test_get_complete_truncates_oversized_recommendations(client, photo_store):
    ref = await photo_store.put(b"\xff\xd8\xff\xe0" + b"\x00" * 100, "jpg")
    stored = RESULT.model_dump()
    stored["recommendations"] = [_recommendation(i) for i in range(14)]
    record = await _complete_record(ref, result_json=json.dumps(stored))

    response = await client.get(f"/api/v1/analyses/{record.id}")

    recs = response.json()["data"]["result"]["recommendations"]
    assert [r["plant_id"] for r in recs] == [f"plant-{i}" for i in range(10)]


@pytest.mark.asyncio
async def test_get_failed_carries_error_only(client):
    store = AnalysisStore()
    record = await store.create(photo_ref="p.jpg", zone_code="7b", zone_description="Zone 7b")
    await store.transition(record.id, "pending", "analyzing")
    await store.transition(record.id, "analyzing", "failed", error="Analysis timed out. Please try again.")

    data = (await client.get(f"/api/v1/analyses/{record.id}")).json()["data"]

    assert data == {
        "id": record.id,
        "status": "failed",
        "created_at": record.created_at,
        "error": "Analysis timed out. Please try again.",
    }
