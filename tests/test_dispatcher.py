import asyncio

import pytest
from pydantic import ValidationError

from app.services.dispatcher import AnalysisJob, AsyncioTaskDispatcher

JOB = AnalysisJob(analysis_id="a1", photo_ref="p1.jpg", zone_code="7b", zone_description="Zone 7b")


@pytest.mark.asyncio
async def test_dispatch_does_not_wait_for_handler():
    started = asyncio.Event()
    release = asyncio.Event()
    seen = []

    async def handler(job):
        started.set()
        await release.wait()
        seen.append(job.analysis_id)

    dispatcher = AsyncioTaskDispatcher(handler)
    dispatcher.dispatch(JOB)
    assert seen == []
    assert dispatcher.pending == 1

    await started.wait()
    release.set()
    await dispatcher.drain()

    assert seen == ["a1"]
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_drain_survives_failing_handler():
    async def handler(job):
        raise RuntimeError("boom")

    dispatcher = AsyncioTaskDispatcher(handler)
    dispatcher.dispatch(JOB)
    await dispatcher.drain()
    assert dispatcher.pending == 0


def test_job_is_immutable():
    with pytest.raises(ValidationError):
        JOB.zone_code = "8a"
    assert JOB.model_dump() == {
        "analysis_id": "a1", "photo_ref": "p1.jpg", "zone_code": "7b", "zone_description": "Zone 7b",
    }
