"""Persistence for analysis records and their forward-only status lifecycle."""
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from app.config import settings
from app.database import async_session
from app.models.analysis import Analysis
from app.schemas.analysis import AnalysisResult

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"complete", "failed"}

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"analyzing", "failed"},
    "analyzing": {"matching", "complete", "failed"},
    "matching": {"complete", "failed"},
    "complete": set(),
    "failed": set(),
}


class InvalidStatusTransition(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move analysis from {current!r} to {target!r}")
        self.current = current
        self.target = target


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(record: Analysis, now: datetime | None = None) -> bool:
    return datetime.fromisoformat(record.expires_at) <= (now or _now())


class AnalysisStore:
    def __init__(self, session_factory=async_session, ttl_seconds: int | None = None):
        self._session_factory = session_factory
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.analysis_ttl_seconds

    async def create(
        self,
        photo_ref: str,
        zone_code: str | None,
        zone_description: str | None,
        zip_code: str | None = None,
        location_name: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        now: datetime | None = None,
    ) -> Analysis:
        created = now or _now()
        record = Analysis(
            id=str(uuid.uuid4()),
            status="pending",
            photo_ref=photo_ref,
            zip_code=zip_code,
            location_name=location_name,
            latitude=latitude,
            longitude=longitude,
            zone_code=zone_code,
            zone_description=zone_description,
            created_at=created.isoformat(),
            updated_at=created.isoformat(),
            expires_at=(created + timedelta(seconds=self._ttl_seconds)).isoformat(),
        )
        async with self._session_factory() as db:
            db.add(record)
            await db.commit()
        logger.info("Created analysis %s (zone=%s)", record.id, zone_code)
        return record

    async def get(self, analysis_id: str, now: datetime | None = None) -> Analysis | None:
        """Return the record, or None if it doesn't exist or has expired."""
        async with self._session_factory() as db:
            record = await db.get(Analysis, analysis_id)
        if record is None or is_expired(record, now):
            return None
        return record

    async def transition(
        self,
        analysis_id: str,
        current: str,
        target: str,
        *,
        result: AnalysisResult | None = None,
        error: str | None = None,
        photo_url: str | None = None,
    ) -> bool:
        """Compare-and-set the status from ``current`` to ``target``.

        Returns False when the record is no longer in ``current`` (another run
        moved it, or it is gone). ``result`` is required for ``complete`` and
        ``error`` for ``failed``; neither is accepted otherwise.
        """
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition(current, target)
        if (target == "complete") != (result is not None):
            raise ValueError("result must be given exactly when completing")
        if (target == "failed") != (error is not None):
            raise ValueError("error must be given exactly when failing")

        values: dict = {"status": target, "updated_at": _now().isoformat()}
        if result is not None:
            values["result"] = result.model_dump_json()
        if error is not None:
            values["error"] = error
        if photo_url is not None:
            values["photo_url"] = photo_url

        async with self._session_factory() as db:
            outcome = await db.execute(
                update(Analysis)
                .where(Analysis.id == analysis_id, Analysis.status == current)
                .values(**values)
            )
            await db.commit()

        changed = outcome.rowcount == 1
        if changed:
            logger.info("Analysis %s: %s -> %s", analysis_id, current, target)
        else:
            logger.warning("Analysis %s was not %r, skipped move to %r", analysis_id, current, target)
        return changed
