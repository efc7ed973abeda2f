"""Drive one submitted photo through analysis to a terminal record.

pending -> analyzing -> matching -> complete, or -> failed from any
non-terminal state. An invalid subject photo completes straight from
analyzing with no features or recommendations.
"""
import asyncio
import base64
import logging
import uuid

from app.config import settings
from app.schemas.analysis import AiOutput, AnalysisResult, IdentifiedFeature
from app.services.analysis_store import AnalysisStore
from app.services.catalog import PlantCatalog, SqlPlantCatalog
from app.services.dispatcher import AnalysisJob
from app.services.photo_processing import PhotoValidationError, normalize_for_analysis, validate_photo
from app.services.photo_store import PhotoStore, build_photo_store
from app.services.plant_matcher import match_plants
from app.services.vision import VisionAdapter, VisionError, VisionErrorKind, build_vision_adapter
from app.utils.exceptions import FailureKind, PipelineFailure

logger = logging.getLogger(__name__)

DEFAULT_INVALID_REASON = "We couldn't identify a yard or garden in this photo."

VISION_FAILURES: dict[VisionErrorKind, FailureKind] = {
    VisionErrorKind.TIMEOUT: FailureKind.VISION_TIMEOUT,
    VisionErrorKind.RATE_LIMITED: FailureKind.VISION_RATE_LIMITED,
    VisionErrorKind.INVALID_RESPONSE: FailureKind.VISION_INVALID_RESPONSE,
    VisionErrorKind.API_ERROR: FailureKind.VISION_API_ERROR,
}


class RunAbandoned(Exception):
    """The record left the state this run expected; another writer owns it."""


class _Run:
    """Status bookkeeping for a single run."""

    def __init__(self, store: AnalysisStore, analysis_id: str):
        self._store = store
        self.analysis_id = analysis_id
        self.status = "pending"

    async def advance(self, target: str, **fields) -> None:
        changed = await self._store.transition(self.analysis_id, self.status, target, **fields)
        if not changed:
            raise RunAbandoned(f"{self.analysis_id} is no longer {self.status!r}")
        self.status = target


class AnalysisPipeline:
    def __init__(
        self,
        store: AnalysisStore,
        photo_store: PhotoStore,
        vision: VisionAdapter,
        catalog: PlantCatalog,
        max_recommendations: int | None = None,
    ):
        self._store = store
        self._photo_store = photo_store
        self._vision = vision
        self._catalog = catalog
        self._max_recommendations = max_recommendations or settings.max_recommendations
        # True until the first run in this process
        self.cold_start = True

    def _take_cold_start(self) -> bool:
        cold, self.cold_start = self.cold_start, False
        return cold

    async def run(self, job: AnalysisJob) -> None:
        """Entry point for the dispatcher. Never raises."""
        cold_start = self._take_cold_start()
        logger.info("Analysis %s started (cold_start=%s)", job.analysis_id, cold_start)
        run = _Run(self._store, job.analysis_id)

        try:
            await run.advance("analyzing")
            await self._process(run, job)
        except RunAbandoned as e:
            logger.warning("Analysis %s abandoned: %s", job.analysis_id, e)
        except PipelineFailure as e:
            logger.error("Analysis %s failed (%s): %s", job.analysis_id, e.kind.code, e)
            await self._fail(run, e.kind)
        except Exception:
            logger.exception("Analysis %s crashed", job.analysis_id)
            await self._fail(run, FailureKind.UNKNOWN)

    async def _fail(self, run: _Run, kind: FailureKind) -> None:
        try:
            await run.advance("failed", error=kind.user_message)
        except Exception:
            # record stays in its last state; nothing more can be done here
            logger.exception("Could not mark analysis %s as failed", run.analysis_id)

    async def _process(self, run: _Run, job: AnalysisJob) -> None:
        try:
            data = await self._photo_store.get(job.photo_ref)
        except Exception as e:
            raise PipelineFailure(FailureKind.DOWNLOAD_FAILED, str(e)) from e

        try:
            photo_type = validate_photo(data)
            image, media_type = await asyncio.to_thread(
                normalize_for_analysis, data, photo_type.media_type
            )
        except PhotoValidationError as e:
            raise PipelineFailure(FailureKind.UNSUPPORTED_FORMAT, str(e)) from e

        outcome = await self._vision.analyze(
            base64.b64encode(image).decode("ascii"),
            media_type,
            job.zone_code,
            job.zone_description,
        )
        if isinstance(outcome, VisionError):
            raise PipelineFailure(VISION_FAILURES[outcome.kind], outcome.message)

        if not outcome.is_valid_subject_photo:
            logger.info("Analysis %s: photo is not a yard (%s)", job.analysis_id, outcome.invalid_reason)
            await self._complete(run, job, self._assemble(outcome, [], [],
                                                          outcome.invalid_reason or DEFAULT_INVALID_REASON))
            return

        await run.advance("matching")
        try:
            recommendations = await match_plants(
                outcome.recommended_plant_types,
                job.zone_code,
                self._catalog,
                self._max_recommendations,
            )
        except Exception as e:
            raise PipelineFailure(FailureKind.MATCHING_FAILED, str(e)) from e

        features = [
            IdentifiedFeature(id=str(uuid.uuid4()), **feature.model_dump())
            for feature in outcome.features
        ]
        result = self._assemble(outcome, features, recommendations, outcome.summary)
        await self._complete(run, job, result)
        logger.info(
            "Analysis %s complete: %d features, %d recommendations",
            job.analysis_id, len(features), len(recommendations),
        )

    @staticmethod
    def _assemble(outcome: AiOutput, features, recommendations, summary: str) -> AnalysisResult:
        return AnalysisResult(
            summary=summary,
            yard_size=outcome.yard_size,
            overall_sun_exposure=outcome.overall_sun_exposure,
            estimated_soil_type=outcome.estimated_soil_type,
            features=features,
            recommendations=recommendations,
        )

    async def _complete(self, run: _Run, job: AnalysisJob, result: AnalysisResult) -> None:
        photo_url = await self._photo_store.presign(job.photo_ref)
        try:
            await run.advance("complete", result=result, photo_url=photo_url)
        except RunAbandoned:
            raise
        except Exception as e:
            raise PipelineFailure(FailureKind.SAVE_FAILED, str(e)) from e


def build_pipeline() -> AnalysisPipeline:
    return AnalysisPipeline(
        store=AnalysisStore(),
        photo_store=build_photo_store(),
        vision=build_vision_adapter(),
        catalog=SqlPlantCatalog(),
    )
