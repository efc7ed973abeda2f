import enum
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from app.utils.response import error_response

logger = logging.getLogger(__name__)

_RETRY_MESSAGE = "AI analysis failed. Please try again."


class FailureKind(enum.Enum):
    """Why an analysis run ended in ``failed``: (retryable, user message)."""

    DOWNLOAD_FAILED = ("download_failed", True, "Unable to retrieve photo. Please try again.")
    UNSUPPORTED_FORMAT = (
        "unsupported_format",
        False,
        "Unable to process this image format. Please try JPEG or PNG.",
    )
    VISION_TIMEOUT = ("vision_timeout", True, "Analysis timed out. Please try again.")
    VISION_RATE_LIMITED = ("vision_rate_limited", True, "Service is busy. Please try again in a moment.")
    VISION_INVALID_RESPONSE = ("vision_invalid_response", True, _RETRY_MESSAGE)
    VISION_API_ERROR = ("vision_api_error", True, _RETRY_MESSAGE)
    MATCHING_FAILED = ("matching_failed", True, _RETRY_MESSAGE)
    SAVE_FAILED = ("save_failed", True, _RETRY_MESSAGE)
    UNKNOWN = ("unknown", True, _RETRY_MESSAGE)

    def __init__(self, code: str, retryable: bool, user_message: str):
        self.code = code
        self.retryable = retryable
        self.user_message = user_message


class AppException(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code


class PipelineFailure(Exception):
    """Raised inside an analysis run to end it with a classified failure."""

    def __init__(self, kind: FailureKind, detail: str = ""):
        super().__init__(detail or kind.code)
        self.kind = kind


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_response("Invalid request", data=errors),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Internal server error"),
        )
