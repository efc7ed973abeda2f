"""Vision analysis of a yard photo through the OpenAI chat completions API."""
import enum
import json
import logging
import os
import re
from typing import Protocol

import openai
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.schemas.analysis import AiOutput
from app.services.secrets import MissingSecret, SecretCache, fetch_openai_api_key

logger = logging.getLogger(__name__)

PROMPT_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "prompts",
    "yard_analysis.txt",
)

_FENCE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)
_API_KEY = re.compile(r"sk-[A-Za-z0-9_-]+")


class VisionErrorKind(enum.Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    API_ERROR = "api_error"


class VisionError(BaseModel):
    model_config = {"frozen": True}

    kind: VisionErrorKind
    message: str


class VisionAdapter(Protocol):
    async def analyze(
        self,
        image_base64: str,
        media_type: str,
        zone_code: str | None,
        zone_description: str | None,
    ) -> AiOutput | VisionError: ...


def _load_prompt() -> str:
    with open(PROMPT_PATH) as f:
        return f.read()


def _mask_secrets(text: str) -> str:
    return _API_KEY.sub("sk-***", text)


def build_user_message(zone_code: str | None, zone_description: str | None) -> str:
    if zone_code:
        where = f"in USDA hardiness zone {zone_code}"
        if zone_description:
            where += f" ({zone_description})"
    elif zone_description:
        where = f"in {zone_description}"
    else:
        where = "at an unknown location"
    return (
        f"Analyze this yard photo. The homeowner's yard is {where}.\n\n"
        "Provide your analysis as JSON matching the schema in your instructions."
    )


def _build_api_kwargs(model: str, messages: list[dict]) -> dict:
    """Build OpenAI API kwargs based on model type."""
    api_kwargs: dict = {"model": model, "messages": messages}

    if model.startswith("o"):
        # o-series reasoning models: no temperature, max_completion_tokens instead of max_tokens
        api_kwargs["max_completion_tokens"] = 8192
    else:
        api_kwargs["max_tokens"] = 4096
        api_kwargs["temperature"] = 0.2

    return api_kwargs


def parse_ai_output(raw_text: str) -> AiOutput | VisionError:
    """Parse the model's text reply (optionally wrapped in a markdown fence)."""
    json_text = raw_text.strip()
    fenced = _FENCE.match(json_text)
    if fenced:
        json_text = fenced.group(1).strip()

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError:
        return VisionError(kind=VisionErrorKind.INVALID_RESPONSE, message="Model returned invalid JSON")

    try:
        return AiOutput.model_validate(parsed)
    except ValidationError as e:
        return VisionError(
            kind=VisionErrorKind.INVALID_RESPONSE,
            message=f"Schema validation failed: {e.error_count()} errors",
        )


class OpenAIVisionAdapter:
    """Calls a vision-capable OpenAI model. Retries once on an unparseable reply only."""

    def __init__(
        self,
        api_key: SecretCache,
        model: str | None = None,
        timeout: float | None = None,
        client: openai.AsyncOpenAI | None = None,
    ):
        self._api_key = api_key
        self._model = model or settings.openai_model
        self._timeout = timeout or settings.openai_timeout_seconds
        self._client = client
        self._owns_client = client is None
        self._client_key: str | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        """Return the client, rebuilding it when the cached key has changed since the last call."""
        if not self._owns_client:
            return self._client
        key = self._api_key.get()
        if self._client is None or key != self._client_key:
            if self._client is not None:
                logger.info("OpenAI API key changed, rebuilding client")
            self._client = openai.AsyncOpenAI(api_key=key, timeout=self._timeout, max_retries=0)
            self._client_key = key
        return self._client

    async def analyze(
        self,
        image_base64: str,
        media_type: str,
        zone_code: str | None,
        zone_description: str | None,
    ) -> AiOutput | VisionError:
        result = await self._call(image_base64, media_type, zone_code, zone_description)
        if isinstance(result, VisionError) and result.kind is VisionErrorKind.INVALID_RESPONSE:
            logger.warning("Vision response invalid (%s), retrying once", result.message)
            result = await self._call(image_base64, media_type, zone_code, zone_description)
        return result

    async def _call(
        self,
        image_base64: str,
        media_type: str,
        zone_code: str | None,
        zone_description: str | None,
    ) -> AiOutput | VisionError:
        messages = [
            {"role": "system", "content": _load_prompt()},
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:{media_type};base64,{image_base64}",
                            "detail": "high",
                        },
                    },
                    {"type": "text", "text": build_user_message(zone_code, zone_description)},
                ],
            },
        ]
        api_kwargs = _build_api_kwargs(self._model, messages)
        logger.info("Calling OpenAI model=%s for zone=%s", self._model, zone_code)

        try:
            response = await self._get_client().chat.completions.create(**api_kwargs)
        except openai.APITimeoutError:
            return VisionError(kind=VisionErrorKind.TIMEOUT, message="Vision request timed out")
        except openai.RateLimitError:
            return VisionError(kind=VisionErrorKind.RATE_LIMITED, message="Vision service rate limited the request")
        except (openai.OpenAIError, MissingSecret) as e:
            message = _mask_secrets(str(e))
            logger.error("Vision API call failed: %s", message)
            return VisionError(kind=VisionErrorKind.API_ERROR, message=message)

        raw_text = ""
        if response.choices:
            raw_text = response.choices[0].message.content or ""
        logger.info("OpenAI raw response (%d chars): %s", len(raw_text), raw_text[:500])
        if not raw_text:
            return VisionError(kind=VisionErrorKind.INVALID_RESPONSE, message="No text in model response")
        return parse_ai_output(raw_text)


def build_vision_adapter() -> OpenAIVisionAdapter:
    return OpenAIVisionAdapter(api_key=SecretCache(fetch_openai_api_key))
