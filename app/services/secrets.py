import logging
from typing import Callable

from app.config import settings

logger = logging.getLogger(__name__)


class MissingSecret(Exception):
    pass


class SecretCache:
    """Fetch a credential once, hand out the cached value until ``reset()``."""

    def __init__(self, fetch: Callable[[], str]):
        self._fetch = fetch
        self._value: str | None = None

    def get(self) -> str:
        if self._value is None:
            value = self._fetch()
            if not value:
                raise MissingSecret("Credential is empty or not configured")
            self._value = value
        return self._value

    def reset(self) -> None:
        self._value = None


def fetch_openai_api_key() -> str:
    """Read the key from a mounted secret file if configured, else from settings."""
    if settings.openai_api_key_file:
        logger.info("Reading OpenAI API key from %s", settings.openai_api_key_file)
        with open(settings.openai_api_key_file, encoding="utf-8") as f:
            return f.read().strip()
    return settings.openai_api_key
