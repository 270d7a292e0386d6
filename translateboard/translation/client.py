"""Streaming translation client for OpenAI-compatible chat completion endpoints."""

import asyncio
import logging
from typing import AsyncIterator, Optional

import aiohttp

from ..models.segment import LANGUAGES, TranslationConfig
from .decoder import iter_deltas

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional simultaneous interpreter. "
    "Your task is to translate the input text immediately and accurately. \n"
    "Rules:\n"
    "1. If the input is Chinese, translate to English.\n"
    "2. If the input is English, translate to Chinese.\n"
    "3. Output ONLY the translated text. Do not include notes or explanations.\n"
    "4. Maintain the tone and context."
)

TRANSLATION_ERROR_MARKER = "[Translation Error]"

RELAY_REFERER = "https://auto-translate-board.vercel.app"
RELAY_TITLE = "Auto Translate Board"


class TranslationAPIError(Exception):
    """The translation endpoint answered with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Translation API error: {status} - {body}")


class TranslationClient:
    """Issues one streaming chat completion per call and yields translated fragments."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        """Initialize translation client.

        Args:
            session: Shared aiohttp session. If None, each run opens and closes its own.
        """
        self.session = session

    def build_request(self, text: str, config: TranslationConfig) -> dict:
        """Build the chat completion request body."""
        return {
            "model": config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            "stream": True,
        }

    def _build_target(self, config: TranslationConfig):
        """Return (url, headers), routing through the relay when one is configured."""
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        if config.relay_url:
            headers["x-target-url"] = config.base_url.rstrip("/")
            return config.relay_url, headers
        return config.chat_completions_url, headers

    async def translate_stream(self,
                               text: str,
                               target_language: str,
                               config: TranslationConfig) -> AsyncIterator[str]:
        """Translate text, yielding fragments as they arrive.

        Every call performs exactly one request; the returned iterator cannot be restarted.

        Args:
            text: Source text; blank text yields nothing and makes no request
            target_language: "zh" or "en"
            config: Snapshot of credentials, endpoint and model for this run

        Raises:
            TranslationAPIError: If the endpoint returns a non-success status.
                Transport failures are not raised; they end the sequence with
                TRANSLATION_ERROR_MARKER.
        """
        if not text.strip():
            return
        if target_language not in LANGUAGES:
            raise ValueError(f"Unsupported target language: {target_language!r}")

        url, headers = self._build_target(config)
        payload = self.build_request(text, config)
        logger.debug(f"Requesting {target_language} translation from {url} (model={config.model})")

        session = self.session
        owns_session = session is None
        if owns_session:
            session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=config.timeout_seconds))

        try:
            async with session.post(url, headers=headers, json=payload) as response:
                if not response.ok:
                    error_text = await response.text()
                    logger.error(f"Translation API error: {response.status} - {error_text[:200]}")
                    raise TranslationAPIError(response.status, error_text)

                fragments = 0
                async for delta in iter_deltas(response.content.iter_any()):
                    fragments += 1
                    yield delta
                logger.debug(f"Translation stream finished after {fragments} fragments")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Translation transport error: {e!r}")
            yield TRANSLATION_ERROR_MARKER
        finally:
            if owns_session:
                await session.close()
