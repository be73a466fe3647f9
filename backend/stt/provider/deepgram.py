"""Deepgram STT Provider — Managed API adapter.

Uses Deepgram's pre-recorded REST API: one request per audio buffer, so
every result is final. The SDK client is synchronous and runs in the default
executor to keep the event loop free.

Vendor transport/auth errors are raised as ProviderUnavailableError so the
registry can count them against this provider's circuit breaker.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from deepgram import DeepgramClient as _DeepgramClient

from core.exceptions import ProviderConfigError, ProviderUnavailableError
from stt.provider.interface import STTProvider, STTProviderResult, TranscribeOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeepgramProviderConfig:
    api_key: str
    language: str = "en-US"
    model: str = "nova-2"
    punctuate: bool = True
    smart_format: bool = True


class DeepgramSTTProvider(STTProvider):
    """Real Deepgram STT using the pre-recorded REST API."""

    name = "deepgram"

    def __init__(self, config: DeepgramProviderConfig, client: Any = None):
        if not config.api_key:
            raise ProviderConfigError("Deepgram API key is required")
        self._config = config
        self._client = client or _DeepgramClient(api_key=config.api_key)
        logger.info("[DeepgramSTT] Client initialized: model=%s", config.model)

    async def transcribe(
        self, audio: bytes, options: Optional[TranscribeOptions] = None
    ) -> STTProviderResult:
        language = (options.language if options else None) or self._config.language
        start_time = time.monotonic()

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self._client.listen.v1.media.transcribe_file(
                    request=audio,
                    model=self._config.model,
                    language=language,
                    punctuate=self._config.punctuate,
                    smart_format=self._config.smart_format,
                ),
            )
        except Exception as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "[DeepgramSTT] Transcription failed: error=%s latency=%.0fms",
                str(e), latency_ms,
            )
            raise ProviderUnavailableError(f"Deepgram transcription failed: {e}") from e

        latency_ms = (time.monotonic() - start_time) * 1000
        meta = {
            "model": self._config.model,
            "language": language,
            "latency_ms": round(latency_ms, 1),
        }
        metadata = getattr(response, "metadata", None)
        request_id = getattr(metadata, "request_id", None)
        if request_id:
            meta["request_id"] = str(request_id)

        # SDK v5 returns Pydantic objects, not dicts
        channels = []
        results = getattr(response, "results", None)
        if results is not None:
            channels = results.channels or []

        alternatives = (channels[0].alternatives or []) if channels else []
        if not alternatives:
            logger.debug("[DeepgramSTT] No alternatives in response")
            return STTProviderResult(text="", is_final=True, confidence=0.0, provider_meta=meta)

        text = (alternatives[0].transcript or "").strip()
        confidence = getattr(alternatives[0], "confidence", 0.0) or 0.0

        logger.info(
            "[DeepgramSTT] Transcribed: text='%s' conf=%.2f latency=%.0fms",
            text[:50], confidence, latency_ms,
        )
        return STTProviderResult(
            text=text,
            is_final=True,  # pre-recorded endpoint only returns settled results
            confidence=confidence,
            provider_meta=meta,
        )

    async def health_check(self) -> bool:
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, lambda: self._client.manage.v1.projects.list())
            return True
        except Exception as e:
            logger.warning("[DeepgramSTT] Health check failed: %s", str(e))
            return False
