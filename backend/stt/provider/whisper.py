"""OpenAI Whisper STT Provider — secondary vendor in the fallback chain.

Batch transcription through OpenAI's audio API. Whisper reports no direct
confidence; it is estimated from segment compression ratios when the
verbose response includes segments.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI

from core.exceptions import ProviderConfigError, ProviderUnavailableError
from stt.provider.interface import STTProvider, STTProviderResult, TranscribeOptions

logger = logging.getLogger(__name__)

AUDIO_FILENAME = "audio.webm"
AUDIO_CONTENT_TYPE = "audio/webm"


@dataclass(frozen=True)
class WhisperProviderConfig:
    api_key: str
    organization: Optional[str] = None
    language: str = "en"
    model: str = "whisper-1"
    base_url: Optional[str] = None  # proxy override


def to_whisper_language(language: Optional[str]) -> Optional[str]:
    """Whisper takes ISO-639-1 codes only: "en-US" -> "en"."""
    if not language:
        return None
    return language.replace("_", "-").split("-")[0].lower()


def estimate_confidence(segments: Any) -> Optional[float]:
    """Map mean compression ratio to 0-1. Lower compression ratio = more certain."""
    if not segments:
        return None
    ratios = [getattr(seg, "compression_ratio", None) or 1.0 for seg in segments]
    avg = sum(ratios) / len(ratios)
    return max(0.0, min(1.0, 1.0 - (avg - 1.0) * 0.5))


class WhisperSTTProvider(STTProvider):
    """OpenAI Whisper STT provider."""

    name = "whisper"

    def __init__(self, config: WhisperProviderConfig, client: Any = None):
        if not config.api_key:
            raise ProviderConfigError("OpenAI API key is required")
        self._config = config
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            organization=config.organization or None,
            base_url=config.base_url or None,
        )
        logger.info("[WhisperSTT] Client initialized: model=%s", config.model)

    async def transcribe(
        self, audio: bytes, options: Optional[TranscribeOptions] = None
    ) -> STTProviderResult:
        language = to_whisper_language(
            (options.language if options else None) or self._config.language
        )
        start = time.monotonic()

        try:
            response = await self._client.audio.transcriptions.create(
                file=(AUDIO_FILENAME, audio, AUDIO_CONTENT_TYPE),
                model=self._config.model,
                language=language,
                response_format="verbose_json",
                timestamp_granularities=["segment"],
            )
        except Exception as e:
            logger.error(
                "[WhisperSTT] Transcription failed: %s (%.0fms)",
                str(e), (time.monotonic() - start) * 1000,
            )
            raise ProviderUnavailableError(f"Whisper transcription failed: {e}") from e

        latency_ms = (time.monotonic() - start) * 1000
        text = getattr(response, "text", None)
        if text is None:
            text = str(response)
        segments = getattr(response, "segments", None)
        confidence = estimate_confidence(segments)

        logger.info(
            "[WhisperSTT] Transcribed: text='%s' segments=%d latency=%.0fms",
            text[:50], len(segments or []), latency_ms,
        )
        return STTProviderResult(
            text=text,
            is_final=True,
            confidence=confidence,
            provider_meta={
                "model": self._config.model,
                "language": language,
                "latency_ms": round(latency_ms, 1),
            },
        )

    async def health_check(self) -> bool:
        try:
            models = await self._client.models.list()
            return any(m.id == self._config.model for m in models.data)
        except Exception as e:
            logger.warning("[WhisperSTT] Health check failed: %s", str(e))
            return False
