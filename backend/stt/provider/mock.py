"""Deterministic STT providers for tests and offline development.

NullSTTProvider is also the terminal entry of the production chain: it
always succeeds with an empty final result, so a full vendor outage degrades
to silence instead of an error at the caller.
"""
import logging
from typing import Optional

from core.exceptions import ProviderUnavailableError
from stt.provider.interface import STTProvider, STTProviderResult, TranscribeOptions

logger = logging.getLogger(__name__)


class NullSTTProvider(STTProvider):
    """Always-available fallback that transcribes nothing."""

    name = "null"

    async def transcribe(
        self, audio: bytes, options: Optional[TranscribeOptions] = None
    ) -> STTProviderResult:
        logger.debug("[NullSTT] Served fallback result: bytes=%d", len(audio))
        return STTProviderResult(text="", is_final=True, confidence=0.0)

    async def health_check(self) -> bool:
        return True


class FailingSTTProvider(STTProvider):
    """Test double whose every transcription fails."""

    def __init__(self, name: str = "failing"):
        self.name = name

    async def transcribe(
        self, audio: bytes, options: Optional[TranscribeOptions] = None
    ) -> STTProviderResult:
        raise ProviderUnavailableError(f"{self.name}_provider_unavailable")

    async def health_check(self) -> bool:
        return False
