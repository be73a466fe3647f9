"""STT Orchestrator — wires the provider chain and runs a transcription request.

Chain order: Deepgram → Whisper → Null.
A vendor is registered only when its API key is configured; a missing key
is a warning, never a registered-but-always-failing provider.
Request path: auth guard → rate limit → audio validation → registry → chunk.
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from abuse.circuit_breakers import CircuitBreakerOptions
from abuse.rate_limit import check_rate_limit
from auth.guard import STTAuthContext, validate_auth
from config.settings import Settings, get_settings
from core.exceptions import InvalidAudioError
from schemas.transcript import TranscriptChunk, TranscriptState
from stt.provider.interface import TranscribeOptions
from stt.provider.mock import NullSTTProvider
from stt.registry import STTProviderRegistry
from transcript.chunks import (
    SequenceCounter,
    build_transcript_chunk,
    default_counter,
    make_idempotency_key,
)

logger = logging.getLogger(__name__)

# Terminal fallback never opens and is always immediately retryable
NULL_PROVIDER_OPTIONS = CircuitBreakerOptions(failure_threshold=sys.maxsize, reset_timeout_ms=0)
ERROR_CHUNK_PROVIDER = "none"


def create_production_registry(settings: Optional[Settings] = None) -> STTProviderRegistry:
    """Build the ordered provider chain from settings."""
    settings = settings or get_settings()
    registry = STTProviderRegistry(call_timeout_s=settings.STT_CALL_TIMEOUT_S)
    vendor_options = CircuitBreakerOptions(
        failure_threshold=settings.STT_CB_FAILURE_THRESHOLD,
        reset_timeout_ms=settings.STT_CB_RESET_TIMEOUT_MS,
    )

    if settings.DEEPGRAM_API_KEY:
        from stt.provider.deepgram import DeepgramProviderConfig, DeepgramSTTProvider
        registry.register(
            DeepgramSTTProvider(DeepgramProviderConfig(
                api_key=settings.DEEPGRAM_API_KEY,
                language=settings.DEEPGRAM_LANGUAGE,
                model=settings.DEEPGRAM_MODEL,
            )),
            vendor_options,
        )
    else:
        logger.warning("[STT:ORCHESTRATOR] Deepgram API key not configured (DEEPGRAM_API_KEY)")

    if settings.OPENAI_API_KEY:
        from stt.provider.whisper import WhisperProviderConfig, WhisperSTTProvider
        registry.register(
            WhisperSTTProvider(WhisperProviderConfig(
                api_key=settings.OPENAI_API_KEY,
                organization=settings.OPENAI_ORG_ID or None,
                language=settings.WHISPER_LANGUAGE,
                model=settings.WHISPER_MODEL,
                base_url=settings.OPENAI_BASE_URL or None,
            )),
            vendor_options,
        )
    else:
        logger.warning("[STT:ORCHESTRATOR] OpenAI API key not configured (OPENAI_API_KEY)")

    registry.register(NullSTTProvider(), NULL_PROVIDER_OPTIONS)
    logger.info("[STT:ORCHESTRATOR] Chain=%s", " → ".join(registry.registered_providers))
    return registry


# Singleton registry
_registry: Optional[STTProviderRegistry] = None


def get_stt_registry() -> STTProviderRegistry:
    global _registry
    if _registry is None:
        _registry = create_production_registry()
    return _registry


def reset_stt_registry() -> None:
    global _registry
    _registry = None


def validate_audio(audio: bytes, max_bytes: Optional[int] = None) -> None:
    """Reject audio that no provider should be billed for."""
    limit = max_bytes if max_bytes is not None else get_settings().STT_MAX_AUDIO_BYTES
    if not audio:
        raise InvalidAudioError("Empty audio payload")
    if len(audio) > limit:
        raise InvalidAudioError(f"Audio too large: {len(audio)} bytes (max {limit})")


async def transcribe_audio(
    session_id: str,
    audio: bytes,
    auth: Optional[STTAuthContext] = None,
    language: Optional[str] = None,
    registry: Optional[STTProviderRegistry] = None,
    counter: Optional[SequenceCounter] = None,
) -> TranscriptChunk:
    """Run one transcription request end to end and return its chunk.

    Raises the guard's typed errors, InvalidAudioError, or
    STTAllProvidersFailedError when the whole chain is exhausted.
    """
    if auth is not None:
        validate_auth(auth)
        check_rate_limit(auth)
    validate_audio(audio)

    registry = registry or get_stt_registry()
    result = await registry.transcribe(audio, TranscribeOptions(language=language))
    chunk = build_transcript_chunk(session_id, result, counter=counter)
    logger.info(
        "[STT:ORCHESTRATOR] Transcribed: session=%s provider=%s state=%s seq=%d",
        session_id, chunk.provider, chunk.state.value, chunk.seq,
    )
    return chunk


def build_error_chunk(
    session_id: str,
    seq: Optional[int] = None,
    counter: Optional[SequenceCounter] = None,
) -> TranscriptChunk:
    """Caller-side ERROR chunk for a request the chain could not serve."""
    if seq is None:
        seq = (counter or default_counter()).next()
    return TranscriptChunk(
        idempotency_key=make_idempotency_key(session_id, ERROR_CHUNK_PROVIDER, seq),
        seq=seq,
        state=TranscriptState.ERROR,
        text="",
        provider=ERROR_CHUNK_PROVIDER,
        received_at=datetime.now(timezone.utc).isoformat(),
    )
