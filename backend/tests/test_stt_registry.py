"""Registry fallback-chain tests — ordering, circuit gating, exhaustion, timeouts."""
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
from typing import List, Optional

import pytest

from abuse.circuit_breakers import CircuitBreakerOptions
from core.exceptions import (
    ProviderTimeoutError,
    ProviderUnavailableError,
    STTAllProvidersFailedError,
)
from stt.provider.interface import STTProvider, STTProviderResult, TranscribeOptions
from stt.provider.mock import FailingSTTProvider, NullSTTProvider
from stt.registry import CIRCUIT_OPEN, STTProviderRegistry
from transcript.chunks import _reset_seq_counter, build_transcript_chunk

AUDIO = b"\x00\x01" * 256


class RecordingProvider(STTProvider):
    """Provider that logs every invocation into a shared call log."""

    def __init__(self, name: str, call_log: List[str], text: str = "ok",
                 is_final: bool = True, error: Optional[Exception] = None):
        self.name = name
        self._log = call_log
        self._text = text
        self._is_final = is_final
        self._error = error
        self.last_options: Optional[TranscribeOptions] = None

    async def transcribe(self, audio, options=None):
        self._log.append(self.name)
        self.last_options = options
        if self._error is not None:
            raise self._error
        return STTProviderResult(text=self._text, is_final=self._is_final, confidence=0.9)

    async def health_check(self):
        return self._error is None


class HangingProvider(STTProvider):
    name = "hanging"

    async def transcribe(self, audio, options=None):
        await asyncio.sleep(10)

    async def health_check(self):
        raise RuntimeError("probe exploded")


@pytest.mark.asyncio
async def test_fallback_returns_first_success_and_stops():
    calls: List[str] = []
    registry = STTProviderRegistry()
    registry.register(RecordingProvider("A", calls, error=ProviderUnavailableError("A down")))
    registry.register(RecordingProvider("B", calls, text="from B"))
    registry.register(RecordingProvider("C", calls, text="from C"))

    result = await registry.transcribe(AUDIO)

    assert result.provider == "B"
    assert result.text == "from B"
    assert calls == ["A", "B"]


@pytest.mark.asyncio
async def test_open_circuit_skips_provider_without_invoking_it():
    calls: List[str] = []
    registry = STTProviderRegistry()
    registry.register(
        RecordingProvider("A", calls, error=ProviderUnavailableError("A down")),
        CircuitBreakerOptions(failure_threshold=1, reset_timeout_ms=60_000),
    )
    registry.register(RecordingProvider("B", calls))

    await registry.transcribe(AUDIO)
    assert registry.get_circuit_state("A") == "open"

    calls.clear()
    result = await registry.transcribe(AUDIO)

    assert result.provider == "B"
    assert calls == ["B"]


@pytest.mark.asyncio
async def test_total_exhaustion_lists_every_provider_in_order():
    registry = STTProviderRegistry()
    registry.register(FailingSTTProvider("deepgram"))
    registry.register(FailingSTTProvider("whisper"))

    with pytest.raises(STTAllProvidersFailedError) as exc_info:
        await registry.transcribe(AUDIO)

    errors = exc_info.value.provider_errors
    assert len(errors) == 2
    assert [e.provider for e in errors] == ["deepgram", "whisper"]
    assert all(isinstance(e.error, ProviderUnavailableError) for e in errors)
    assert str(errors[0].error) == "deepgram_provider_unavailable"
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_exhaustion_marks_skipped_entries_as_circuit_open():
    registry = STTProviderRegistry()
    registry.register(FailingSTTProvider("deepgram"), CircuitBreakerOptions(failure_threshold=1))
    registry.register(FailingSTTProvider("whisper"), CircuitBreakerOptions(failure_threshold=5))

    with pytest.raises(STTAllProvidersFailedError):
        await registry.transcribe(AUDIO)

    with pytest.raises(STTAllProvidersFailedError) as exc_info:
        await registry.transcribe(AUDIO)

    first, second = exc_info.value.provider_errors
    assert first.provider == "deepgram"
    assert first.error == CIRCUIT_OPEN
    assert first.skipped
    assert second.provider == "whisper"
    assert not second.skipped


@pytest.mark.asyncio
async def test_success_records_against_breaker():
    calls: List[str] = []
    registry = STTProviderRegistry()
    flaky = RecordingProvider("A", calls, error=ProviderUnavailableError("blip"))
    registry.register(flaky, CircuitBreakerOptions(failure_threshold=3))
    registry.register(NullSTTProvider())

    await registry.transcribe(AUDIO)
    await registry.transcribe(AUDIO)
    assert registry.get_breaker("A").failures == 2

    flaky._error = None
    result = await registry.transcribe(AUDIO)
    assert result.provider == "A"
    assert registry.get_breaker("A").failures == 0
    assert registry.get_circuit_state("A") == "closed"


@pytest.mark.asyncio
async def test_timeout_counts_as_failure_and_advances():
    calls: List[str] = []
    registry = STTProviderRegistry(call_timeout_s=0.05)
    registry.register(HangingProvider(), CircuitBreakerOptions(failure_threshold=1))
    registry.register(RecordingProvider("B", calls))

    result = await registry.transcribe(AUDIO)

    assert result.provider == "B"
    assert registry.get_circuit_state("hanging") == "open"


@pytest.mark.asyncio
async def test_timeout_error_is_recorded_in_diagnostics():
    registry = STTProviderRegistry(call_timeout_s=0.05)
    registry.register(HangingProvider())

    with pytest.raises(STTAllProvidersFailedError) as exc_info:
        await registry.transcribe(AUDIO)

    assert isinstance(exc_info.value.provider_errors[0].error, ProviderTimeoutError)


@pytest.mark.asyncio
async def test_language_option_is_forwarded():
    calls: List[str] = []
    provider = RecordingProvider("A", calls)
    registry = STTProviderRegistry()
    registry.register(provider)

    await registry.transcribe(AUDIO, TranscribeOptions(language="de-DE"))
    assert provider.last_options.language == "de-DE"


def test_registered_providers_in_order_and_duplicates_rejected():
    registry = STTProviderRegistry()
    registry.register(FailingSTTProvider("deepgram"))
    registry.register(NullSTTProvider())

    assert registry.registered_providers == ["deepgram", "null"]
    with pytest.raises(ValueError, match="already registered"):
        registry.register(NullSTTProvider())


def test_get_circuit_state_unknown_provider_is_none():
    registry = STTProviderRegistry()
    registry.register(NullSTTProvider())
    assert registry.get_circuit_state("null") == "closed"
    assert registry.get_circuit_state("deepgram") is None


@pytest.mark.asyncio
async def test_health_report_never_raises():
    calls: List[str] = []
    registry = STTProviderRegistry()
    registry.register(HangingProvider())
    registry.register(FailingSTTProvider("whisper"))
    registry.register(RecordingProvider("ok", calls))

    report = await registry.health_report()
    assert report == {"hanging": False, "whisper": False, "ok": True}
    assert calls == []


@pytest.mark.asyncio
async def test_cancellation_propagates():
    registry = STTProviderRegistry()
    registry.register(HangingProvider())
    registry.register(NullSTTProvider())

    task = asyncio.create_task(registry.transcribe(AUDIO))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert registry.get_breaker("hanging").failures == 0


@pytest.mark.asyncio
async def test_end_to_end_deepgram_whisper_null():
    """Deepgram fails with a network error, Whisper serves a partial."""
    calls: List[str] = []
    registry = STTProviderRegistry()
    registry.register(RecordingProvider("deepgram", calls, error=ConnectionError("network unreachable")))
    registry.register(RecordingProvider("whisper", calls, text="hello", is_final=False))
    registry.register(NullSTTProvider())

    result = await registry.transcribe(AUDIO)

    assert result.text == "hello"
    assert result.is_final is False
    assert result.provider == "whisper"
    assert registry.get_breaker("deepgram").failures == 1
    assert calls == ["deepgram", "whisper"]

    _reset_seq_counter()
    chunk = build_transcript_chunk("sess-e2e", result)
    assert chunk.state == "partial"
    assert chunk.idempotency_key == "sess-e2e:whisper:1"
