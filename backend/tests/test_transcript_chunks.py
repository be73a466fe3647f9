from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from datetime import datetime

import pytest

from schemas.transcript import TranscriptState
from stt.provider.interface import STTProviderResult, TranscriptionResult
from transcript.chunks import (
    SequenceCounter,
    _reset_seq_counter,
    build_transcript_chunk,
    default_counter,
)


@pytest.fixture(autouse=True)
def fresh_counter():
    _reset_seq_counter()
    yield
    _reset_seq_counter()


def _result(text="Tell me about yourself", is_final=True, confidence=0.92, provider="deepgram"):
    return TranscriptionResult(text=text, is_final=is_final, confidence=confidence, provider=provider)


def test_idempotency_key_and_final_state_from_fresh_counter():
    chunk = build_transcript_chunk("sess-1", _result())

    assert chunk.idempotency_key == "sess-1:deepgram:1"
    assert chunk.seq == 1
    assert chunk.state == TranscriptState.FINAL
    assert chunk.text == "Tell me about yourself"
    assert chunk.provider == "deepgram"
    assert chunk.confidence == 0.92


def test_non_final_result_is_partial():
    chunk = build_transcript_chunk("sess-1", _result(is_final=False))
    assert chunk.state == "partial"


def test_consecutive_builds_are_strictly_increasing():
    first = build_transcript_chunk("sess-1", _result())
    second = build_transcript_chunk("sess-1", _result())

    assert second.seq > first.seq
    assert first.idempotency_key != second.idempotency_key


def test_override_seq_is_stable_across_retries():
    a = build_transcript_chunk("sess-9", _result(provider="whisper"), override_seq=42)
    b = build_transcript_chunk("sess-9", _result(provider="whisper"), override_seq=42)

    assert a.idempotency_key == b.idempotency_key == "sess-9:whisper:42"
    # Overrides do not advance the shared counter
    assert default_counter().current == 0


def test_injected_counter_is_independent_of_default():
    counter = SequenceCounter(start=100)
    chunk = build_transcript_chunk("sess-2", _result(), counter=counter)

    assert chunk.seq == 101
    assert default_counter().current == 0


def test_counter_is_global_across_sessions():
    a = build_transcript_chunk("sess-a", _result())
    b = build_transcript_chunk("sess-b", _result())
    assert (a.seq, b.seq) == (1, 2)


def test_builder_never_emits_error_state():
    for is_final in (True, False):
        chunk = build_transcript_chunk("sess-1", _result(is_final=is_final, text=""))
        assert chunk.state != TranscriptState.ERROR


def test_received_at_is_iso_utc_and_confidence_optional():
    chunk = build_transcript_chunk("sess-1", _result(confidence=None))
    parsed = datetime.fromisoformat(chunk.received_at)
    assert parsed.utcoffset().total_seconds() == 0
    assert chunk.confidence is None


def test_to_doc_is_plain_dict():
    doc = build_transcript_chunk("sess-1", _result()).to_doc()
    assert doc["state"] == "final"
    assert doc["idempotency_key"] == "sess-1:deepgram:1"
    assert set(doc) == {
        "idempotency_key", "seq", "state", "text", "provider", "received_at", "confidence",
    }


def test_transcription_result_from_provider_result_copies_meta():
    raw = STTProviderResult(text="hi", is_final=True, confidence=0.5, provider_meta={"model": "nova-2"})
    annotated = TranscriptionResult.from_provider_result(raw, "deepgram")

    assert annotated.provider == "deepgram"
    assert annotated.provider_meta == {"model": "nova-2"}
    annotated.provider_meta["x"] = 1
    assert "x" not in raw.provider_meta
