"""Transcript Chunk Builder — idempotent, sequenced chunk records.

Key = {session_id}:{provider}:{seq}
The same triple always yields the same key, so callers can insert-or-ignore
on key collision when a client resends a chunk after a network blip.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from schemas.transcript import TranscriptChunk, TranscriptState
from stt.provider.interface import TranscriptionResult

logger = logging.getLogger(__name__)


class SequenceCounter:
    """Monotonic chunk sequence. Injectable so sessions and tests can own one."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def current(self) -> int:
        return self._value

    def reset(self, value: int = 0) -> None:
        with self._lock:
            self._value = value


# Process-wide default; unique across sessions as a side effect
_default_counter = SequenceCounter()


def default_counter() -> SequenceCounter:
    return _default_counter


def make_idempotency_key(session_id: str, provider: str, seq: int) -> str:
    return f"{session_id}:{provider}:{seq}"


def build_transcript_chunk(
    session_id: str,
    result: TranscriptionResult,
    override_seq: Optional[int] = None,
    counter: Optional[SequenceCounter] = None,
) -> TranscriptChunk:
    """Wrap a successful provider result into a TranscriptChunk.

    Never produces the ERROR state; callers synthesize error chunks themselves.
    """
    if override_seq is not None:
        seq = override_seq
    else:
        seq = (counter or _default_counter).next()

    chunk = TranscriptChunk(
        idempotency_key=make_idempotency_key(session_id, result.provider, seq),
        seq=seq,
        state=TranscriptState.FINAL if result.is_final else TranscriptState.PARTIAL,
        text=result.text,
        provider=result.provider,
        received_at=datetime.now(timezone.utc).isoformat(),
        confidence=result.confidence,
    )
    logger.debug(
        "Chunk built: session=%s key=%s state=%s",
        session_id, chunk.idempotency_key, chunk.state.value,
    )
    return chunk


def _reset_seq_counter() -> None:
    """Test-only: rewind the process-wide counter to 0."""
    _default_counter.reset()
