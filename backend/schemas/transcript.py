"""Transcript chunk schema — the durable unit handed to persistence/broadcast."""
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class TranscriptState(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"  # synthesized by callers on provider failure only


class TranscriptChunk(BaseModel):
    idempotency_key: str  # {session_id}:{provider}:{seq}
    seq: int
    state: TranscriptState
    text: str
    provider: str
    received_at: str  # ISO-8601, UTC
    confidence: Optional[float] = None

    def to_doc(self) -> dict:
        d = self.model_dump()
        d["state"] = self.state.value
        return d
