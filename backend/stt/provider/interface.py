"""STT Provider interface — provider-agnostic contract.

STT provides ONLY: transcript text + finality + confidence + vendor diagnostics.
STT does NOT provide: sequencing, idempotency, persistence. Those belong to
the transcript chunk builder.

transcribe() MUST raise when the vendor call fails. Returning an empty or
made-up result on failure would hide the outage from the circuit breaker.
health_check() MUST NOT raise.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class TranscribeOptions:
    """Per-request hints. language is a locale such as "en-US"."""
    language: Optional[str] = None


@dataclass
class STTProviderResult:
    """Result of a single provider call."""
    text: str
    is_final: bool  # True = no further refinement of this utterance expected
    confidence: Optional[float] = None  # 0.0 - 1.0
    provider_meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TranscriptionResult(STTProviderResult):
    """A provider result annotated with the provider that served it."""
    provider: str = ""

    @classmethod
    def from_provider_result(cls, result: STTProviderResult, provider: str) -> "TranscriptionResult":
        return cls(
            text=result.text,
            is_final=result.is_final,
            confidence=result.confidence,
            provider_meta=dict(result.provider_meta),
            provider=provider,
        )


class STTProvider(ABC):
    """Abstract STT provider interface."""

    name: str = "abstract"

    @abstractmethod
    async def transcribe(
        self, audio: bytes, options: Optional[TranscribeOptions] = None
    ) -> STTProviderResult:
        """Transcribe a raw audio buffer."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Best-effort liveness probe for the provider."""
        ...
