"""STT Provider Registry — ordered fallback chain with per-provider breakers.

Registration order is attempt order. Providers are tried one at a time and
the first success wins: vendors bill per call, so there is no racing.
Per-provider errors never reach the caller individually; they feed the
breaker and are aggregated into STTAllProvidersFailedError when the whole
chain is exhausted.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from abuse.circuit_breakers import BreakerState, CircuitBreaker, CircuitBreakerOptions
from core.exceptions import ProviderTimeoutError, STTAllProvidersFailedError
from stt.provider.interface import STTProvider, TranscribeOptions, TranscriptionResult

logger = logging.getLogger(__name__)

CIRCUIT_OPEN = "circuit_open"


@dataclass
class ProviderAttemptError:
    """One entry of the exhaustion diagnostics, in chain order."""
    provider: str
    error: Union[BaseException, str]  # exception raised, or CIRCUIT_OPEN when skipped

    @property
    def skipped(self) -> bool:
        return isinstance(self.error, str) and self.error == CIRCUIT_OPEN


@dataclass
class ProviderRegistration:
    provider: STTProvider
    breaker: CircuitBreaker


class STTProviderRegistry:
    """Single entry point for transcription across the provider chain."""

    def __init__(self, call_timeout_s: Optional[float] = None):
        self._registrations: List[ProviderRegistration] = []
        self._call_timeout_s = call_timeout_s or None

    def register(
        self,
        provider: STTProvider,
        options: Optional[CircuitBreakerOptions] = None,
    ) -> None:
        """Append a provider to the chain with its own circuit breaker."""
        if provider.name in self.registered_providers:
            raise ValueError(f"STT provider already registered: {provider.name}")
        breaker = CircuitBreaker.from_options(provider.name, options)
        self._registrations.append(ProviderRegistration(provider, breaker))
        logger.info(
            "[STT:REGISTRY] Registered provider=%s position=%d threshold=%d reset_timeout_ms=%d",
            provider.name, len(self._registrations),
            breaker.failure_threshold, breaker.reset_timeout_ms,
        )

    async def transcribe(
        self, audio: bytes, options: Optional[TranscribeOptions] = None
    ) -> TranscriptionResult:
        errors: List[ProviderAttemptError] = []

        for entry in self._registrations:
            name = entry.provider.name
            if not entry.breaker.can_attempt():
                logger.debug("[STT:REGISTRY] Skipped provider=%s (circuit open)", name)
                errors.append(ProviderAttemptError(name, CIRCUIT_OPEN))
                continue

            try:
                result = await self._attempt(entry.provider, audio, options)
            except Exception as e:
                entry.breaker.record_failure()
                errors.append(ProviderAttemptError(name, e))
                logger.warning(
                    "[STT:REGISTRY] Attempt failed provider=%s failures=%d error=%s",
                    name, entry.breaker.failures, str(e),
                )
                continue

            entry.breaker.record_success()
            if errors:
                logger.info(
                    "[STT:REGISTRY] Served by fallback provider=%s after %d miss(es)",
                    name, len(errors),
                )
            return TranscriptionResult.from_provider_result(result, name)

        logger.error(
            "[STT:REGISTRY] All providers failed: %s",
            ", ".join(f"{e.provider}={e.error}" for e in errors),
        )
        raise STTAllProvidersFailedError(errors)

    async def _attempt(
        self, provider: STTProvider, audio: bytes, options: Optional[TranscribeOptions]
    ):
        if self._call_timeout_s is None:
            return await provider.transcribe(audio, options)
        try:
            return await asyncio.wait_for(
                provider.transcribe(audio, options),
                timeout=self._call_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{provider.name} timed out after {self._call_timeout_s}s"
            ) from e

    @property
    def registered_providers(self) -> List[str]:
        return [e.provider.name for e in self._registrations]

    def get_breaker(self, provider_name: str) -> Optional[CircuitBreaker]:
        for entry in self._registrations:
            if entry.provider.name == provider_name:
                return entry.breaker
        return None

    def get_circuit_state(self, provider_name: str) -> Optional[BreakerState]:
        breaker = self.get_breaker(provider_name)
        return breaker.current_state if breaker else None

    def circuit_statuses(self) -> List[dict]:
        return [e.breaker.get_status() for e in self._registrations]

    async def health_report(self) -> Dict[str, bool]:
        """Probe every provider out of band. Never raises."""
        report: Dict[str, bool] = {}
        for entry in self._registrations:
            try:
                report[entry.provider.name] = bool(await entry.provider.health_check())
            except Exception as e:
                logger.warning(
                    "[STT:REGISTRY] Health check raised provider=%s error=%s",
                    entry.provider.name, str(e),
                )
                report[entry.provider.name] = False
        return report
