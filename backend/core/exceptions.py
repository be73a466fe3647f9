"""Custom exception hierarchy for the transcription gateway.

Every error carries a machine code and an HTTP status hint. The core stays
transport-agnostic; the API layer translates status_code into a response.
"""
from typing import List


class CopilotError(Exception):
    """Base error."""
    status_code = 500

    def __init__(self, message: str, code: str = "COPILOT_ERROR", status_code: int | None = None):
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class AuthError(CopilotError):
    """Missing caller identity."""
    def __init__(self, message: str = "User ID required"):
        super().__init__(message, code="AUTH_ERROR", status_code=401)


class InvalidTierError(CopilotError):
    """Subscription tier outside the known set."""
    def __init__(self, message: str = "Invalid subscription tier"):
        super().__init__(message, code="INVALID_TIER", status_code=400)


class InvalidAudioError(CopilotError):
    """Audio payload rejected before reaching any provider."""
    def __init__(self, message: str = "Invalid audio payload"):
        super().__init__(message, code="INVALID_AUDIO", status_code=400)


class RateLimitExceededError(CopilotError):
    """Per user/org quota exhausted for the current window."""
    def __init__(self, retry_after_ms: int, message: str | None = None):
        self.retry_after_ms = retry_after_ms
        super().__init__(
            message or f"Rate limit exceeded. Retry after {retry_after_ms}ms",
            code="RATE_LIMITED",
            status_code=429,
        )


class ProviderConfigError(CopilotError):
    """Provider adapter cannot be wired (missing credential, bad options)."""
    def __init__(self, message: str = "Provider misconfigured"):
        super().__init__(message, code="PROVIDER_CONFIG", status_code=500)


class ProviderUnavailableError(CopilotError):
    """A single provider attempt failed."""
    def __init__(self, message: str = "Provider unavailable"):
        super().__init__(message, code="PROVIDER_ERROR", status_code=502)


class ProviderTimeoutError(ProviderUnavailableError):
    """A provider attempt exceeded its deadline."""
    def __init__(self, message: str = "Provider call timed out"):
        super().__init__(message)
        self.code = "PROVIDER_TIMEOUT"


class STTAllProvidersFailedError(CopilotError):
    """Every registration in the fallback chain was skipped or failed."""
    def __init__(self, provider_errors: List):
        self.provider_errors = list(provider_errors)
        names = ", ".join(e.provider for e in self.provider_errors)
        super().__init__(
            f"All STT providers failed: {names}",
            code="STT_UNAVAILABLE",
            status_code=503,
        )
