"""Startup configuration validation guardrails."""

import logging


logger = logging.getLogger(__name__)


def _require_positive_threshold(settings) -> None:
    """Fail closed if vendor breakers could never open."""
    if settings.STT_CB_FAILURE_THRESHOLD < 1:
        raise RuntimeError(
            "STARTUP FAILED — STT_CB_FAILURE_THRESHOLD must be >= 1 "
            f"(got {settings.STT_CB_FAILURE_THRESHOLD})."
        )


def validate_startup_config(settings) -> None:
    """Centralized startup guardrails for required and warning-level config."""
    _require_positive_threshold(settings)

    invalid = []
    if settings.STT_CB_RESET_TIMEOUT_MS < 0:
        invalid.append("STT_CB_RESET_TIMEOUT_MS")
    if settings.STT_CALL_TIMEOUT_S < 0:
        invalid.append("STT_CALL_TIMEOUT_S")
    if settings.STT_MAX_AUDIO_BYTES <= 0:
        invalid.append("STT_MAX_AUDIO_BYTES")
    if invalid:
        raise RuntimeError(
            f"STARTUP FAILED — invalid values for: {', '.join(invalid)}\n"
            "Fix them in .env or container environment and restart the server."
        )

    vendor_keys = {
        "DEEPGRAM_API_KEY": settings.DEEPGRAM_API_KEY,
        "OPENAI_API_KEY": settings.OPENAI_API_KEY,
    }

    # In production, at least one real vendor must back the chain
    if settings.ENV == "prod" and not any(vendor_keys.values()):
        raise RuntimeError(
            "STARTUP FAILED — no STT vendor configured in production. "
            f"Set one of: {', '.join(vendor_keys)}"
        )

    for key, value in vendor_keys.items():
        if not value:
            logger.warning("CONFIG WARNING: %s is not set — provider will not be registered", key)
