"""Observability Metrics — STT chain snapshot for monitoring."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from stt.registry import STTProviderRegistry

logger = logging.getLogger(__name__)


async def get_stt_status(registry: STTProviderRegistry, probe: bool = False) -> Dict[str, Any]:
    """Provider order and breaker states; health probes only when asked."""
    status: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "providers": registry.registered_providers,
        "circuit_breakers": registry.circuit_statuses(),
    }
    if probe:
        status["health"] = await registry.health_report()
    open_breakers = [b["name"] for b in status["circuit_breakers"] if b["state"] != "closed"]
    if open_breakers:
        logger.info("STT status: non-closed breakers=%s", open_breakers)
    return status
