"""STT auth guard — validates the caller context before any provider call.

Identity is established upstream; this only checks that the context
handed to the transcription path is usable for quota accounting.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.exceptions import AuthError, InvalidTierError

logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


VALID_TIERS = tuple(t.value for t in SubscriptionTier)


@dataclass
class STTAuthContext:
    """Caller context for a transcription request."""
    user_id: str
    tier: str = SubscriptionTier.FREE.value
    org_id: Optional[str] = None


def validate_auth(auth: STTAuthContext) -> None:
    """Raises AuthError (401) or InvalidTierError (400)."""
    if not auth.user_id:
        logger.warning("[STT:GUARD] Rejected: missing user id")
        raise AuthError("User ID required")
    if auth.tier not in VALID_TIERS:
        logger.warning("[STT:GUARD] Rejected: user=%s tier=%s", auth.user_id, auth.tier)
        raise InvalidTierError("Invalid subscription tier")
