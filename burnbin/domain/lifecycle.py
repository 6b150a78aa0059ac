from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Range format_expires_at can render: 0001-01-01T00:00:00.000Z to
# 9999-12-31T23:59:59.999Z. Both fit a BIGINT column.
MIN_EXPIRES_AT_MS = -62_135_596_800_000
MAX_EXPIRES_AT_MS = 253_402_300_799_999


class DenialReason(str, enum.Enum):
    EXPIRED = "EXPIRED"
    VIEW_LIMIT_EXCEEDED = "VIEW_LIMIT_EXCEEDED"


class GatedPaste(Protocol):
    expires_at: Optional[int]
    max_views: Optional[int]
    views: int


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of evaluating a paste's gating rules at a point in time."""

    granted: bool
    reason: Optional[DenialReason] = None

    @classmethod
    def grant(cls) -> "AccessDecision":
        return cls(granted=True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "AccessDecision":
        return cls(granted=False, reason=reason)


def decide_access(paste: GatedPaste, now_ms: int) -> AccessDecision:
    """
    Decide whether ``paste`` may be served at ``now_ms``.

    Expiry is checked before the view limit, so a paste that is both
    expired and exhausted is always reported as ``EXPIRED``. A paste is
    still readable at exactly its expiry instant.
    """

    if paste.expires_at is not None and now_ms > paste.expires_at:
        return AccessDecision.deny(DenialReason.EXPIRED)

    if paste.max_views is not None and (paste.views or 0) >= paste.max_views:
        return AccessDecision.deny(DenialReason.VIEW_LIMIT_EXCEEDED)

    return AccessDecision.grant()


def compute_expires_at(created_at_ms: int, ttl_seconds: Optional[int]) -> Optional[int]:
    """
    Absolute expiry instant for a paste created at ``created_at_ms``.

    Raises ``ValueError`` when the instant falls outside
    ``MIN_EXPIRES_AT_MS`` .. ``MAX_EXPIRES_AT_MS``.
    """
    if ttl_seconds is None:
        return None
    expires_at = created_at_ms + ttl_seconds * 1000
    if not MIN_EXPIRES_AT_MS <= expires_at <= MAX_EXPIRES_AT_MS:
        raise ValueError(f"Expiry instant {expires_at} is out of range.")
    return expires_at


def remaining_views(max_views: Optional[int], views_before: int) -> Optional[int]:
    """
    Views left after the current one is served.

    Uses the count read when access was decided, not a re-fetched value.
    """
    if max_views is None:
        return None
    return max_views - views_before - 1


def format_expires_at(expires_at_ms: Optional[int]) -> Optional[str]:
    """Render an epoch-millisecond instant as ISO-8601 UTC, e.g. ``1970-01-01T00:01:00.000Z``."""
    if expires_at_ms is None:
        return None
    instant = _EPOCH + timedelta(milliseconds=expires_at_ms)
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")
