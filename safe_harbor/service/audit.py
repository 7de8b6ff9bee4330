# safe_harbor/service/audit.py

"""Audit log entry construction.

Building an entry never raises: an audit failure must not block the
request it describes. Persisting entries is the caller's job.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from safe_harbor.core.domain import AuditLogEntry

logger = logging.getLogger(__name__)

DEFAULT_ACTION = "PHI_ACCESS"
CONSENT_GRANTED = "USER_CONSENT_GRANTED"
CONSENT_REVOKED = "USER_CONSENT_REVOKED"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_audit_entry(
    context: Optional[Mapping[str, Any]] = None, clock: Optional[Clock] = None
) -> AuditLogEntry:
    """Builds an audit entry from a loosely typed context.

    Keys are accepted in snake_case or camelCase (``ip_address`` or
    ``ipAddress``). Values are coerced; anything that cannot be coerced is
    dropped rather than raising.

    Args:
        context: Mapping with action, endpoint, phi_detected, items_redacted,
            categories, user_id, session_id, ip_address, user_agent
        clock: Timestamp source, injectable for deterministic tests

    Returns:
        AuditLogEntry; ``user_id`` defaults to "anonymous"
    """
    ctx = context if isinstance(context, Mapping) else {}

    try:
        return AuditLogEntry(
            timestamp=_timestamp(clock),
            action=_as_str(_pick(ctx, "action")) or DEFAULT_ACTION,
            endpoint=_as_str(_pick(ctx, "endpoint")),
            phi_detected=_as_bool(_pick(ctx, "phi_detected", "phiDetected")),
            items_redacted=_as_int(_pick(ctx, "items_redacted", "itemsRedacted")),
            categories=_as_categories(_pick(ctx, "categories")),
            user_id=_as_str(_pick(ctx, "user_id", "userId")) or "anonymous",
            session_id=_as_str(_pick(ctx, "session_id", "sessionId")),
            ip_address=_as_str(_pick(ctx, "ip_address", "ipAddress")),
            user_agent=_as_str(_pick(ctx, "user_agent", "userAgent")),
        )
    except Exception:
        logger.warning("Audit context could not be coerced, recording a minimal entry", exc_info=True)
        return AuditLogEntry(timestamp=_timestamp(clock), action=DEFAULT_ACTION)


def record_consent(
    user_id: Optional[str],
    granted: bool,
    session_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    endpoint: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> AuditLogEntry:
    """Builds the audit entry for a user granting or revoking consent."""
    return make_audit_entry(
        {
            "action": CONSENT_GRANTED if granted else CONSENT_REVOKED,
            "endpoint": endpoint,
            "user_id": user_id,
            "session_id": session_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
        },
        clock=clock,
    )


def _timestamp(clock: Optional[Clock]) -> str:
    if clock is None:
        return _utc_now().isoformat()
    try:
        return clock().isoformat()
    except Exception:
        logger.warning("Audit clock failed, using system time", exc_info=True)
        return _utc_now().isoformat()


def _pick(ctx: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if ctx.get(key) is not None:
            return ctx[key]
    return None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_categories(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    try:
        items = list(value)
    except TypeError:
        return [str(value)]
    return sorted({str(item.value) if isinstance(item, Enum) else str(item) for item in items})
