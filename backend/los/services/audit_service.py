"""Insert-only audit trail for round transitions, auto-picks, results and admin actions.

Records are scoped to a club edition so one audit_logs collection can serve
several engine deployments. No update or delete operations are exposed.
"""

import ipaddress
import logging
from typing import Optional

from fastapi import Request

import los.database as _db
from los.config import settings
from los.utils import utcnow

logger = logging.getLogger("los.audit")


def _truncate_ip(ip: str) -> str:
    """Mask the host part: last IPv4 octet, last IPv6 group."""
    if not ip:
        return ""
    try:
        parsed = ipaddress.ip_address(ip)
    except ValueError:
        return ip
    if parsed.version == 4:
        return ip.rsplit(".", 1)[0] + ".xxx"
    head = ip.rsplit(":", 1)[0]
    return f"{head}:xxx"


def _request_context(request: Optional[Request]) -> dict:
    if request is None:
        return {"ip_truncated": "", "request_id": None}
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else ""
    return {
        "ip_truncated": _truncate_ip(ip),
        "request_id": getattr(request.state, "request_id", None),
    }


async def log_audit(
    *,
    actor_id: str,
    target_id: str,
    action: str,
    metadata: Optional[dict] = None,
    request: Optional[Request] = None,
) -> None:
    """Write an audit record for the configured edition.

    Args:
        actor_id: "SYSTEM" for engine jobs, "ADMIN" for admin endpoints.
        target_id: What was affected, e.g. "round:5" or "fixture:<id>".
        action: e.g. "ROUND_PASSED", "AUTO_PICKS_ASSIGNED", "ADMIN_TRIGGER_DEADLINE".
        metadata: Extra context. club_id/edition_id in here override the
            configured scope (events carry their own).
        request: Admin request, for masked IP and request id.
    """
    metadata = dict(metadata or {})
    doc = {
        "timestamp": utcnow(),
        "club_id": metadata.pop("club_id", None) or settings.CLUB_ID,
        "edition_id": metadata.pop("edition_id", None) or settings.EDITION_ID,
        "actor_id": actor_id,
        "target_id": target_id,
        "action": action,
        "metadata": metadata,
        **_request_context(request),
    }
    try:
        await _db.db.audit_logs.insert_one(doc)
    except Exception:
        # Audit logging must never crash the caller
        logger.exception("Failed to write audit log: action=%s target=%s", action, target_id)


async def list_audit(
    *,
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> list[dict]:
    """Most recent audit records for the configured edition, newest first."""
    query: dict = {"club_id": settings.CLUB_ID, "edition_id": settings.EDITION_ID}
    if target_id:
        query["target_id"] = target_id
    if action:
        query["action"] = action
    docs = await _db.db.audit_logs.find(query).sort("timestamp", -1).to_list(length=max(1, min(limit, 500)))
    for doc in docs:
        doc["_id"] = str(doc["_id"])
    return docs
