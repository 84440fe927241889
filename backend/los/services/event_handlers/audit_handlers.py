"""
backend/los/services/event_handlers/audit_handlers.py

Purpose:
    Persist engine notifications to the audit log.

Dependencies:
    - los.services.audit_service
    - los.services.event_models
"""

from __future__ import annotations

import logging

from los.services.audit_service import log_audit
from los.services.event_models import BaseEvent

logger = logging.getLogger("los.event_handlers.audit")


def _scope(event: BaseEvent) -> dict:
    return {
        "club_id": event.club_id,
        "edition_id": event.edition_id,
        "event_id": event.event_id,
        "correlation_id": event.correlation_id,
        "source": event.source,
    }


async def handle_round_state_changed(event: BaseEvent) -> None:
    round_number = getattr(event, "round_number", None)
    state = str(getattr(event, "state", "") or "")
    deadline = getattr(event, "deadline", None)
    await log_audit(
        actor_id="SYSTEM",
        target_id=f"round:{round_number}",
        action=f"ROUND_{state.upper()}",
        metadata={**_scope(event), "deadline": deadline.isoformat() if deadline else None},
    )


async def handle_picks_assigned(event: BaseEvent) -> None:
    round_number = getattr(event, "round_number", None)
    count = int(getattr(event, "count", 0) or 0)
    await log_audit(
        actor_id="SYSTEM",
        target_id=f"round:{round_number}",
        action="AUTO_PICKS_ASSIGNED",
        metadata={
            **_scope(event),
            "count": count,
            "participant_ids": list(getattr(event, "participant_ids", []) or []),
        },
    )
    logger.debug("Audited %d auto-picks for round %s", count, round_number)


async def handle_results_processed(event: BaseEvent) -> None:
    await log_audit(
        actor_id="SYSTEM",
        target_id=f"fixture:{getattr(event, 'fixture_id', '')}",
        action="RESULTS_PROCESSED",
        metadata={
            **_scope(event),
            "round_number": getattr(event, "round_number", None),
            "updated_picks": getattr(event, "updated_picks", 0),
            "eliminated": list(getattr(event, "eliminated", []) or []),
        },
    )
