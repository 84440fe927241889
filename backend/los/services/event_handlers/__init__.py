"""
backend/los/services/event_handlers/__init__.py

Purpose:
    Central registration entrypoint for engine event subscribers.

Dependencies:
    - los.services.engine
    - los.services.event_handlers.audit_handlers
"""

from __future__ import annotations

from los.config import Settings
from los.services.engine import RoundEngine
from los.services.event_handlers.audit_handlers import (
    handle_picks_assigned,
    handle_results_processed,
    handle_round_state_changed,
)


def register_event_handlers(engine: RoundEngine, settings: Settings) -> None:
    if settings.EVENT_HANDLER_AUDIT_ENABLED:
        engine.on_round_state_changed(handle_round_state_changed, name="audit_round_state")
        engine.on_picks_assigned(handle_picks_assigned, name="audit_picks_assigned")
        engine.on_results_processed(handle_results_processed, name="audit_results_processed")
