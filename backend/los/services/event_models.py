"""
backend/los/services/event_models.py

Purpose:
    Engine event contracts published on the in-process bus for UI and audit
    subscribers.

Dependencies:
    - pydantic
    - los.utils
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from los.utils import ensure_utc, utcnow

EventType = Literal[
    "round.state_changed",
    "picks.assigned",
    "results.processed",
]


def make_event_id() -> str:
    return str(uuid.uuid4())


def make_correlation_id() -> str:
    return str(uuid.uuid4())


class BaseEvent(BaseModel):
    event_id: str = Field(default_factory=make_event_id)
    event_type: EventType
    occurred_at: datetime = Field(default_factory=utcnow)
    correlation_id: str = Field(default_factory=make_correlation_id)
    source: str
    club_id: str = ""
    edition_id: str = ""


class RoundStateChangedEvent(BaseEvent):
    event_type: Literal["round.state_changed"] = "round.state_changed"
    round_number: int
    state: str
    deadline: datetime | None = None


class PicksAssignedEvent(BaseEvent):
    event_type: Literal["picks.assigned"] = "picks.assigned"
    round_number: int
    count: int
    participant_ids: list[str] = Field(default_factory=list)


class ResultsProcessedEvent(BaseEvent):
    event_type: Literal["results.processed"] = "results.processed"
    round_number: int
    fixture_id: str
    updated_picks: int = 0
    eliminated: list[str] = Field(default_factory=list)


def normalize_event_time(event: BaseEvent) -> BaseEvent:
    event.occurred_at = ensure_utc(event.occurred_at)
    return event
