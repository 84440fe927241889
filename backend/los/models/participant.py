"""Participant models: one row per player per edition."""

from typing import Optional

from pydantic import BaseModel


class Participant(BaseModel):
    id: str
    display_name: str = ""
    lives: int = 2
    is_eliminated: bool = False
    elimination_round: Optional[int] = None


class ParticipantUpdate(BaseModel):
    """Lives/elimination change computed by the result processor."""
    participant_id: str
    lives: int
    is_eliminated: bool
    elimination_round: Optional[int] = None


class StandingEntry(BaseModel):
    participant_id: str
    display_name: str
    lives: int
    is_eliminated: bool
    card_status: str
    last_pick: Optional[str] = None
    pick_count: int = 0
