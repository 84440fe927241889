"""Pick models: one team per participant per round."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from los.utils import utcnow

PickResult = Literal["win", "loss", "draw"]


class Pick(BaseModel):
    participant_id: str
    round_number: int
    team_picked: str
    is_auto_pick: bool = False
    # win | loss | draw; legacy rows may carry "L"/"W"/"D"
    result: Optional[str] = None
    lives_after_pick: Optional[int] = None
    saved_at: datetime = Field(default_factory=utcnow)
    processed_at: Optional[datetime] = None


class PickResultUpdate(BaseModel):
    """Outcome written back onto a pick once its fixture is finished."""
    participant_id: str
    round_number: int
    result: PickResult
    lives_after_pick: int
    processed_at: datetime


class PickCreate(BaseModel):
    """Request body for a manual pick."""
    participant_id: str
    round_number: int
    team: str


class PickStatus(BaseModel):
    """Deadline/pick status for one participant in one round."""
    participant_id: str
    round_number: int
    has_pick: bool
    is_deadline_passed: bool
    pick: Optional[Pick] = None
