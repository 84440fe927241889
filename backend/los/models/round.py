"""Round models: derived entity; the deadline is computed, never stored."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from los.models.fixture import Fixture


class RoundState(str, Enum):
    OPEN = "open"
    PASSED = "passed"


class Round(BaseModel):
    number: int
    deadline: Optional[datetime] = None
    state: RoundState = RoundState.OPEN

    @property
    def is_locked(self) -> bool:
        return self.state == RoundState.PASSED


class DeadlineInfo(BaseModel):
    round_number: int
    deadline: datetime
    is_passed: bool
    seconds_until_deadline: float
    time_remaining: str
    earliest_fixture: Fixture
