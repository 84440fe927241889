"""Fixture models: read-only match data supplied by the fixture feed."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

FixtureStatus = Literal["scheduled", "finished"]


class Fixture(BaseModel):
    id: str = ""
    round_number: int
    home_team: str
    away_team: str
    # None when the feed could not parse the stored date/time
    kickoff_time: Optional[datetime] = None
    kickoff_raw: Optional[str] = None
    status: FixtureStatus = "scheduled"
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.status == "finished" and self.home_score is not None and self.away_score is not None

    @property
    def label(self) -> str:
        return f"{self.home_team} vs {self.away_team}"
