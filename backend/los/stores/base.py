from abc import ABC, abstractmethod

from los.models.fixture import Fixture
from los.models.participant import Participant, ParticipantUpdate
from los.models.pick import Pick, PickResultUpdate


class FixtureFeed(ABC):
    """Read-only source of per-round fixture data."""

    @abstractmethod
    async def get_fixtures(self, round_number: int) -> list[Fixture]:
        """All fixtures of a round, scheduled or finished."""
        ...

    @abstractmethod
    async def get_finished_fixtures(self, round_number: int) -> list[Fixture]:
        """Fixtures of a round that are finished and carry both scores."""
        ...

    @abstractmethod
    async def get_rounds(self) -> list[int]:
        """Round numbers that have at least one fixture, ascending."""
        ...


class GameStore(ABC):
    """Persistent participants and picks, scoped to one club edition.

    Implementations raise TransientStoreError for connectivity problems so
    callers can retry. No compare-and-swap is assumed: batch writes must be
    atomic and pick writes keyed on (participant_id, round_number).
    """

    @abstractmethod
    async def get_current_round(self) -> int | None:
        ...

    @abstractmethod
    async def list_participants(self) -> list[Participant]:
        ...

    @abstractmethod
    async def get_participant(self, participant_id: str) -> Participant | None:
        ...

    @abstractmethod
    async def list_picks(
        self,
        participant_id: str | None = None,
        round_number: int | None = None,
    ) -> list[Pick]:
        ...

    @abstractmethod
    async def get_pick(self, participant_id: str, round_number: int) -> Pick | None:
        ...

    @abstractmethod
    async def create_pick(self, pick: Pick) -> Pick:
        """Insert a manual pick. Raises DuplicatePickError if one already exists."""
        ...

    @abstractmethod
    async def write_auto_picks(self, picks: list[Pick]) -> list[tuple[str, int]]:
        """Atomically insert picks; existing (participant, round) rows are left untouched.

        Returns the (participant_id, round_number) keys of the picks actually inserted.
        """
        ...

    @abstractmethod
    async def apply_fixture_results(
        self,
        pick_updates: list[PickResultUpdate],
        participant_updates: list[ParticipantUpdate],
    ) -> None:
        """Atomically write pick outcomes and participant lives for one fixture."""
        ...
