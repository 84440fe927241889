"""
backend/los/stores/mongo.py

Purpose:
    MongoDB-backed GameStore and FixtureFeed. Every document carries
    club_id/edition_id; queries are scoped to one edition. Multi-document
    writes run inside a transaction so a batch lands entirely or not at all.

Dependencies:
    - motor
    - pymongo
    - los.stores.base
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, ConnectionFailure, DuplicateKeyError, PyMongoError

from los.errors import DuplicatePickError, StoreWriteError, TransientStoreError
from los.models.fixture import Fixture
from los.models.participant import Participant, ParticipantUpdate
from los.models.pick import Pick, PickResultUpdate
from los.services.lives_calculator import DEFAULT_STARTING_LIVES
from los.stores.base import FixtureFeed, GameStore
from los.utils import ensure_utc, utcnow

logger = logging.getLogger("los.stores.mongo")

T = TypeVar("T")

_FINISHED_STATUSES = {"finished", "completed", "ft", "full time", "final"}
_DUPLICATE_KEY = 11000


def _is_transient(exc: PyMongoError) -> bool:
    if isinstance(exc, ConnectionFailure):
        return True
    return exc.has_error_label("TransientTransactionError") or exc.has_error_label(
        "UnknownTransactionCommitResult"
    )


def _only_duplicate_keys(exc: BulkWriteError) -> bool:
    errors = (exc.details or {}).get("writeErrors") or []
    return bool(errors) and all(err.get("code") == _DUPLICATE_KEY for err in errors)


def _translate(name: str, exc: PyMongoError) -> Exception:
    if _is_transient(exc):
        return TransientStoreError(f"{name}: {exc}")
    return StoreWriteError(f"{name}: {exc}")


async def _guard(name: str, func: Callable[[], Awaitable[T]]) -> T:
    """Translate driver errors into the engine's error taxonomy."""
    try:
        return await func()
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        raise _translate(name, exc) from exc


# ---------------------------------------------------------------------------
# Document mapping
# ---------------------------------------------------------------------------

def _first(doc: dict, *keys: str) -> Any:
    for key in keys:
        value = doc.get(key)
        if value is not None:
            return value
    return None


def parse_kickoff(doc: dict) -> tuple[datetime | None, str | None]:
    """Return (kickoff, raw_text). kickoff is None when nothing parseable exists.

    Accepts a datetime (or ISO string) in kickoff_time, or the split
    date ("YYYY-MM-DD") + kick_off_time ("HH:MM[:SS]") form.
    """
    value = _first(doc, "kickoff_time", "kickoff_at")
    if isinstance(value, datetime):
        return ensure_utc(value), None

    if isinstance(value, str) and "T" in value:
        raw = value
    else:
        date_part = _first(doc, "date", "match_date")
        time_part = value if isinstance(value, str) else _first(doc, "kick_off_time", "kickOffTime")
        if isinstance(date_part, datetime):
            date_part = date_part.date().isoformat()
        if not date_part or not time_part:
            return None, f"{date_part or ''}T{time_part or ''}"
        raw = f"{date_part}T{time_part}"

    try:
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00"))), raw
    except ValueError:
        return None, raw


def _normalize_status(raw: Any) -> str:
    if isinstance(raw, dict):
        candidates = [raw.get("short"), raw.get("full")]
    else:
        candidates = [raw]
    for value in candidates:
        if isinstance(value, str) and value.strip().lower() in _FINISHED_STATUSES:
            return "finished"
    return "scheduled"


def _score(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def fixture_from_doc(doc: dict) -> Fixture:
    kickoff, raw = parse_kickoff(doc)
    return Fixture(
        id=str(doc.get("_id", "")),
        round_number=int(_first(doc, "round_number", "gameWeek", "gameweek")),
        home_team=str(_first(doc, "home_team", "homeTeam") or ""),
        away_team=str(_first(doc, "away_team", "awayTeam") or ""),
        kickoff_time=kickoff,
        kickoff_raw=raw,
        status=_normalize_status(doc.get("status")),
        home_score=_score(_first(doc, "home_score", "homeScore")),
        away_score=_score(_first(doc, "away_score", "awayScore")),
    )


def participant_from_doc(doc: dict, starting_lives: int = DEFAULT_STARTING_LIVES) -> Participant:
    # Registration may not have written lives yet
    return Participant(
        id=str(doc["participant_id"]),
        display_name=doc.get("display_name") or "",
        lives=int(doc.get("lives", starting_lives)),
        is_eliminated=bool(doc.get("is_eliminated", False)),
        elimination_round=doc.get("elimination_round"),
    )


def pick_from_doc(doc: dict) -> Pick:
    return Pick(
        participant_id=str(doc["participant_id"]),
        round_number=int(doc["round_number"]),
        team_picked=doc["team_picked"],
        is_auto_pick=bool(doc.get("is_auto_pick", False)),
        result=doc.get("result"),
        lives_after_pick=doc.get("lives_after_pick"),
        saved_at=ensure_utc(doc.get("saved_at") or utcnow()),
        processed_at=doc.get("processed_at"),
    )


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class _ScopedCollections:
    def __init__(self, db, club_id: str, edition_id: str):
        self._db = db
        self.club_id = club_id
        self.edition_id = edition_id

    @property
    def scope(self) -> dict[str, str]:
        return {"club_id": self.club_id, "edition_id": self.edition_id}


class MongoFixtureFeed(_ScopedCollections, FixtureFeed):
    def _round_query(self, round_number: int) -> dict:
        return {
            **self.scope,
            "$or": [{"round_number": round_number}, {"gameWeek": round_number}],
        }

    async def get_fixtures(self, round_number: int) -> list[Fixture]:
        docs = await _guard(
            "fixtures.find",
            lambda: self._db.fixtures.find(self._round_query(round_number)).to_list(length=500),
        )
        fixtures: list[Fixture] = []
        for doc in docs:
            try:
                fixtures.append(fixture_from_doc(doc))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed fixture %s: %s", doc.get("_id"), exc)
        return fixtures

    async def get_finished_fixtures(self, round_number: int) -> list[Fixture]:
        return [f for f in await self.get_fixtures(round_number) if f.is_finished]

    async def get_rounds(self) -> list[int]:
        rounds: set[int] = set()
        for field in ("round_number", "gameWeek"):
            values = await _guard(
                "fixtures.distinct",
                lambda field=field: self._db.fixtures.distinct(field, self.scope),
            )
            rounds.update(int(v) for v in values if v is not None)
        return sorted(rounds)


class MongoGameStore(_ScopedCollections, GameStore):
    def __init__(
        self,
        db,
        club_id: str,
        edition_id: str,
        *,
        use_transactions: bool = True,
        starting_lives: int = DEFAULT_STARTING_LIVES,
    ):
        super().__init__(db, club_id, edition_id)
        self._use_transactions = use_transactions
        self._starting_lives = starting_lives

    async def _in_transaction(self, work: Callable[[Any], Awaitable[T]]) -> T:
        if not self._use_transactions:
            return await work(None)
        async with await self._db.client.start_session() as session:
            async with session.start_transaction():
                return await work(session)

    async def get_current_round(self) -> int | None:
        doc = await _guard("editions.find_one", lambda: self._db.editions.find_one(self.scope))
        if not doc or doc.get("current_round") is None:
            return None
        return int(doc["current_round"])

    async def list_participants(self) -> list[Participant]:
        docs = await _guard(
            "participants.find",
            lambda: self._db.participants.find(self.scope).to_list(length=5000),
        )
        return [participant_from_doc(d, self._starting_lives) for d in docs]

    async def get_participant(self, participant_id: str) -> Participant | None:
        doc = await _guard(
            "participants.find_one",
            lambda: self._db.participants.find_one({**self.scope, "participant_id": participant_id}),
        )
        return participant_from_doc(doc, self._starting_lives) if doc else None

    async def list_picks(
        self,
        participant_id: str | None = None,
        round_number: int | None = None,
    ) -> list[Pick]:
        query: dict[str, Any] = dict(self.scope)
        if participant_id is not None:
            query["participant_id"] = participant_id
        if round_number is not None:
            query["round_number"] = round_number
        docs = await _guard("picks.find", lambda: self._db.picks.find(query).to_list(length=20000))
        return [pick_from_doc(d) for d in docs]

    async def get_pick(self, participant_id: str, round_number: int) -> Pick | None:
        doc = await _guard(
            "picks.find_one",
            lambda: self._db.picks.find_one({
                **self.scope, "participant_id": participant_id, "round_number": round_number,
            }),
        )
        return pick_from_doc(doc) if doc else None

    def _pick_doc(self, pick: Pick) -> dict:
        now = utcnow()
        return {
            **self.scope,
            **pick.model_dump(),
            "created_at": now,
            "updated_at": now,
        }

    async def create_pick(self, pick: Pick) -> Pick:
        try:
            await _guard("picks.insert_one", lambda: self._db.picks.insert_one(self._pick_doc(pick)))
        except DuplicateKeyError:
            raise DuplicatePickError(
                f"You already have a pick for round {pick.round_number}.",
                participant_id=pick.participant_id, round_number=pick.round_number,
            )
        return pick

    async def write_auto_picks(self, picks: list[Pick]) -> list[tuple[str, int]]:
        if not picks:
            return []
        ops = [
            UpdateOne(
                {**self.scope, "participant_id": p.participant_id, "round_number": p.round_number},
                {"$setOnInsert": self._pick_doc(p)},
                upsert=True,
            )
            for p in picks
        ]

        async def _work(session):
            result = await self._db.picks.bulk_write(ops, ordered=True, session=session)
            # upserted_ids is keyed by op index; rows that already existed are absent
            return [(picks[i].participant_id, picks[i].round_number) for i in sorted(result.upserted_ids)]

        try:
            return await self._in_transaction(_work)
        except (BulkWriteError, DuplicateKeyError) as exc:
            # Another instance inserted the same (participant, round) first; a retry is a no-op for it.
            if isinstance(exc, DuplicateKeyError) or _only_duplicate_keys(exc):
                raise TransientStoreError(f"picks.bulk_write: concurrent insert: {exc}") from exc
            raise _translate("picks.bulk_write", exc) from exc
        except PyMongoError as exc:
            raise _translate("picks.bulk_write", exc) from exc

    async def apply_fixture_results(
        self,
        pick_updates: list[PickResultUpdate],
        participant_updates: list[ParticipantUpdate],
    ) -> None:
        if not pick_updates and not participant_updates:
            return
        now = utcnow()
        pick_ops = [
            UpdateOne(
                # result: None guard keeps a set result stable
                {**self.scope, "participant_id": u.participant_id, "round_number": u.round_number, "result": None},
                {"$set": {
                    "result": u.result,
                    "lives_after_pick": u.lives_after_pick,
                    "processed_at": u.processed_at,
                    "updated_at": now,
                }},
            )
            for u in pick_updates
        ]
        participant_ops = []
        for u in participant_updates:
            fields: dict[str, Any] = {"lives": u.lives, "updated_at": now}
            if u.is_eliminated:
                fields["is_eliminated"] = True
                fields["elimination_round"] = u.elimination_round
            participant_ops.append(
                UpdateOne({**self.scope, "participant_id": u.participant_id}, {"$set": fields})
            )

        async def _work(session):
            if pick_ops:
                await self._db.picks.bulk_write(pick_ops, ordered=False, session=session)
            if participant_ops:
                await self._db.participants.bulk_write(participant_ops, ordered=False, session=session)

        await _guard("results.bulk_write", lambda: self._in_transaction(_work))
