"""Standings: participants ordered by remaining lives."""

from collections.abc import Iterable

from los.models.participant import Participant, StandingEntry
from los.models.pick import Pick
from los.services.lives_calculator import card_status


def build_standings(participants: Iterable[Participant], picks: Iterable[Pick]) -> list[StandingEntry]:
    by_participant: dict[str, list[Pick]] = {}
    for pick in picks:
        by_participant.setdefault(pick.participant_id, []).append(pick)

    rows = []
    for p in participants:
        own = sorted(by_participant.get(p.id, []), key=lambda x: x.round_number)
        rows.append(StandingEntry(
            participant_id=p.id,
            display_name=p.display_name,
            lives=p.lives,
            is_eliminated=p.is_eliminated,
            card_status=card_status(p.lives),
            last_pick=own[-1].team_picked if own else None,
            pick_count=len(own),
        ))
    # Most lives first; ties by name
    rows.sort(key=lambda r: (-r.lives, r.display_name.lower(), r.participant_id))
    return rows
