"""
backend/los/services/lives_calculator.py

Purpose:
    Pure lives derivation from a participant's pick history, plus the card
    status labels shown in standings.

Dependencies:
    - los.models.pick
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

DEFAULT_STARTING_LIVES = 2
_LOSS_TOKENS = frozenset({"loss", "l"})


def _result_of(pick: Any) -> str | None:
    if pick is None:
        return None
    if isinstance(pick, Mapping):
        return pick.get("result")
    return getattr(pick, "result", None)


def _iter_picks(picks: Any) -> Iterable[Any]:
    if not picks:
        return ()
    # {round: pick} histories count their values
    if isinstance(picks, Mapping):
        return picks.values()
    return picks


def is_loss(result: str | None) -> bool:
    return isinstance(result, str) and result.strip().lower() in _LOSS_TOKENS


def count_losses(picks: Any) -> int:
    """Number of picks whose result denotes a loss ("loss" or "L", any case)."""
    return sum(1 for pick in _iter_picks(picks) if is_loss(_result_of(pick)))


def compute_lives(picks: Any, starting_lives: int = DEFAULT_STARTING_LIVES) -> int:
    """Remaining lives for a pick history.

    Only the number of losing picks matters; wins, draws, pending and unknown
    results are neutral. The result is floored at zero.
    """
    return max(0, starting_lives - count_losses(picks))


def card_status(lives: int) -> str:
    if lives <= 0:
        return "red-card"
    if lives == 1:
        return "yellow-card"
    return "no-cards"


def card_status_text(lives: int) -> str:
    if lives <= 0:
        return "Red Card (Eliminated)"
    if lives == 1:
        return "Yellow Card (1 Life)"
    return f"No Cards ({lives} Lives)"
