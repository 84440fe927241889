"""
backend/los/errors.py

Purpose:
    Error taxonomy for the round engine. Validation errors are user-visible
    rejections; store and integrity errors are operational.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all round engine errors."""


class TransientStoreError(EngineError):
    """Store unavailable or timed out; safe to retry."""


class StoreWriteError(EngineError):
    """Store rejected a write for a non-transient reason."""


class DataIntegrityError(EngineError):
    """Fixture data is unusable (e.g. no parseable kickoff in a round)."""

    def __init__(self, round_number: int, message: str) -> None:
        super().__init__(f"Round {round_number}: {message}")
        self.round_number = round_number


class PartialAssignmentError(EngineError):
    """Auto-pick batch write failed; no pick of the batch was applied."""

    def __init__(self, round_number: int, attempted: int, cause: Exception | None = None) -> None:
        super().__init__(f"Auto-pick batch for round {round_number} failed ({attempted} picks not applied)")
        self.round_number = round_number
        self.attempted = attempted
        self.cause = cause


class ParticipantNotFoundError(EngineError):
    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Participant {participant_id} not found.")
        self.participant_id = participant_id


class PickValidationError(EngineError):
    """Base for pick rejections. Never retried; surfaced to the caller."""

    status_code = 400

    def __init__(self, message: str, *, participant_id: str = "", round_number: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.participant_id = participant_id
        self.round_number = round_number


class DeadlinePassedError(PickValidationError):
    pass


class EliminatedParticipantError(PickValidationError):
    pass


class DuplicatePickError(PickValidationError):
    status_code = 409


class TeamAlreadyUsedError(PickValidationError):
    pass


class TeamNotInRoundError(PickValidationError):
    pass
