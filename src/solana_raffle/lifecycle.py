from __future__ import annotations

from enum import Enum

from .errors import AlreadyCompleted, NoParticipants, NotEligible, Unauthorized
from .models import Raffle


class RaffleState(Enum):
    OPEN = "open"
    ELIGIBLE = "eligible"
    COMPLETED = "completed"


def is_expired(raffle: Raffle, now: int) -> bool:
    return now >= raffle.end_time


def is_full(raffle: Raffle, entry_count: int) -> bool:
    return raffle.max_tickets > 0 and entry_count >= raffle.max_tickets


def derive_state(raffle: Raffle, entry_count: int, now: int) -> RaffleState:
    if raffle.is_completed:
        return RaffleState.COMPLETED
    if is_expired(raffle, now) or is_full(raffle, entry_count):
        return RaffleState.ELIGIBLE
    return RaffleState.OPEN


def finalize_trigger(raffle: Raffle, entry_count: int, caller: str, now: int) -> bool:
    """
    Decide whether `caller` may finalize right now.

    Returns True when the raffle finalizes by expiry (any caller, reward
    paid) and False when it finalizes because it sold out (creator only, no
    reward).
    """
    if raffle.is_completed:
        raise AlreadyCompleted(f"Raffle {raffle.id} is already completed", raffle.id)
    if entry_count == 0:
        raise NoParticipants(f"Raffle {raffle.id} has no entries", raffle.id)

    if is_expired(raffle, now):
        return True
    if not is_full(raffle, entry_count):
        raise NotEligible(
            f"Raffle {raffle.id} is neither expired nor sold out", raffle.id
        )
    if caller != raffle.creator:
        raise Unauthorized(
            f"Only the creator can finalize sold-out raffle {raffle.id} before it ends",
            raffle.id,
        )
    return False
