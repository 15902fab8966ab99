from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

from .errors import NoParticipants, NotEnoughEntries
from .project_constants import LAMPORTS_PER_SOL
from .randomness import RandomnessSource

log = logging.getLogger(__name__)


class WinnerPolicy(Enum):
    CAP = "cap"  # fewer entries than requested winners: draw every entry
    STRICT = "strict"  # fewer entries than requested winners: refuse


@dataclass(frozen=True)
class DrawResult:
    winners: Tuple[str, ...]
    # Ticket number (position in the entry list) each winner was drawn from
    winner_indices: Tuple[int, ...]
    # (bound, reduced draw) per winner slot
    draws: Tuple[Tuple[int, int], ...]


def to_sol(lamports: int) -> float:
    return round(lamports / LAMPORTS_PER_SOL, 9)


def format_sol(lamports: int) -> str:
    whole, frac = divmod(lamports, LAMPORTS_PER_SOL)
    return f"{whole}.{frac:09d}".rstrip("0").rstrip(".") + " SOL"


def winner_count(requested: int, entry_count: int, policy: WinnerPolicy) -> int:
    if entry_count <= 0:
        raise NoParticipants("No entries to draw from")
    if requested > entry_count and policy is WinnerPolicy.STRICT:
        raise NotEnoughEntries(
            f"{requested} winners requested but only {entry_count} entries"
        )
    return min(requested, entry_count)


def select_winners(
    raffle_id: int,
    entries: Sequence[str],
    num_winners: int,
    source: RandomnessSource,
    policy: WinnerPolicy = WinnerPolicy.CAP,
) -> DrawResult:
    """
    Partial Fisher-Yates over ticket entries: draw k picks from the first
    N - k slots of a working array, then swaps the pick to the end, so no
    ticket is drawn twice. A participant holding several tickets may fill
    several winner slots.
    """
    n = len(entries)
    actual = winner_count(num_winners, n, policy)

    working: List[int] = list(range(n))
    winners: List[str] = []
    indices: List[int] = []
    draws: List[Tuple[int, int]] = []

    for k in range(actual):
        bound = n - k
        r = source.draw(raffle_id, k, bound) % bound
        picked = working[r]
        winners.append(entries[picked])
        indices.append(picked)
        draws.append((bound, r))
        working[r], working[bound - 1] = working[bound - 1], working[r]

    log.debug("Raffle %d drew tickets %s", raffle_id, indices)
    return DrawResult(tuple(winners), tuple(indices), tuple(draws))
