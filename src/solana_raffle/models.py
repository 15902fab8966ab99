"""Records kept by the raffle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import InvalidInput
from .project_constants import (
    BPS_DENOMINATOR,
    FINALIZATION_REWARD_BPS,
    MAX_FINALIZATION_REWARD,
    MIN_FINALIZATION_REWARD,
)


@dataclass
class Raffle:
    """One raffle. Mutated only by the registry, never deleted."""

    id: int
    creator: str
    title: str
    description: str
    category: str
    ticket_price: int  # lamports
    max_tickets: int  # 0 = unlimited
    end_time: int  # unix seconds
    num_winners: int
    creator_fee_bps: int
    allow_multiple_entries: bool
    created_at: int
    is_active: bool = True
    is_completed: bool = False
    total_pool: int = 0
    winners: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TicketEntry:
    raffle_id: int
    participant: str


@dataclass(frozen=True)
class DrawSeed:
    """Inputs committed at finalize time. None of them exist at creation."""

    timestamp: int
    entropy: str  # blockhash or host entropy
    sequence: int  # slot height or monotonic counter


@dataclass(frozen=True)
class PayoutSplit:
    pool: int
    finalization_reward: int
    creator_reward: int
    prize_pool: int
    prize_per_winner: int
    remainder: int
    payouts: Tuple[int, ...]

    def total(self) -> int:
        return self.finalization_reward + self.creator_reward + sum(self.payouts)


@dataclass(frozen=True)
class RewardPolicy:
    """Finalization incentive bounds (deployment parameters, lamports)."""

    min_reward: int = MIN_FINALIZATION_REWARD
    max_reward: int = MAX_FINALIZATION_REWARD
    reward_bps: int = FINALIZATION_REWARD_BPS

    def __post_init__(self) -> None:
        if self.min_reward < 0 or self.max_reward < 0:
            raise InvalidInput("finalization reward bounds must be non-negative")
        if self.min_reward > self.max_reward:
            raise InvalidInput("min finalization reward exceeds max")
        if not 0 <= self.reward_bps <= BPS_DENOMINATOR:
            raise InvalidInput("finalization reward bps out of range")


@dataclass(frozen=True)
class Transfer:
    to: str
    amount: int
    kind: str  # "finalization_reward" | "creator_reward" | "prize"


@dataclass(frozen=True)
class Settlement:
    """Everything needed to audit a finalized raffle."""

    raffle_id: int
    finalizer: str
    finalized_at: int
    triggered_by_expiry: bool
    seed: Optional[DrawSeed]
    winner_indices: Tuple[int, ...]
    winners: Tuple[str, ...]
    split: PayoutSplit
    # Policies in force when the raffle was finalized
    reward_policy: RewardPolicy = RewardPolicy()
    winner_policy: str = "cap"


@dataclass(frozen=True)
class PurchaseReceipt:
    raffle_id: int
    participant: str
    ticket_numbers: Tuple[int, ...]
    amount_paid: int
    total_pool: int


@dataclass(frozen=True)
class FinalizeReceipt:
    raffle_id: int
    winners: Tuple[str, ...]
    payouts: Tuple[int, ...]
    finalization_reward: int
    creator_reward: int
    triggered_by_expiry: bool


# Event log records


@dataclass(frozen=True)
class RaffleCreated:
    raffle_id: int
    creator: str
    title: str
    ticket_price: int
    max_tickets: int
    end_time: int
    num_winners: int
    creator_fee_bps: int
    allow_multiple_entries: bool


@dataclass(frozen=True)
class TicketsPurchased:
    raffle_id: int
    participant: str
    ticket_numbers: Tuple[int, ...]
    amount_paid: int


@dataclass(frozen=True)
class WinnersSelected:
    raffle_id: int
    winners: Tuple[str, ...]
    prize_per_winner: int
    creator_reward: int
    finalization_reward: int
