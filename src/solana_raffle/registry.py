from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .accounts import validate_address
from .arith import checked_add, checked_mul
from .custody import FundCustody
from .draw import WinnerPolicy, select_winners
from .errors import (
    CapacityExceeded,
    DuplicateEntryNotAllowed,
    InvalidInput,
    PaymentMismatch,
    RaffleNotActive,
    RaffleNotFound,
)
from .ledger import TicketLedger
from .lifecycle import RaffleState, derive_state, finalize_trigger, is_expired
from .models import (
    FinalizeReceipt,
    PurchaseReceipt,
    Raffle,
    RaffleCreated,
    Settlement,
    TicketsPurchased,
    Transfer,
    WinnersSelected,
)
from .payout import RewardPolicy, compute_payouts
from .project_constants import (
    BPS_DENOMINATOR,
    MAX_TICKETS_PER_PURCHASE,
    MAX_WINNERS,
    UINT256_MAX,
)
from .randomness import RandomnessSource

log = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    def now(self) -> int:
        return int(time.time())


def _require_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{field} must be an integer")
    return value


class RaffleRegistry:
    """
    Owns every raffle record and drives the create -> buy -> finalize
    lifecycle. Each raffle is mutated under its own lock; a failed call
    leaves the record unchanged.
    """

    def __init__(
        self,
        custody: FundCustody,
        randomness: RandomnessSource,
        clock: Optional[Clock] = None,
        reward_policy: RewardPolicy = RewardPolicy(),
        winner_policy: WinnerPolicy = WinnerPolicy.CAP,
        max_tickets_per_purchase: int = MAX_TICKETS_PER_PURCHASE,
    ) -> None:
        self.custody = custody
        self.randomness = randomness
        self.clock = clock or SystemClock()
        self.reward_policy = reward_policy
        self.winner_policy = winner_policy
        self.max_tickets_per_purchase = max_tickets_per_purchase
        self.ledger = TicketLedger()
        self.events: List[Any] = []

        self._raffles: Dict[int, Raffle] = {}
        self._settlements: Dict[int, Settlement] = {}
        self._locks: Dict[int, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._next_id = 0

    # ---------- Internals ----------
    def _lock_for(self, raffle_id: int) -> threading.RLock:
        with self._registry_lock:
            if raffle_id not in self._raffles:
                raise RaffleNotFound(f"Raffle {raffle_id} does not exist", raffle_id)
            lock = self._locks.get(raffle_id)
            if lock is None:
                lock = self._locks[raffle_id] = threading.RLock()
            return lock

    def _get(self, raffle_id: int) -> Raffle:
        raffle = self._raffles.get(raffle_id)
        if raffle is None:
            raise RaffleNotFound(f"Raffle {raffle_id} does not exist", raffle_id)
        return raffle

    def load_records(
        self,
        raffles: Iterable[Raffle],
        settlements: Iterable[Settlement],
        next_id: int,
    ) -> None:
        """Installs persisted records into an empty registry."""
        with self._registry_lock:
            if self._raffles:
                raise RuntimeError("Registry already holds raffles")
            for raffle in raffles:
                self._raffles[raffle.id] = raffle
            for settlement in settlements:
                self._settlements[settlement.raffle_id] = settlement
            self._next_id = max([next_id] + [r + 1 for r in self._raffles])

    # ---------- Create ----------
    def create_raffle(
        self,
        creator: str,
        title: str,
        description: str,
        category: str,
        ticket_price: int,
        end_time: int,
        num_winners: int,
        creator_fee_bps: int,
        max_tickets: int = 0,
        allow_multiple_entries: bool = True,
    ) -> int:
        validate_address(creator, "creator")
        if not isinstance(title, str) or not title.strip():
            raise InvalidInput("title must not be empty")
        ticket_price = _require_int(ticket_price, "ticket_price")
        end_time = _require_int(end_time, "end_time")
        num_winners = _require_int(num_winners, "num_winners")
        creator_fee_bps = _require_int(creator_fee_bps, "creator_fee_bps")
        max_tickets = _require_int(max_tickets, "max_tickets")

        if not 0 < ticket_price <= UINT256_MAX:
            raise InvalidInput("ticket_price must be positive")
        if not 1 <= num_winners <= MAX_WINNERS:
            raise InvalidInput(f"num_winners must be between 1 and {MAX_WINNERS}")
        if not 0 <= creator_fee_bps <= BPS_DENOMINATOR:
            raise InvalidInput(f"creator_fee_bps must be between 0 and {BPS_DENOMINATOR}")
        if max_tickets < 0:
            raise InvalidInput("max_tickets must be 0 (unlimited) or positive")
        if 0 < max_tickets < num_winners:
            raise InvalidInput("max_tickets cannot be lower than num_winners")

        now = self.clock.now()
        if end_time <= now:
            raise InvalidInput("end_time must be in the future")

        with self._registry_lock:
            raffle_id = self._next_id
            self._next_id += 1
            self._raffles[raffle_id] = Raffle(
                id=raffle_id,
                creator=creator,
                title=title,
                description=description or "",
                category=category or "",
                ticket_price=ticket_price,
                max_tickets=max_tickets,
                end_time=end_time,
                num_winners=num_winners,
                creator_fee_bps=creator_fee_bps,
                allow_multiple_entries=bool(allow_multiple_entries),
                created_at=now,
            )

        self.events.append(
            RaffleCreated(
                raffle_id=raffle_id,
                creator=creator,
                title=title,
                ticket_price=ticket_price,
                max_tickets=max_tickets,
                end_time=end_time,
                num_winners=num_winners,
                creator_fee_bps=creator_fee_bps,
                allow_multiple_entries=bool(allow_multiple_entries),
            )
        )
        log.info("Created raffle %d (%r) by %s", raffle_id, title, creator)
        return raffle_id

    # ---------- Buy ----------
    def buy_tickets(
        self, raffle_id: int, participant: str, count: int, payment: int
    ) -> PurchaseReceipt:
        validate_address(participant, "participant")
        count = _require_int(count, "count")
        payment = _require_int(payment, "payment")

        with self._lock_for(raffle_id):
            raffle = self._get(raffle_id)
            if raffle.is_completed or not raffle.is_active:
                raise RaffleNotActive(f"Raffle {raffle_id} is completed", raffle_id)
            if is_expired(raffle, self.clock.now()):
                raise RaffleNotActive(f"Raffle {raffle_id} has ended", raffle_id)

            if count < 1:
                raise InvalidInput("count must be at least 1", raffle_id)
            if count > self.max_tickets_per_purchase:
                raise InvalidInput(
                    f"count cannot exceed {self.max_tickets_per_purchase} per purchase",
                    raffle_id,
                )

            sold = self.ledger.entry_count(raffle_id)
            if raffle.max_tickets > 0 and sold + count > raffle.max_tickets:
                raise CapacityExceeded(
                    f"Raffle {raffle_id} has {raffle.max_tickets - sold} tickets left",
                    raffle_id,
                )

            if not raffle.allow_multiple_entries:
                if self.ledger.tickets_of(raffle_id, participant) > 0 or count > 1:
                    raise DuplicateEntryNotAllowed(
                        f"Raffle {raffle_id} allows one entry per participant",
                        raffle_id,
                    )

            expected = checked_mul(raffle.ticket_price, count)
            if payment != expected:
                raise PaymentMismatch(
                    f"Expected payment {expected}, got {payment}", raffle_id
                )
            new_pool = checked_add(raffle.total_pool, payment)

            self.custody.deposit(raffle_id, payment)
            ticket_numbers = self.ledger.append(raffle_id, participant, count)
            raffle.total_pool = new_pool

        self.events.append(
            TicketsPurchased(raffle_id, participant, ticket_numbers, payment)
        )
        log.info(
            "Raffle %d: %s bought %d tickets (pool %d)",
            raffle_id, participant, count, new_pool,
        )
        return PurchaseReceipt(raffle_id, participant, ticket_numbers, payment, new_pool)

    def buy_ticket(self, raffle_id: int, participant: str, payment: int) -> PurchaseReceipt:
        return self.buy_tickets(raffle_id, participant, 1, payment)

    # ---------- Finalize ----------
    def finalize(self, raffle_id: int, caller: str) -> FinalizeReceipt:
        validate_address(caller, "caller")

        with self._lock_for(raffle_id):
            raffle = self._get(raffle_id)
            entries = self.ledger.entries(raffle_id)
            now = self.clock.now()
            triggered_by_expiry = finalize_trigger(raffle, len(entries), caller, now)

            seed = self.randomness.commit(raffle_id)
            result = select_winners(
                raffle_id, entries, raffle.num_winners, self.randomness, self.winner_policy
            )
            split = compute_payouts(
                raffle.total_pool,
                raffle.creator_fee_bps,
                len(result.winners),
                triggered_by_expiry,
                self.reward_policy,
            )

            transfers = [
                Transfer(caller, split.finalization_reward, "finalization_reward"),
                Transfer(raffle.creator, split.creator_reward, "creator_reward"),
            ]
            transfers += [
                Transfer(w, amount, "prize")
                for w, amount in zip(result.winners, split.payouts)
            ]

            # Completed before any transfer is issued; a re-entrant finalize
            # from a transfer callback sees AlreadyCompleted.
            previous = dataclasses.replace(raffle, winners=list(raffle.winners))
            raffle.is_completed = True
            raffle.is_active = False
            raffle.winners = list(result.winners)
            self._settlements[raffle_id] = Settlement(
                raffle_id=raffle_id,
                finalizer=caller,
                finalized_at=now,
                triggered_by_expiry=triggered_by_expiry,
                seed=seed,
                winner_indices=result.winner_indices,
                winners=result.winners,
                split=split,
                reward_policy=self.reward_policy,
                winner_policy=self.winner_policy.value,
            )

            try:
                self.custody.settle(raffle_id, transfers)
            except Exception:
                self._raffles[raffle_id] = previous
                del self._settlements[raffle_id]
                raise

        self.events.append(
            WinnersSelected(
                raffle_id=raffle_id,
                winners=result.winners,
                prize_per_winner=split.prize_per_winner,
                creator_reward=split.creator_reward,
                finalization_reward=split.finalization_reward,
            )
        )
        log.info(
            "Raffle %d finalized by %s (%s): %d winners, pool %d",
            raffle_id, caller, "expiry" if triggered_by_expiry else "sold out",
            len(result.winners), split.pool,
        )
        return FinalizeReceipt(
            raffle_id=raffle_id,
            winners=result.winners,
            payouts=split.payouts,
            finalization_reward=split.finalization_reward,
            creator_reward=split.creator_reward,
            triggered_by_expiry=triggered_by_expiry,
        )

    # ---------- Reads ----------
    def get_raffle_info(self, raffle_id: int) -> Raffle:
        with self._lock_for(raffle_id):
            raffle = self._get(raffle_id)
            return dataclasses.replace(raffle, winners=list(raffle.winners))

    def get_raffle_state(self, raffle_id: int) -> RaffleState:
        with self._lock_for(raffle_id):
            raffle = self._get(raffle_id)
            return derive_state(
                raffle, self.ledger.entry_count(raffle_id), self.clock.now()
            )

    def get_participants(self, raffle_id: int) -> List[str]:
        with self._lock_for(raffle_id):
            self._get(raffle_id)
            return self.ledger.entries(raffle_id)

    def get_winners(self, raffle_id: int) -> List[str]:
        with self._lock_for(raffle_id):
            return list(self._get(raffle_id).winners)

    def get_user_tickets(self, raffle_id: int, participant: str) -> int:
        with self._lock_for(raffle_id):
            self._get(raffle_id)
            return self.ledger.tickets_of(raffle_id, participant)

    def get_settlement(self, raffle_id: int) -> Optional[Settlement]:
        with self._lock_for(raffle_id):
            self._get(raffle_id)
            return self._settlements.get(raffle_id)

    def raffle_count(self) -> int:
        return self._next_id

    def get_raffles(self, start: int = 0, count: Optional[int] = None) -> List[Raffle]:
        if start < 0 or (count is not None and count < 0):
            raise InvalidInput("start and count must be non-negative")
        end = self._next_id if count is None else min(self._next_id, start + count)
        return [
            self.get_raffle_info(raffle_id)
            for raffle_id in range(start, end)
            if raffle_id in self._raffles
        ]
