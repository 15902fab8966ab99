from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Dict, List, Protocol, Sequence, Tuple

from .arith import checked_add, checked_sub
from .errors import InsufficientFunds, InvalidInput, TransferFailed
from .models import Transfer

log = logging.getLogger(__name__)


class TransferPrimitive(Protocol):
    def transfer(self, to: str, amount: int) -> bool:
        ...

    def reverse(self, to: str, amount: int) -> bool:
        ...


class LedgerTransfer:
    """In-memory balance book. Stands in for the chain's native transfer."""

    def __init__(self, balances: Dict[str, int] | None = None) -> None:
        self.balances: Dict[str, int] = defaultdict(int, balances or {})

    def transfer(self, to: str, amount: int) -> bool:
        self.balances[to] = checked_add(self.balances[to], amount)
        return True

    def reverse(self, to: str, amount: int) -> bool:
        if self.balances.get(to, 0) < amount:
            return False
        self.balances[to] -= amount
        return True

    def balance_of(self, who: str) -> int:
        return self.balances.get(who, 0)


class FundCustody:
    """
    Escrow for pooled ticket payments, one account per raffle.

    settle() pays a whole transfer set or nothing: when a transfer fails, the
    transfers already issued are reversed and the escrow is restored.
    """

    def __init__(self, primitive: TransferPrimitive) -> None:
        self.primitive = primitive
        self._escrow: Dict[int, int] = defaultdict(int)
        self._lock = threading.Lock()

    def deposit(self, raffle_id: int, amount: int) -> int:
        if amount < 0:
            raise InvalidInput("deposit must be non-negative", raffle_id)
        with self._lock:
            self._escrow[raffle_id] = checked_add(self._escrow[raffle_id], amount)
            return self._escrow[raffle_id]

    def escrow_of(self, raffle_id: int) -> int:
        return self._escrow.get(raffle_id, 0)

    def escrow_snapshot(self) -> Dict[int, int]:
        return dict(self._escrow)

    def restore(self, escrow: Dict[int, int]) -> None:
        with self._lock:
            self._escrow = defaultdict(int, escrow)

    def settle(self, raffle_id: int, transfers: Sequence[Transfer]) -> None:
        total = 0
        for t in transfers:
            if t.amount < 0:
                raise InvalidInput(f"negative transfer to {t.to}", raffle_id)
            total = checked_add(total, t.amount)

        with self._lock:
            held = self._escrow.get(raffle_id, 0)
            if total > held:
                raise InsufficientFunds(
                    f"escrow holds {held}, transfer set needs {total}", raffle_id
                )
            self._escrow[raffle_id] = checked_sub(held, total)

        done: List[Transfer] = []
        for t in transfers:
            if t.amount == 0:
                continue
            error: Exception | None = None
            try:
                paid = self.primitive.transfer(t.to, t.amount)
            except Exception as e:
                paid, error = False, e
            if paid:
                done.append(t)
                continue

            log.warning(
                "Raffle %d: %s transfer of %d to %s failed (%s); reversing %d transfers",
                raffle_id, t.kind, t.amount, t.to, error or "rejected", len(done),
            )
            unreconciled = self._reverse(done)
            with self._lock:
                self._escrow[raffle_id] += total - sum(a for _, a in unreconciled)
            if unreconciled:
                log.error("Raffle %d: unreconciled transfers %s", raffle_id, unreconciled)
            raise TransferFailed(
                f"{t.kind} transfer to {t.to} failed", raffle_id, unreconciled
            ) from error

    def _reverse(self, done: List[Transfer]) -> List[Tuple[str, int]]:
        unreconciled: List[Tuple[str, int]] = []
        for t in reversed(done):
            try:
                reversed_ok = self.primitive.reverse(t.to, t.amount)
            except Exception:
                log.exception("Reversal of %d to %s raised", t.amount, t.to)
                reversed_ok = False
            if not reversed_ok:
                unreconciled.append((t.to, t.amount))
        return unreconciled
