from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Tuple

from .models import TicketEntry


class TicketLedger:
    """
    Append-only list of ticket entries per raffle.

    Entry i of a raffle is ticket number i. A participant's win weight is
    the number of entries they hold.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, List[str]] = defaultdict(list)
        self._counts: Dict[Tuple[int, str], int] = defaultdict(int)

    def append(self, raffle_id: int, participant: str, count: int = 1) -> Tuple[int, ...]:
        entries = self._entries[raffle_id]
        start = len(entries)
        entries.extend([participant] * count)
        self._counts[(raffle_id, participant)] += count
        return tuple(range(start, start + count))

    def entry_count(self, raffle_id: int) -> int:
        return len(self._entries.get(raffle_id, ()))

    def entries(self, raffle_id: int) -> List[str]:
        return list(self._entries.get(raffle_id, ()))

    def tickets_of(self, raffle_id: int, participant: str) -> int:
        return self._counts.get((raffle_id, participant), 0)

    def records(self, raffle_id: int) -> List[TicketEntry]:
        return [TicketEntry(raffle_id, p) for p in self._entries.get(raffle_id, ())]
