from typing import List, Optional, Sequence

import pytest

from solana_raffle.accounts import address_from_bytes
from solana_raffle.custody import FundCustody, LedgerTransfer
from solana_raffle.models import DrawSeed
from solana_raffle.registry import RaffleRegistry

START = 1_700_000_000
HOUR = 3600


class FakeClock:
    def __init__(self, now: int = START) -> None:
        self.t = now

    def now(self) -> int:
        return self.t

    def advance(self, seconds: int) -> None:
        self.t += seconds


class StubRandomness:
    """Returns scripted draw values; draw k defaults to k."""

    def __init__(self, values: Optional[Sequence[int]] = None) -> None:
        self.values = list(values or [])
        self.calls = []
        self.commits = []

    def commit(self, raffle_id: int) -> DrawSeed:
        self.commits.append(raffle_id)
        return DrawSeed(timestamp=0, entropy="stub", sequence=len(self.commits))

    def draw(self, raffle_id: int, draw_index: int, bound: int) -> int:
        self.calls.append((raffle_id, draw_index, bound))
        if draw_index < len(self.values):
            return self.values[draw_index]
        return draw_index


@pytest.fixture
def addrs() -> List[str]:
    return [address_from_bytes(bytes([i]) * 32) for i in range(1, 41)]


@pytest.fixture
def creator(addrs) -> str:
    return addrs[0]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> StubRandomness:
    return StubRandomness()


@pytest.fixture
def bank() -> LedgerTransfer:
    return LedgerTransfer()


@pytest.fixture
def registry(bank, rng, clock) -> RaffleRegistry:
    return RaffleRegistry(FundCustody(bank), rng, clock=clock)


@pytest.fixture
def make_raffle(registry, creator):
    def _make(**overrides) -> int:
        params = dict(
            creator=creator,
            title="Weekly draw",
            description="",
            category="general",
            ticket_price=1_000_000,
            end_time=START + HOUR,
            num_winners=1,
            creator_fee_bps=0,
            max_tickets=0,
            allow_multiple_entries=True,
        )
        params.update(overrides)
        return registry.create_raffle(**params)

    return _make
