from __future__ import annotations

import hashlib
import itertools
import logging
import secrets
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from .errors import InvalidInput
from .models import DrawSeed
from .rpc import RpcClient, load_seed_from_block_feed_file

log = logging.getLogger(__name__)

SeedProvider = Callable[[], DrawSeed]


class RandomnessSource(Protocol):
    def commit(self, raffle_id: int) -> Optional[DrawSeed]:
        ...

    def draw(self, raffle_id: int, draw_index: int, bound: int) -> int:
        ...


def draw_hash(seed: DrawSeed, raffle_id: int, draw_index: int) -> Tuple[str, int]:
    material = f"{seed.timestamp}:{seed.entropy}:{seed.sequence}:{raffle_id}:{draw_index}"
    digest_hex = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return digest_hex, int(digest_hex, 16)


def reduce_draw(value: int, bound: int) -> int:
    if bound <= 0:
        raise InvalidInput("draw bound must be positive")
    return value % bound


class HashRandomnessSource:
    """
    SHA-256 over a seed fetched at finalize time plus raffle id and draw index.

    The seed provider is only called from commit(), so nothing the creator
    controls at creation time feeds the draw.
    """

    def __init__(self, seed_provider: SeedProvider) -> None:
        self.seed_provider = seed_provider
        self._seeds: Dict[int, DrawSeed] = {}

    def commit(self, raffle_id: int) -> DrawSeed:
        seed = self.seed_provider()
        self._seeds[raffle_id] = seed
        log.debug("Committed seed for raffle %d: %s", raffle_id, seed)
        return seed

    def draw(self, raffle_id: int, draw_index: int, bound: int) -> int:
        seed = self._seeds.get(raffle_id)
        if seed is None:
            raise RuntimeError(f"No seed committed for raffle {raffle_id}")
        _, value = draw_hash(seed, raffle_id, draw_index)
        return reduce_draw(value, bound)


class ReplayRandomnessSource(HashRandomnessSource):
    """Fixed seed; reproduces the draws recorded in an audit."""

    def __init__(self, seed: DrawSeed) -> None:
        super().__init__(lambda: seed)
        self.seed = seed

    def draw(self, raffle_id: int, draw_index: int, bound: int) -> int:
        if raffle_id not in self._seeds:
            self._seeds[raffle_id] = self.seed
        return super().draw(raffle_id, draw_index, bound)


_local_counter = itertools.count(1)


def local_seed() -> DrawSeed:
    return DrawSeed(
        timestamp=int(time.time()),
        entropy=secrets.token_hex(32),
        sequence=next(_local_counter),
    )


class RpcSeedProvider:
    """Seeds from the latest finalized slot: its blockhash and block time."""

    def __init__(self, rpc_url: str, timeout_s: float = 60.0) -> None:
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s

    def __call__(self) -> DrawSeed:
        rpc = RpcClient(self.rpc_url, timeout_s=self.timeout_s)
        try:
            slot = rpc.get_slot()
            blockhash = rpc.get_blockhash_for_slot(slot)
            block_time = rpc.get_block_time(slot)
        finally:
            rpc.close()
        log.info("Seed slot %d blockhash %s", slot, blockhash)
        return DrawSeed(timestamp=block_time, entropy=blockhash, sequence=slot)


class FileSeedProvider:
    """Blockhash read from a block feed file, wall clock as timestamp."""

    def __init__(self, path: str, slot: Optional[int] = None) -> None:
        self.path = path
        self.slot = slot

    def __call__(self) -> DrawSeed:
        blockhash = load_seed_from_block_feed_file(self.path, slot_hint=self.slot)
        return DrawSeed(
            timestamp=int(time.time()),
            entropy=blockhash,
            sequence=self.slot if self.slot is not None else next(_local_counter),
        )
