from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .payout import RewardPolicy
from .project_constants import (
    DEFAULT_STATE_FILE,
    MAX_FINALIZATION_REWARD,
    MAX_TICKETS_PER_PURCHASE,
    MIN_FINALIZATION_REWARD,
)

SEED_SOURCES = ("local", "rpc", "file")


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise RuntimeError(f"{name} must be non-negative, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    state_file: str
    seed_source: str = "local"
    rpc_url: Optional[str] = None
    min_finalization_reward: int = MIN_FINALIZATION_REWARD
    max_finalization_reward: int = MAX_FINALIZATION_REWARD
    max_tickets_per_purchase: int = MAX_TICKETS_PER_PURCHASE

    @staticmethod
    def from_env(
        state_file_override: str | None = None,
        rpc_url_override: str | None = None,
        seed_source_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        state_file = (
            state_file_override
            or os.getenv("RAFFLE_STATE_FILE", "").strip()
            or DEFAULT_STATE_FILE
        )

        seed_source = (
            seed_source_override or os.getenv("RAFFLE_SEED_SOURCE", "local")
        ).strip().lower()
        if seed_source not in SEED_SOURCES:
            raise RuntimeError(
                f"RAFFLE_SEED_SOURCE must be one of {', '.join(SEED_SOURCES)}"
            )

        # If user provides --rpc-url, trust it. Otherwise RPC_URL, else helius.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip() or None
        if rpc_url is None:
            helius_key = os.getenv("HELIUS_API_KEY", "").strip()
            if helius_key:
                rpc_url = f"https://mainnet.helius-rpc.com/?api-key={helius_key}"
        if seed_source == "rpc" and rpc_url is None:
            raise RuntimeError(
                "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
            )

        return Settings(
            state_file=state_file,
            seed_source=seed_source,
            rpc_url=rpc_url,
            min_finalization_reward=_int_from_env(
                "MIN_FINALIZATION_REWARD", MIN_FINALIZATION_REWARD
            ),
            max_finalization_reward=_int_from_env(
                "MAX_FINALIZATION_REWARD", MAX_FINALIZATION_REWARD
            ),
            max_tickets_per_purchase=_int_from_env(
                "MAX_TICKETS_PER_PURCHASE", MAX_TICKETS_PER_PURCHASE
            ),
        )

    def reward_policy(self) -> RewardPolicy:
        return RewardPolicy(
            min_reward=self.min_finalization_reward,
            max_reward=self.max_finalization_reward,
        )
