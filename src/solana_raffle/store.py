from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict
from typing import Any, Dict, Optional

from .custody import FundCustody, LedgerTransfer
from .draw import WinnerPolicy
from .models import DrawSeed, PayoutSplit, Raffle, RewardPolicy, Settlement
from .project_constants import MAX_TICKETS_PER_PURCHASE
from .randomness import RandomnessSource
from .registry import Clock, RaffleRegistry

log = logging.getLogger(__name__)

STATE_VERSION = 1


def _settlement_to_dict(s: Settlement) -> Dict[str, Any]:
    out = asdict(s)
    out["winner_indices"] = list(s.winner_indices)
    out["winners"] = list(s.winners)
    out["split"]["payouts"] = list(s.split.payouts)
    return out


def _settlement_from_dict(d: Dict[str, Any]) -> Settlement:
    split = dict(d["split"])
    split["payouts"] = tuple(int(p) for p in split["payouts"])
    return Settlement(
        raffle_id=int(d["raffle_id"]),
        finalizer=d["finalizer"],
        finalized_at=int(d["finalized_at"]),
        triggered_by_expiry=bool(d["triggered_by_expiry"]),
        seed=DrawSeed(**d["seed"]) if d.get("seed") else None,
        winner_indices=tuple(int(i) for i in d["winner_indices"]),
        winners=tuple(d["winners"]),
        split=PayoutSplit(**split),
        reward_policy=RewardPolicy(**d.get("reward_policy", {})),
        winner_policy=d.get("winner_policy", WinnerPolicy.CAP.value),
    )


def registry_to_dict(registry: RaffleRegistry) -> Dict[str, Any]:
    raffles = registry.get_raffles()
    primitive = registry.custody.primitive
    balances = dict(primitive.balances) if isinstance(primitive, LedgerTransfer) else {}
    settlements = [registry.get_settlement(r.id) for r in raffles if r.is_completed]
    return {
        "version": STATE_VERSION,
        "next_id": registry.raffle_count(),
        "raffles": [asdict(r) for r in raffles],
        "entries": {str(r.id): registry.get_participants(r.id) for r in raffles},
        "escrow": {str(k): v for k, v in registry.custody.escrow_snapshot().items()},
        "settlements": [_settlement_to_dict(s) for s in settlements if s is not None],
        "balances": {k: v for k, v in balances.items() if v},
    }


def save_registry(registry: RaffleRegistry, path: str) -> None:
    state = registry_to_dict(registry)
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".raffles-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
    log.debug("Saved %d raffles to %s", len(state["raffles"]), path)


def load_registry(
    path: str,
    randomness: RandomnessSource,
    clock: Optional[Clock] = None,
    reward_policy: RewardPolicy = RewardPolicy(),
    winner_policy: WinnerPolicy = WinnerPolicy.CAP,
    max_tickets_per_purchase: int = MAX_TICKETS_PER_PURCHASE,
) -> RaffleRegistry:
    """Builds a registry from a state file; a missing file gives an empty one."""
    state: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            state = json.load(f)
        if state.get("version") != STATE_VERSION:
            raise RuntimeError(
                f"Unsupported state file version {state.get('version')!r} in {path}"
            )

    custody = FundCustody(LedgerTransfer(state.get("balances", {})))
    custody.restore({int(k): int(v) for k, v in state.get("escrow", {}).items()})

    registry = RaffleRegistry(
        custody,
        randomness,
        clock=clock,
        reward_policy=reward_policy,
        winner_policy=winner_policy,
        max_tickets_per_purchase=max_tickets_per_purchase,
    )
    raffles = [Raffle(**r) for r in state.get("raffles", [])]
    registry.load_records(
        raffles,
        [_settlement_from_dict(s) for s in state.get("settlements", [])],
        int(state.get("next_id", 0)),
    )
    for raffle_id, participants in state.get("entries", {}).items():
        for participant in participants:
            registry.ledger.append(int(raffle_id), participant)

    log.debug("Loaded %d raffles from %s", len(raffles), path)
    return registry
