from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from .draw import WinnerPolicy, select_winners
from .errors import AuditMismatch, InvalidInput
from .models import DrawSeed
from .payout import RewardPolicy, compute_payouts
from .randomness import ReplayRandomnessSource, draw_hash
from .registry import RaffleRegistry

AUDIT_VERSION = "1.0.0"


def build_audit(registry: RaffleRegistry, raffle_id: int) -> Dict[str, Any]:
    raffle = registry.get_raffle_info(raffle_id)
    settlement = registry.get_settlement(raffle_id)
    if settlement is None:
        raise InvalidInput(f"Raffle {raffle_id} is not finalized", raffle_id)
    if settlement.seed is None:
        raise InvalidInput(
            f"Raffle {raffle_id} was drawn without a committed seed", raffle_id
        )

    seed = settlement.seed
    entries = registry.get_participants(raffle_id)
    policy = settlement.reward_policy
    split = settlement.split

    draws = []
    for k, (winner, index) in enumerate(zip(settlement.winners, settlement.winner_indices)):
        hash_hex, _ = draw_hash(seed, raffle_id, k)
        draws.append(
            {
                "draw_index": k,
                "hash_hex": hash_hex,
                "bound": len(entries) - k,
                "ticket": index,
                "winner": winner,
            }
        )

    # Everything needed to re-run the draw and the split from scratch.
    return {
        "metadata": {
            "tool": "solana-raffle",
            "version": AUDIT_VERSION,
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "raffle_id": raffle_id,
            "title": raffle.title,
            "creator": raffle.creator,
            "ticket_price": raffle.ticket_price,
            "num_winners": raffle.num_winners,
            "creator_fee_bps": raffle.creator_fee_bps,
            "total_pool": raffle.total_pool,
            "finalizer": settlement.finalizer,
            "finalized_at": settlement.finalized_at,
            "triggered_by_expiry": settlement.triggered_by_expiry,
            "seed_timestamp": seed.timestamp,
            "seed_entropy": seed.entropy,
            "seed_sequence": seed.sequence,
            "winner_policy": settlement.winner_policy,
            "reward_policy": {
                "min_reward": policy.min_reward,
                "max_reward": policy.max_reward,
                "reward_bps": policy.reward_bps,
            },
        },
        "draws": draws,
        "winners": list(settlement.winners),
        "split": {
            "finalization_reward": split.finalization_reward,
            "creator_reward": split.creator_reward,
            "prize_pool": split.prize_pool,
            "prize_per_winner": split.prize_per_winner,
            "remainder": split.remainder,
            "payouts": list(split.payouts),
        },
        "all_entries": entries,
    }


def write_audit(audit: Dict[str, Any], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)
    return verify_audit_data(audit)


def verify_audit_data(audit: Dict[str, Any]) -> Dict[str, Any]:
    meta = audit["metadata"]
    raffle_id = int(meta["raffle_id"])
    seed = DrawSeed(
        timestamp=int(meta["seed_timestamp"]),
        entropy=meta["seed_entropy"],
        sequence=int(meta["seed_sequence"]),
    )
    entries = list(audit["all_entries"])
    total_pool = int(meta["total_pool"])

    expected_pool = int(meta["ticket_price"]) * len(entries)
    if expected_pool != total_pool:
        raise AuditMismatch(
            f"Pool mismatch: audit={total_pool} recomputed={expected_pool}", raffle_id
        )

    result = select_winners(
        raffle_id,
        entries,
        int(meta["num_winners"]),
        ReplayRandomnessSource(seed),
        WinnerPolicy(meta["winner_policy"]),
    )

    for draw, index in zip(audit["draws"], result.winner_indices):
        hash_hex, _ = draw_hash(seed, raffle_id, int(draw["draw_index"]))
        if hash_hex != draw["hash_hex"]:
            raise AuditMismatch(
                f"Draw {draw['draw_index']} hash mismatch: "
                f"audit={draw['hash_hex']} recomputed={hash_hex}",
                raffle_id,
            )
        if int(draw["ticket"]) != index:
            raise AuditMismatch(
                f"Draw {draw['draw_index']} ticket mismatch: "
                f"audit={draw['ticket']} recomputed={index}",
                raffle_id,
            )

    if list(result.winners) != list(audit["winners"]):
        raise AuditMismatch(
            f"Winner mismatch: audit={audit['winners']} recomputed={list(result.winners)}",
            raffle_id,
        )

    rp = meta["reward_policy"]
    split = compute_payouts(
        total_pool,
        int(meta["creator_fee_bps"]),
        len(result.winners),
        bool(meta["triggered_by_expiry"]),
        RewardPolicy(int(rp["min_reward"]), int(rp["max_reward"]), int(rp["reward_bps"])),
    )
    recorded = audit["split"]
    recomputed = {
        "finalization_reward": split.finalization_reward,
        "creator_reward": split.creator_reward,
        "prize_pool": split.prize_pool,
        "prize_per_winner": split.prize_per_winner,
        "remainder": split.remainder,
        "payouts": list(split.payouts),
    }
    for key, value in recomputed.items():
        if recorded.get(key) != value:
            raise AuditMismatch(
                f"{key} mismatch: audit={recorded.get(key)} recomputed={value}",
                raffle_id,
            )

    return {
        "ok": True,
        "raffle_id": raffle_id,
        "winners": list(result.winners),
        "payouts": list(split.payouts),
        "total_pool": total_pool,
        "seed_entropy": seed.entropy,
    }
