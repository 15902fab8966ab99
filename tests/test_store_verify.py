import json

import pytest

from conftest import HOUR, START, FakeClock
from solana_raffle.custody import FundCustody, LedgerTransfer
from solana_raffle.draw import WinnerPolicy
from solana_raffle.errors import AuditMismatch, InvalidInput
from solana_raffle.models import DrawSeed, RewardPolicy
from solana_raffle.project_constants import LAMPORTS_PER_SOL
from solana_raffle.randomness import HashRandomnessSource
from solana_raffle.registry import RaffleRegistry
from solana_raffle.store import load_registry, save_registry
from solana_raffle.verify import build_audit, verify_audit, verify_audit_data, write_audit

SEED = DrawSeed(timestamp=START + HOUR, entropy="BlockhashFromSlot", sequence=281_000_000)


@pytest.fixture
def finalized(addrs, creator):
    clock = FakeClock()
    bank = LedgerTransfer()
    registry = RaffleRegistry(
        FundCustody(bank), HashRandomnessSource(lambda: SEED), clock=clock
    )
    rid = registry.create_raffle(
        creator, "Audit me", "desc", "nft", LAMPORTS_PER_SOL // 10, START + HOUR, 3, 250
    )
    for i, a in enumerate(addrs[1:8], start=1):
        registry.buy_tickets(rid, a, i, i * LAMPORTS_PER_SOL // 10)
    clock.advance(HOUR)
    registry.finalize(rid, addrs[30])
    return registry, rid


def test_audit_verifies(finalized, tmp_path):
    registry, rid = finalized
    path = tmp_path / "audit.json"
    write_audit(build_audit(registry, rid), str(path))

    result = verify_audit(str(path))
    assert result["ok"]
    assert result["winners"] == registry.get_winners(rid)
    assert sum(result["payouts"]) <= result["total_pool"]


@pytest.mark.parametrize(
    "tamper",
    [
        lambda a: a["winners"].__setitem__(0, "someone-else"),
        lambda a: a["split"]["payouts"].__setitem__(0, a["split"]["payouts"][0] + 1),
        lambda a: a["metadata"].__setitem__("seed_entropy", "other"),
        lambda a: a["draws"][0].__setitem__("hash_hex", "00"),
        lambda a: a["all_entries"].append(a["all_entries"][0]),
    ],
)
def test_tampered_audit_is_rejected(finalized, tmp_path, tamper):
    registry, rid = finalized
    audit = build_audit(registry, rid)
    tamper(audit)
    path = tmp_path / "audit.json"
    path.write_text(json.dumps(audit), encoding="utf-8")
    with pytest.raises(AuditMismatch):
        verify_audit(str(path))


def test_audit_requires_finalized_raffle(make_raffle, registry):
    rid = make_raffle()
    with pytest.raises(InvalidInput):
        build_audit(registry, rid)


def test_state_survives_save_and_load(finalized, tmp_path, addrs, creator):
    registry, rid = finalized
    open_id = registry.create_raffle(creator, "Still open", "", "", 5, START + 3 * HOUR, 1, 0)
    registry.buy_ticket(open_id, addrs[2], 5)
    path = str(tmp_path / "raffles.json")
    save_registry(registry, path)

    loaded = load_registry(path, HashRandomnessSource(lambda: SEED), clock=registry.clock)

    assert loaded.raffle_count() == 2
    assert loaded.get_raffle_info(rid) == registry.get_raffle_info(rid)
    assert loaded.get_participants(rid) == registry.get_participants(rid)
    assert loaded.get_settlement(rid) == registry.get_settlement(rid)
    assert loaded.custody.escrow_of(open_id) == 5
    assert loaded.custody.primitive.balances == registry.custody.primitive.balances
    assert build_audit(loaded, rid)["split"] == build_audit(registry, rid)["split"]

    loaded.buy_ticket(open_id, addrs[3], 5)
    assert loaded.get_raffle_info(open_id).total_pool == 10
    assert loaded.create_raffle(creator, "Next", "", "", 5, START + 3 * HOUR, 1, 0) == 2


def test_missing_state_file_gives_empty_registry(tmp_path):
    registry = load_registry(str(tmp_path / "none.json"), HashRandomnessSource(lambda: SEED))
    assert registry.raffle_count() == 0
    assert registry.get_raffles() == []


def test_audit_uses_policies_in_force_at_finalize(addrs, creator, tmp_path):
    clock = FakeClock()
    registry = RaffleRegistry(
        FundCustody(LedgerTransfer()),
        HashRandomnessSource(lambda: SEED),
        clock=clock,
        reward_policy=RewardPolicy(min_reward=5, max_reward=10),
    )
    rid = registry.create_raffle(creator, "Policy", "", "", 1_000, START + HOUR, 2, 100)
    registry.buy_tickets(rid, addrs[1], 3, 3_000)
    clock.advance(HOUR)
    assert registry.finalize(rid, addrs[9]).finalization_reward == 5

    registry.reward_policy = RewardPolicy()
    registry.winner_policy = WinnerPolicy.STRICT
    audit = build_audit(registry, rid)
    assert audit["metadata"]["reward_policy"] == {"min_reward": 5, "max_reward": 10, "reward_bps": 10}
    assert audit["metadata"]["winner_policy"] == "cap"
    assert verify_audit_data(audit)["ok"]

    path = str(tmp_path / "raffles.json")
    save_registry(registry, path)
    loaded = load_registry(path, HashRandomnessSource(lambda: SEED), clock=clock)
    assert loaded.get_settlement(rid).reward_policy == RewardPolicy(5, 10)
    assert verify_audit_data(build_audit(loaded, rid))["ok"]
