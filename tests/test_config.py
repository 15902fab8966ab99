import pytest

from solana_raffle.config import Settings
from solana_raffle.errors import InvalidInput
from solana_raffle.project_constants import DEFAULT_STATE_FILE, MIN_FINALIZATION_REWARD


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "RAFFLE_STATE_FILE",
        "RAFFLE_SEED_SOURCE",
        "RPC_URL",
        "HELIUS_API_KEY",
        "MIN_FINALIZATION_REWARD",
        "MAX_FINALIZATION_REWARD",
        "MAX_TICKETS_PER_PURCHASE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    s = Settings.from_env()
    assert s.state_file == DEFAULT_STATE_FILE
    assert s.seed_source == "local"
    assert s.rpc_url is None
    assert s.reward_policy().min_reward == MIN_FINALIZATION_REWARD


def test_overrides_beat_env(monkeypatch):
    monkeypatch.setenv("RAFFLE_STATE_FILE", "env.json")
    monkeypatch.setenv("RPC_URL", "https://env.rpc")
    s = Settings.from_env(state_file_override="cli.json", rpc_url_override="https://cli.rpc")
    assert s.state_file == "cli.json"
    assert s.rpc_url == "https://cli.rpc"


def test_helius_key_builds_rpc_url(monkeypatch):
    monkeypatch.setenv("HELIUS_API_KEY", "abc")
    monkeypatch.setenv("RAFFLE_SEED_SOURCE", "rpc")
    s = Settings.from_env()
    assert s.rpc_url == "https://mainnet.helius-rpc.com/?api-key=abc"
    assert s.seed_source == "rpc"


def test_rpc_source_requires_endpoint():
    with pytest.raises(RuntimeError):
        Settings.from_env(seed_source_override="rpc")


def test_unknown_seed_source(monkeypatch):
    monkeypatch.setenv("RAFFLE_SEED_SOURCE", "dice")
    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_reward_bounds_from_env(monkeypatch):
    monkeypatch.setenv("MIN_FINALIZATION_REWARD", "1000")
    monkeypatch.setenv("MAX_FINALIZATION_REWARD", "2000")
    policy = Settings.from_env().reward_policy()
    assert (policy.min_reward, policy.max_reward) == (1000, 2000)


@pytest.mark.parametrize("value", ["lots", "-5"])
def test_bad_numeric_env(monkeypatch, value):
    monkeypatch.setenv("MAX_TICKETS_PER_PURCHASE", value)
    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_inverted_reward_bounds(monkeypatch):
    monkeypatch.setenv("MIN_FINALIZATION_REWARD", "3000")
    monkeypatch.setenv("MAX_FINALIZATION_REWARD", "2000")
    with pytest.raises(InvalidInput):
        Settings.from_env().reward_policy()
