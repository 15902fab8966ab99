from __future__ import annotations

from .arith import checked_add, checked_mul, checked_sub
from .errors import InvalidInput
from .models import PayoutSplit, RewardPolicy
from .project_constants import BPS_DENOMINATOR

__all__ = ["RewardPolicy", "compute_payouts", "finalization_reward"]


def finalization_reward(pool: int, policy: RewardPolicy) -> int:
    from_pool = checked_mul(pool, policy.reward_bps) // BPS_DENOMINATOR
    reward = max(policy.min_reward, min(from_pool, policy.max_reward))
    return min(reward, pool)


def compute_payouts(
    pool: int,
    creator_fee_bps: int,
    winners: int,
    triggered_by_expiry: bool,
    policy: RewardPolicy = RewardPolicy(),
) -> PayoutSplit:
    """
    Split `pool` into finalization reward, creator fee and winner payouts.

    Payouts are integer shares of the prize pool; the first winner absorbs
    the division remainder, so the parts always add up to `pool` exactly.
    """
    if winners < 1:
        raise InvalidInput("at least one winner is required to split a pool")
    if not 0 <= creator_fee_bps <= BPS_DENOMINATOR:
        raise InvalidInput("creator fee bps out of range")
    if pool < 0:
        raise InvalidInput("pool must be non-negative")

    reward = finalization_reward(pool, policy) if triggered_by_expiry else 0
    creator = checked_mul(pool, creator_fee_bps) // BPS_DENOMINATOR

    if checked_add(reward, creator) > pool:
        if reward > pool:
            reward, creator = pool, 0
        else:
            creator = pool - reward

    prize_pool = checked_sub(checked_sub(pool, reward), creator)
    per_winner, remainder = divmod(prize_pool, winners)

    payouts = [per_winner] * winners
    payouts[0] += remainder

    split = PayoutSplit(
        pool=pool,
        finalization_reward=reward,
        creator_reward=creator,
        prize_pool=prize_pool,
        prize_per_winner=per_winner,
        remainder=remainder,
        payouts=tuple(payouts),
    )
    if split.total() != pool:
        raise RuntimeError(f"Payout split does not conserve pool {pool}: {split}")
    return split
