"""
Protocol-wide parameters for the raffle engine.

These values define the public rules of every raffle.
Changing them changes settlement results and MUST be publicly announced.
"""

# SOL uses 9 decimals (lamports)
TOKEN_DECIMALS = 9
LAMPORTS_PER_SOL = 10**TOKEN_DECIMALS

# Fees and percentages are expressed in basis points
BPS_DENOMINATOR = 10_000

# Finalization incentive paid to whoever finalizes an expired raffle
FINALIZATION_REWARD_BPS = 10  # 0.1% of the pool
MIN_FINALIZATION_REWARD = 5 * 10**6  # 0.005 SOL
MAX_FINALIZATION_REWARD = 10 * 10**6  # 0.01 SOL

MAX_WINNERS = 100

# Per-call purchase cap (bounds the work a single purchase can cause)
MAX_TICKETS_PER_PURCHASE = 1000

# Amounts are modelled as uint256 values
UINT256_MAX = 2**256 - 1

DEFAULT_STATE_FILE = "raffles.json"
