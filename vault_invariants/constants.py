"""Constants and configuration defaults for the wrapped-vault invariant harness."""

from decimal import Decimal

# Global ceiling on the base asset supply. Headroom for every harness mint is measured against it.
MAX_SUPPLY = 2**96 - 1
MAX_UINT256 = 2**256 - 1

TOTAL_BASIS_POINTS = 100_00
# ChangeSupply grows the rebasing supply by at most 10% per step.
MAX_CHANGE_SUPPLY_BP = 1000

# Yield scheduled by the vault drips linearly over one day.
YIELD_WINDOW = 24 * 60 * 60
MAX_YIELD_TIME = YIELD_WINDOW
# Below this many units of pending yield the drip check is too coarse to be meaningful.
MIN_YIELD_FOR_CHECK = 100

# Protected balance held by each sentinel account from setup onwards.
DEAD_FLOOR = 10**18

DEFAULT_ACTOR_COUNT = 4
DEFAULT_STEPS = 500
DEFAULT_SEED = 0
# Soft-skip campaigns give up after this many discarded samples per requested step.
MAX_DISCARDS_PER_STEP = 20

# Rounding slack (in base-asset units).
YIELD_DRIP_TOLERANCE = 1
SHARE_ROUNDING_TOLERANCE = 1

# Sentinel and harness identities. None of them ever appears in the actor pool.
DEAD_REBASING = "0x000000000000000000000000000000000000dEaD"
DEAD_NON_REBASING = "0x000000000000000000000000000000000000bEEF"
HARNESS_ADDRESS = "0x00000000000000000000000000000000000F0220"
ACTOR_ADDRESS_BASE = 0x10000

# Rebasing token credit resolution (credits per token start at 1e27, balances are 1e18 scaled).
CREDITS_RESOLUTION = 10**27
TOKEN_SCALE = 10**18
UNITS_PER_TOKEN = Decimal(10**18)

# ETH given to impersonated accounts on a dev node so they can pay for gas.
DEV_NODE_GAS_BALANCE = 10**21
DEFAULT_TIMEOUT = 30

# Minimal ABI for the wrapped (ERC4626) vault - only the functions the harness calls.
WRAPPED_VAULT_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "deposit",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "assets", "type": "uint256"}, {"name": "receiver", "type": "address"}],
        "outputs": [{"name": "shares", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "shares", "type": "uint256"}, {"name": "receiver", "type": "address"}],
        "outputs": [{"name": "assets", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "withdraw",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "assets", "type": "uint256"},
            {"name": "receiver", "type": "address"},
            {"name": "owner", "type": "address"},
        ],
        "outputs": [{"name": "shares", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "redeem",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "shares", "type": "uint256"},
            {"name": "receiver", "type": "address"},
            {"name": "owner", "type": "address"},
        ],
        "outputs": [{"name": "assets", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "scheduleYield",
        "stateMutability": "nonpayable",
        "inputs": [],
        "outputs": [],
    },
    *[
        {
            "type": "function",
            "name": name,
            "stateMutability": "view",
            "inputs": [{"name": "", "type": "uint256"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
        for name in ("previewRedeem", "convertToAssets", "convertToShares")
    ],
    *[
        {
            "type": "function",
            "name": name,
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint256"}],
        }
        for name in ("totalAssets", "totalSupply", "trackedAssets", "yieldAssets", "yieldEnd")
    ],
    *[
        {
            "type": "function",
            "name": name,
            "stateMutability": "view",
            "inputs": [{"name": "", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
        for name in ("balanceOf", "maxDeposit", "maxMint", "maxWithdraw", "maxRedeem")
    ],
]

# Minimal ABI for the rebasing base asset (OETH-style). mint/burn/changeSupply are vault-only on-chain,
# so the on-chain adapter sends them from an impersonated minter.
REBASING_TOKEN_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_account", "type": "address"}, {"name": "_amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "burn",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_account", "type": "address"}, {"name": "_amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "changeSupply",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_newTotalSupply", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_to", "type": "address"}, {"name": "_value", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_spender", "type": "address"}, {"name": "_value", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "rebaseOptOut",
        "stateMutability": "nonpayable",
        "inputs": [],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "_account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "rebaseState",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "address"}],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "type": "function",
        "name": "creditsBalanceOfHighres",
        "stateMutability": "view",
        "inputs": [{"name": "_account", "type": "address"}],
        "outputs": [
            {"name": "", "type": "uint256"},
            {"name": "", "type": "uint256"},
            {"name": "", "type": "bool"},
        ],
    },
]

# Public accessors exercised by the Views handler, in the order they are called.
VIEW_FUNCTIONS = (
    "convert_to_assets",
    "convert_to_shares",
    "total_assets",
    "max_deposit",
    "max_mint",
    "max_withdraw",
    "max_redeem",
)
