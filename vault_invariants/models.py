"""Data models for the wrapped-vault invariant harness."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from vault_invariants.constants import (
    DEAD_FLOOR,
    MAX_CHANGE_SUPPLY_BP,
    MAX_SUPPLY,
    MAX_YIELD_TIME,
    MIN_YIELD_FOR_CHECK,
    SHARE_ROUNDING_TOLERANCE,
    YIELD_DRIP_TOLERANCE,
    YIELD_WINDOW,
)


class LastAction(Enum):
    """The most recently executed state-changing handler."""

    NONE = "none"
    DEPOSIT = "deposit"
    MINT = "mint"
    REDEEM = "redeem"
    WITHDRAW = "withdraw"
    CHANGE_SUPPLY = "change_supply"
    DONATE = "donate"
    MANAGE_EXTRA_SUPPLY = "manage_extra_supply"
    PASS_TIME = "pass_time"
    TRANSFER = "transfer"
    SCHEDULE_YIELD = "schedule_yield"


# Actions that may move base-asset custody but must leave the vault's reported total untouched.
ASSET_NEUTRAL_ACTIONS = frozenset(
    {
        LastAction.DONATE,
        LastAction.MANAGE_EXTRA_SUPPLY,
        LastAction.TRANSFER,
        LastAction.SCHEDULE_YIELD,
    }
)


class RebaseState(IntEnum):
    """Rebase participation of a base-asset account (mirrors the token's RebaseOptions)."""

    NOT_SET = 0
    STD_NON_REBASING = 1
    STD_REBASING = 2
    YIELD_DELEGATION_SOURCE = 3
    YIELD_DELEGATION_TARGET = 4


@dataclass(frozen=True)
class Tolerances:
    """Slack permitted in approximate-equality checks, in base-asset units."""

    # Truncation of yield-per-second drip division.
    yield_drip: int = YIELD_DRIP_TOLERANCE
    # Multiplier on the accumulated one-share-worth slack of executed vault operations.
    share_rounding: int = SHARE_ROUNDING_TOLERANCE


@dataclass(frozen=True)
class HarnessConfig:
    """Campaign-wide bounds and policies."""

    max_supply: int = MAX_SUPPLY
    max_change_supply_bp: int = MAX_CHANGE_SUPPLY_BP
    max_yield_time: int = MAX_YIELD_TIME
    yield_window: int = YIELD_WINDOW
    min_yield_for_check: int = MIN_YIELD_FOR_CHECK
    dead_floor: int = DEAD_FLOOR
    tolerances: Tolerances = field(default_factory=Tolerances)
    # "hard": skipped steps return quietly; "soft": VoidInput reaches the driver for resampling.
    skip_mode: str = "hard"
    log_clamps: bool = False
    fail_on_revert: bool = False

    def __post_init__(self) -> None:
        if self.skip_mode not in ("hard", "soft"):
            raise ValueError(f"skip_mode must be 'hard' or 'soft', got {self.skip_mode!r}")
        if self.max_supply <= 0:
            raise ValueError("max_supply must be > 0")
        if self.max_change_supply_bp < 1:
            raise ValueError("max_change_supply_bp must be >= 1")
        if self.max_yield_time < 1 or self.yield_window < 1:
            raise ValueError("max_yield_time and yield_window must be >= 1")


@dataclass(frozen=True)
class InvariantResult:
    """Outcome of one invariant predicate; `details` holds the compared values on failure."""

    name: str
    passed: bool
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallResult:
    """Success flag and value of a wrapped view call."""

    success: bool
    value: int | None = None
    error: str = ""


@dataclass(frozen=True)
class StepOutcome:
    """What happened to one dispatched handler call."""

    handler: str
    executed: bool
    reason: str = ""
    results: tuple[InvariantResult, ...] = ()
