"""Shadow ("ghost") accounting kept in parallel with the real vault."""

from collections import defaultdict
from dataclasses import dataclass, field

from vault_invariants.constants import VIEW_FUNCTIONS
from vault_invariants.errors import HarnessError
from vault_invariants.models import LastAction, RebaseState


def _counter() -> defaultdict[str, int]:
    return defaultdict(int)


def _view_flags() -> dict[str, bool]:
    return {name: True for name in VIEW_FUNCTIONS}


@dataclass
class GhostState:
    """
    Mutable shadow record of one campaign.

    Only handlers write to it and the invariant checker only reads it. Counters never decrease;
    a skipped or reverted step leaves every field untouched. "After" fields are only meaningful
    once `last_action` is not NONE.
    """

    # Per-actor flows.
    deposited: defaultdict[str, int] = field(default_factory=_counter)
    minted: defaultdict[str, int] = field(default_factory=_counter)
    redeemed: defaultdict[str, int] = field(default_factory=_counter)
    withdrawn: defaultdict[str, int] = field(default_factory=_counter)
    transfer_from: defaultdict[str, int] = field(default_factory=_counter)
    transfer_to: defaultdict[str, int] = field(default_factory=_counter)

    # Aggregates.
    sum_deposited: int = 0
    sum_minted: int = 0
    sum_redeemed: int = 0
    sum_withdrawn: int = 0
    sum_donated_credits: int = 0
    vault_operations: int = 0
    # Sum over vault operations of one share's worth at the time of the call.
    rounding_slack: int = 0

    # Vault totals around the current step's external call.
    total_assets_before: int = 0
    total_assets_after: int = 0
    total_supply_before: int = 0
    total_supply_after: int = 0

    # Vault-observable snapshot.
    oeth_balance_of_vault: int = 0
    tracked_assets: int = 0
    yield_assets: int = 0
    yield_assets_before: int = 0
    yield_end: int = 0
    yield_end_before: int = 0
    timestamp_before: int = 0
    timestamp_after: int = 0
    last_time_pass_amount: int = 0
    vault_rebase_state: RebaseState | None = None

    # Per-call user snapshot.
    actor: str | None = None
    user_base_balance_before: int = 0
    user_base_balance_after: int = 0
    user_share_balance_before: int = 0
    user_share_balance_after: int = 0

    view_ok: dict[str, bool] = field(default_factory=_view_flags)
    last_action: LastAction = LastAction.NONE

    steps_executed: int = 0
    steps_skipped: int = 0

    @property
    def total_in(self) -> int:
        return self.sum_deposited + self.sum_minted

    @property
    def total_out(self) -> int:
        return self.sum_redeemed + self.sum_withdrawn

    @staticmethod
    def _check_amount(kind: str, amount: int) -> None:
        if amount < 0:
            raise HarnessError(f"ghost {kind} amount must be non-negative, got {amount}")

    def record_deposit(self, actor: str, assets: int) -> None:
        self._check_amount("deposit", assets)
        self.deposited[actor] += assets
        self.sum_deposited += assets
        self.vault_operations += 1

    def record_mint(self, actor: str, assets: int) -> None:
        self._check_amount("mint", assets)
        self.minted[actor] += assets
        self.sum_minted += assets
        self.vault_operations += 1

    def record_redeem(self, actor: str, assets: int) -> None:
        self._check_amount("redeem", assets)
        self.redeemed[actor] += assets
        self.sum_redeemed += assets
        self.vault_operations += 1

    def record_withdraw(self, actor: str, assets: int) -> None:
        self._check_amount("withdraw", assets)
        self.withdrawn[actor] += assets
        self.sum_withdrawn += assets
        self.vault_operations += 1

    def record_transfer(self, sender: str, receiver: str, shares: int) -> None:
        self._check_amount("transfer", shares)
        self.transfer_from[sender] += shares
        self.transfer_to[receiver] += shares

    def record_donation(self, credits_before: int, credits_after: int) -> None:
        # Credits can only grow when the vault receives tokens.
        if credits_after < credits_before:
            raise HarnessError(
                f"vault credits decreased on donation: {credits_before} -> {credits_after}"
            )
        self.sum_donated_credits += credits_after - credits_before

    def view_failures(self) -> list[str]:
        return [name for name, ok in self.view_ok.items() if not ok]
