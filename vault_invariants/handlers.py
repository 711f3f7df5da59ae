"""Handler dispatcher: turns raw fuzz arguments into vault actions and keeps ghost state in sync.

Every handler clamps its raw inputs into a meaningful range, raises `VoidInput` when no valid
action exists, drives the adapters and records before/after snapshots in the ghost state.
`Harness.step` makes each call atomic and runs the step invariants afterwards.
"""

import copy
import sys
from collections.abc import Callable, Sequence
from typing import Any

from tqdm import tqdm

from vault_invariants.actors import ActorRegistry
from vault_invariants.adapters import BaseAssetAdapter, Environment, VaultAdapter
from vault_invariants.bounding import clamp
from vault_invariants.constants import (
    DEAD_NON_REBASING,
    DEAD_REBASING,
    HARNESS_ADDRESS,
    MAX_UINT256,
    TOTAL_BASIS_POINTS,
    VIEW_FUNCTIONS,
)
from vault_invariants.errors import CallReverted, HarnessError, InvariantViolation, VoidInput
from vault_invariants.ghost import GhostState
from vault_invariants.invariants import check_aggregate_invariants, check_step_invariants, failed
from vault_invariants.models import CallResult, HarnessConfig, InvariantResult, LastAction, StepOutcome

# Handler name -> kinds of the raw arguments a driver has to supply.
# "seed" selects an actor, "amount" is any integer, "flag" is a boolean.
HANDLERS: dict[str, tuple[str, ...]] = {
    "deposit": ("seed", "amount"),
    "mint": ("seed", "amount"),
    "redeem": ("seed", "amount"),
    "withdraw": ("seed", "amount"),
    "change_supply": ("amount",),
    "donate": ("amount",),
    "manage_extra_supply": ("amount", "flag", "flag"),
    "pass_time": ("amount",),
    "transfer": ("seed", "seed"),
    "schedule_yield": (),
    "views": ("seed", "amount"),
}


class Harness:
    """Owns the actor pool and the ghost state, and drives the vault and base-asset adapters."""

    def __init__(
        self,
        vault: VaultAdapter,
        asset: BaseAssetAdapter,
        env: Environment,
        *,
        actors: ActorRegistry | Sequence[str],
        config: HarnessConfig | None = None,
        harness_address: str = HARNESS_ADDRESS,
        dead_rebasing: str = DEAD_REBASING,
        dead_non_rebasing: str = DEAD_NON_REBASING,
    ) -> None:
        self.vault = vault
        self.asset = asset
        self.env = env
        self.actors = actors if isinstance(actors, ActorRegistry) else ActorRegistry(actors)
        self.config = config or HarnessConfig()
        self.harness_address = harness_address
        self.dead_rebasing = dead_rebasing
        self.dead_non_rebasing = dead_non_rebasing
        for special in (harness_address, dead_rebasing, dead_non_rebasing):
            if special in self.actors:
                raise ValueError(f"{special} is reserved and cannot be an actor")
        self.ghost = GhostState()
        self.dead_floors: dict[str, int] = {}

    @property
    def sentinels(self) -> tuple[str, str]:
        return self.dead_rebasing, self.dead_non_rebasing

    # -- lifecycle --------------------------------------------------------

    def setup(self) -> None:
        """Seed both sentinels with their protected floor and approve the vault for every actor."""
        for dead in self.sentinels:
            self._mint_base(dead, self.config.dead_floor)
        with self.env.act_as(self.dead_non_rebasing):
            self.asset.rebase_opt_out()
        for actor in self.actors:
            with self.env.act_as(actor):
                self.asset.approve(self.vault.address, MAX_UINT256)
        # The floor is whatever the sentinel holds once setup is done, rebasing rounding included.
        self.dead_floors = {dead: self.asset.balance_of(dead) for dead in self.sentinels}
        self.ghost = GhostState()

    def step(self, name: str, *args: Any) -> StepOutcome:
        """Run one handler atomically, then evaluate the step invariants."""
        if name not in HANDLERS:
            raise ValueError(f"unknown handler: {name}")
        handler: Callable[..., None] = getattr(self, name)

        snapshot_id = self.env.snapshot()
        ghost_backup = copy.deepcopy(self.ghost)
        try:
            handler(*args)
        except VoidInput as ex:
            soft = self.config.skip_mode == "soft"
            self._rollback(snapshot_id, ghost_backup, skipped=not soft)
            if soft:
                raise
            return StepOutcome(handler=name, executed=False, reason=ex.reason)
        except CallReverted as ex:
            soft = self.config.skip_mode == "soft"
            self._rollback(snapshot_id, ghost_backup, skipped=not (soft or self.config.fail_on_revert))
            if self.config.fail_on_revert:
                result = InvariantResult(
                    "no_unexpected_revert",
                    False,
                    {"handler": name, "args": args, "call": ex.call, "reason": ex.reason},
                )
                raise InvariantViolation([result], step=name) from ex
            if soft:
                raise VoidInput(name, str(ex)) from ex
            return StepOutcome(handler=name, executed=False, reason=str(ex))
        self.env.release(snapshot_id)

        self.ghost.steps_executed += 1
        results = check_step_invariants(self.ghost, self.config)
        failures = failed(results)
        if failures:
            raise InvariantViolation(failures, step=name)
        return StepOutcome(handler=name, executed=True, results=tuple(results))

    def teardown(self) -> list[InvariantResult]:
        """Force every actor to exit, burn all base-asset balances and evaluate aggregate invariants."""
        exit_failures: list[InvariantResult] = []
        for actor in self.actors:
            shares = self.vault.balance_of(actor)
            if shares > 0:
                self._count_rounding_slack()
                preview = self.vault.preview_redeem(shares)
                try:
                    with self.env.act_as(actor):
                        assets = self.vault.redeem(shares, actor)
                except CallReverted as ex:
                    exit_failures.append(
                        InvariantResult(
                            "full_exit",
                            False,
                            {"actor": actor, "shares": shares, "preview": preview, "reason": str(ex)},
                        )
                    )
                    continue
                self._check_preview("teardown redeem", preview, assets)
                self.ghost.record_redeem(actor, assets)
            self._burn_all(actor)
        for account in (self.harness_address, *self.sentinels):
            self._burn_all(account)

        self._snapshot_vault()
        return exit_failures + check_aggregate_invariants(self.ghost, self.config)

    def finish(self) -> list[InvariantResult]:
        results = self.teardown()
        failures = failed(results)
        if failures:
            raise InvariantViolation(failures, step="teardown")
        return results

    # -- handlers ---------------------------------------------------------

    def deposit(self, actor_seed: int, raw_amount: int) -> None:
        """Mint base to an actor and deposit all of it."""
        actor = self.actors.pick(actor_seed)
        amount = self._clamp(raw_amount, 0, self._mintable(), "deposit.amount")
        if amount == 0:
            raise VoidInput("deposit", "no mintable headroom")
        credited = self._mint_base(actor, amount)
        if credited == 0:
            raise VoidInput("deposit", "mint credited nothing")

        self._capture_before(actor)
        self._count_rounding_slack()
        with self.env.act_as(actor):
            self.vault.deposit(credited, actor)
        self._capture_after(LastAction.DEPOSIT)
        self.ghost.record_deposit(actor, credited)

    def mint(self, actor_seed: int, raw_shares: int) -> None:
        """Fund an actor for a share count and mint those shares."""
        actor = self.actors.pick(actor_seed)
        requested = self._clamp(raw_shares, 1, self.config.max_supply, "mint.shares")
        preview = self.vault.convert_to_assets(requested)
        if preview == 0 or preview >= self._mintable():
            raise VoidInput("mint", "preview outside mintable headroom")
        credited = self._mint_base(actor, preview)
        # Re-derive from what was actually credited so rounding can never ask for more than the actor holds.
        shares = self.vault.convert_to_shares(credited)
        if shares == 0:
            raise VoidInput("mint", "credited amount buys no shares")

        self._capture_before(actor)
        self._count_rounding_slack()
        with self.env.act_as(actor):
            assets = self.vault.mint(shares, actor)
        self._capture_after(LastAction.MINT)
        self.ghost.record_mint(actor, assets)

    def redeem(self, actor_seed: int, raw_shares: int) -> None:
        """Redeem part of a share-holding actor's position."""
        found = self.actors.find_with_shares(actor_seed, self.vault.balance_of)
        if found is None:
            raise VoidInput("redeem", "no actor holds shares")
        actor, balance = found
        shares = self._clamp(raw_shares, 1, balance, "redeem.shares")

        self._capture_before(actor)
        self._count_rounding_slack()
        preview = self.vault.preview_redeem(shares)
        with self.env.act_as(actor):
            assets = self.vault.redeem(shares, actor)
        self._capture_after(LastAction.REDEEM)
        self._check_preview("redeem", preview, assets)
        self.ghost.record_redeem(actor, assets)
        self._burn_all(actor)

    def withdraw(self, actor_seed: int, raw_shares: int) -> None:
        """Withdraw the assets backing part of a share-holding actor's position."""
        found = self.actors.find_with_shares(actor_seed, self.vault.balance_of)
        if found is None:
            raise VoidInput("withdraw", "no actor holds shares")
        actor, balance = found
        shares = self._clamp(raw_shares, 1, balance, "withdraw.shares")
        assets = self.vault.convert_to_assets(shares)
        if assets == 0:
            raise VoidInput("withdraw", "shares are worth nothing")

        self._capture_before(actor)
        self._count_rounding_slack()
        with self.env.act_as(actor):
            self.vault.withdraw(assets, actor)
        self._capture_after(LastAction.WITHDRAW)
        self.ghost.record_withdraw(actor, assets)
        self._burn_all(actor)

    def change_supply(self, raw_pct: int) -> None:
        """Rebase the base asset up by a bounded number of basis points."""
        pct = self._clamp(raw_pct, 1, self.config.max_change_supply_bp, "change_supply.bp")
        supply = self.asset.total_supply()
        new_supply = supply + supply * pct // TOTAL_BASIS_POINTS

        self._capture_before(None)
        with self.env.act_as(self.harness_address):
            self.asset.change_supply(new_supply)
        self._capture_after(LastAction.CHANGE_SUPPLY)

    def donate(self, raw_amount: int) -> None:
        """Send base asset straight to the vault, bypassing deposit."""
        amount = self._clamp(raw_amount, 0, self._mintable(), "donate.amount")
        if amount == 0:
            raise VoidInput("donate", "no mintable headroom")
        credited = self._mint_base(self.harness_address, amount)
        if credited == 0:
            raise VoidInput("donate", "mint credited nothing")

        self._capture_before(None)
        credits_before = self.asset.credits_balance_of_highres(self.vault.address)[0]
        with self.env.act_as(self.harness_address):
            self.asset.transfer(self.vault.address, credited)
        credits_after = self.asset.credits_balance_of_highres(self.vault.address)[0]
        self.ghost.record_donation(credits_before, credits_after)
        self.ghost.vault_rebase_state = self.asset.rebase_state(self.vault.address)
        self._capture_after(LastAction.DONATE)

    def manage_extra_supply(self, raw_amount: int, increase: bool, use_non_rebasing: bool) -> None:
        """Grow or shrink base supply held by one of the sentinels."""
        target = self.dead_non_rebasing if use_non_rebasing else self.dead_rebasing
        self._capture_before(None)
        self.manage_supplies(raw_amount, bool(increase), target)
        self._capture_after(LastAction.MANAGE_EXTRA_SUPPLY)

    def manage_supplies(self, amount: int, increase: bool, target: str) -> None:
        """Mint to or burn from `target` outside the vault, never touching the sentinels' floors."""
        if increase:
            bounded = self._clamp(amount, 0, self._mintable(), "manage_supplies.mint")
            if bounded == 0:
                raise VoidInput("manage_extra_supply", "no mintable headroom")
            self._mint_base(target, bounded)
        else:
            headroom = self.asset.balance_of(target) - self.dead_floors.get(target, 0)
            if headroom <= 0:
                raise VoidInput("manage_extra_supply", "nothing above the protected floor")
            bounded = self._clamp(amount, 0, headroom, "manage_supplies.burn")
            if bounded == 0:
                raise VoidInput("manage_extra_supply", "zero burn")
            self.asset.burn(target, bounded)
        self._check_sentinel_floors()

    def pass_time(self, raw_duration: int) -> None:
        """Advance the clock by at most one yield window."""
        duration = self._clamp(raw_duration, 1, self.config.max_yield_time, "pass_time.duration")
        self._capture_before(None)
        self.env.advance_clock(duration)
        self._capture_after(LastAction.PASS_TIME)
        self.ghost.last_time_pass_amount = duration

    def transfer(self, from_seed: int, to_seed: int) -> None:
        """Move a holder's entire share balance to another actor."""
        found = self.actors.find_with_shares(from_seed, self.vault.balance_of)
        if found is None:
            raise VoidInput("transfer", "no actor holds shares")
        sender, shares = found
        receiver = self.actors.pick(to_seed)

        self._capture_before(sender)
        with self.env.act_as(sender):
            if not self.vault.transfer(receiver, shares):
                raise CallReverted("transfer", "returned false")
        self._capture_after(LastAction.TRANSFER)
        self.ghost.record_transfer(sender, receiver, shares)

    def schedule_yield(self) -> None:
        """Start a new yield window from any surplus base asset."""
        self._capture_before(None)
        with self.env.act_as(self.harness_address):
            self.vault.schedule_yield()
        self._capture_after(LastAction.SCHEDULE_YIELD)

    def views(self, actor_seed: int, raw_value: int) -> None:
        """Call every public accessor; only the success flags are recorded."""
        actor = self.actors.pick(actor_seed)
        value = self._clamp(raw_value, 0, self.config.max_supply, "views.value")
        calls: dict[str, tuple[Callable[..., int], tuple[Any, ...]]] = {
            "convert_to_assets": (self.vault.convert_to_assets, (value,)),
            "convert_to_shares": (self.vault.convert_to_shares, (value,)),
            "total_assets": (self.vault.total_assets, ()),
            "max_deposit": (self.vault.max_deposit, (actor,)),
            "max_mint": (self.vault.max_mint, (actor,)),
            "max_withdraw": (self.vault.max_withdraw, (actor,)),
            "max_redeem": (self.vault.max_redeem, (actor,)),
        }
        for name in VIEW_FUNCTIONS:
            fn, args = calls[name]
            result = try_view(fn, *args)
            if not result.success:
                self.ghost.view_ok[name] = False
                tqdm.write(f"⚠️  view {name}{args} failed: {result.error}", file=sys.stderr)

    # -- helpers ----------------------------------------------------------

    def _clamp(self, value: int, low: int, high: int, label: str) -> int:
        return clamp(value, low, high, log_on_clamp=self.config.log_clamps, label=label)

    def _mintable(self) -> int:
        return max(self.config.max_supply - self.asset.total_supply(), 0)

    def _mint_base(self, account: str, amount: int) -> int:
        """Mint base asset and return the balance delta actually credited."""
        before = self.asset.balance_of(account)
        self.asset.mint(account, amount)
        supply = self.asset.total_supply()
        if supply > self.config.max_supply:
            raise HarnessError(f"base supply {supply} exceeds ceiling {self.config.max_supply} after minting {amount}")
        return self.asset.balance_of(account) - before

    def _burn_all(self, account: str) -> None:
        balance = self.asset.balance_of(account)
        if balance > 0:
            self.asset.burn(account, balance)

    def _check_sentinel_floors(self) -> None:
        for dead in self.sentinels:
            balance = self.asset.balance_of(dead)
            floor = self.dead_floors.get(dead, 0)
            if balance < floor:
                raise HarnessError(f"sentinel {dead} fell below its floor: {balance} < {floor}")

    @staticmethod
    def _check_preview(call: str, preview: int, actual: int) -> None:
        if preview != actual:
            raise HarnessError(f"{call}: preview {preview} != actual {actual} (delta {actual - preview})")

    def _count_rounding_slack(self) -> None:
        # One share's worth, rounded up, is the most a single conversion can lose.
        self.ghost.rounding_slack += self.vault.convert_to_assets(1) + 1

    def _rollback(self, snapshot_id: int, ghost_backup: GhostState, *, skipped: bool) -> None:
        self.env.revert(snapshot_id)
        self.ghost = ghost_backup
        if skipped:
            self.ghost.steps_skipped += 1

    def _capture_before(self, actor: str | None) -> None:
        g = self.ghost
        g.actor = actor
        g.total_assets_before = self.vault.total_assets()
        g.total_supply_before = self.vault.total_supply()
        g.yield_end_before = self.vault.yield_end()
        g.yield_assets_before = self.vault.yield_assets()
        g.timestamp_before = self.env.now()
        if actor is None:
            g.user_base_balance_before = g.user_share_balance_before = 0
        else:
            g.user_base_balance_before = self.asset.balance_of(actor)
            g.user_share_balance_before = self.vault.balance_of(actor)

    def _snapshot_vault(self) -> None:
        g = self.ghost
        g.total_assets_after = self.vault.total_assets()
        g.total_supply_after = self.vault.total_supply()
        g.tracked_assets = self.vault.tracked_assets()
        g.yield_assets = self.vault.yield_assets()
        g.yield_end = self.vault.yield_end()
        g.oeth_balance_of_vault = self.asset.balance_of(self.vault.address)
        g.timestamp_after = self.env.now()

    def _capture_after(self, action: LastAction) -> None:
        g = self.ghost
        self._snapshot_vault()
        if g.actor is None:
            g.user_base_balance_after = g.user_share_balance_after = 0
        else:
            g.user_base_balance_after = self.asset.balance_of(g.actor)
            g.user_share_balance_after = self.vault.balance_of(g.actor)
        g.last_action = action


def try_view(fn: Callable[..., int], *args: Any) -> CallResult:
    """Call a read-only accessor, capturing failure instead of propagating it."""
    try:
        return CallResult(success=True, value=fn(*args))
    except Exception as ex:  # pylint: disable=broad-exception-caught
        return CallResult(success=False, error=str(ex))
