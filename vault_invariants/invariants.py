"""Invariant predicates over the ghost state.

Every predicate is pure: it reads the ghost state and the configuration and returns an
`InvariantResult`. Step invariants run after every executed handler; aggregate invariants
run once, after the forced full exit at teardown.
"""

from collections.abc import Callable

from vault_invariants.ghost import GhostState
from vault_invariants.models import ASSET_NEUTRAL_ACTIONS, HarnessConfig, InvariantResult, LastAction

Predicate = Callable[[GhostState, HarnessConfig], InvariantResult]


def _ok(name: str) -> InvariantResult:
    return InvariantResult(name=name, passed=True)


def _user_deltas(g: GhostState) -> dict[str, int | str | None]:
    return {
        "actor": g.actor,
        "base_before": g.user_base_balance_before,
        "base_after": g.user_base_balance_after,
        "base_delta": g.user_base_balance_after - g.user_base_balance_before,
        "shares_before": g.user_share_balance_before,
        "shares_after": g.user_share_balance_after,
        "shares_delta": g.user_share_balance_after - g.user_share_balance_before,
    }


# -- step invariants ------------------------------------------------------


def cross_action_consistency(g: GhostState, _config: HarnessConfig) -> InvariantResult:
    """Donate, ManageExtraSupply, Transfer and ScheduleYield never move the reported total."""
    name = "cross_action_consistency"
    if g.last_action not in ASSET_NEUTRAL_ACTIONS or g.total_assets_after == g.total_assets_before:
        return _ok(name)
    return InvariantResult(
        name,
        False,
        {
            "last_action": g.last_action.value,
            "total_assets_before": g.total_assets_before,
            "total_assets_after": g.total_assets_after,
            "delta": g.total_assets_after - g.total_assets_before,
        },
    )


def erc4626_deposit_mint(g: GhostState, _config: HarnessConfig) -> InvariantResult:
    """
    Deposit/Mint: no new shares only when less than one share's worth was sent;
    otherwise base balance strictly down and share balance strictly up.
    """
    name = "erc4626_deposit_mint"
    if g.last_action not in (LastAction.DEPOSIT, LastAction.MINT):
        return _ok(name)

    sent = g.user_base_balance_before - g.user_base_balance_after
    if g.user_share_balance_after == g.user_share_balance_before:
        # sent <= totalAssets / totalSupply, kept in integers.
        passed = sent * g.total_supply_before <= g.total_assets_before
        details = {
            **_user_deltas(g),
            "sent": sent,
            "total_assets_before": g.total_assets_before,
            "total_supply_before": g.total_supply_before,
        }
    else:
        passed = (
            g.user_base_balance_after < g.user_base_balance_before
            and g.user_share_balance_after > g.user_share_balance_before
        )
        details = _user_deltas(g)
    if passed:
        return _ok(name)
    return InvariantResult(name, False, {"last_action": g.last_action.value, **details})


def erc4626_withdraw_redeem(g: GhostState, _config: HarnessConfig) -> InvariantResult:
    """Withdraw/Redeem: unchanged shares mean unchanged base; burned shares mean strictly more base."""
    name = "erc4626_withdraw_redeem"
    if g.last_action not in (LastAction.WITHDRAW, LastAction.REDEEM):
        return _ok(name)

    if g.user_share_balance_after == g.user_share_balance_before:
        passed = g.user_base_balance_after == g.user_base_balance_before
    elif g.user_share_balance_after < g.user_share_balance_before:
        passed = g.user_base_balance_after > g.user_base_balance_before
    else:
        passed = False
    if passed:
        return _ok(name)
    return InvariantResult(name, False, {"last_action": g.last_action.value, **_user_deltas(g)})


def views_never_revert(g: GhostState, _config: HarnessConfig) -> InvariantResult:
    name = "views_never_revert"
    failures = g.view_failures()
    if not failures:
        return _ok(name)
    return InvariantResult(name, False, {"failed_views": failures})


def yield_emission(g: GhostState, config: HarnessConfig) -> InvariantResult:
    """
    PassTime: total assets grow by the scheduled yield dripped over the elapsed part of the window.

    The effective duration is the elapsed time minus whatever fell after the window's end.
    With no window active the total must not move at all; with an active window and enough
    pending yield, the growth must match `yield * effective / window` within the drip tolerance.
    """
    name = "yield_emission"
    if g.last_action is not LastAction.PASS_TIME:
        return _ok(name)

    duration = g.last_time_pass_amount
    remaining = max(g.yield_end_before - g.timestamp_before, 0)
    effective = min(duration, remaining)
    observed = g.total_assets_after - g.total_assets_before

    if effective == 0:
        expected = 0
        passed = observed == 0
    elif g.yield_assets_before >= config.min_yield_for_check:
        expected = g.yield_assets_before * effective // config.yield_window
        passed = abs(observed - expected) <= config.tolerances.yield_drip
    else:
        return _ok(name)

    if passed:
        return _ok(name)
    return InvariantResult(
        name,
        False,
        {
            "duration": duration,
            "effective_duration": effective,
            "yield_assets_before": g.yield_assets_before,
            "yield_end_before": g.yield_end_before,
            "timestamp_before": g.timestamp_before,
            "expected_increase": expected,
            "observed_increase": observed,
            "delta": observed - expected,
        },
    )


STEP_INVARIANTS: tuple[Predicate, ...] = (
    cross_action_consistency,
    erc4626_deposit_mint,
    erc4626_withdraw_redeem,
    views_never_revert,
    yield_emission,
)


# -- aggregate invariants -------------------------------------------------


def net_flow_bounded_by_payouts(g: GhostState, config: HarnessConfig) -> InvariantResult:
    """Everything put in comes back out at full exit, up to accumulated share rounding."""
    name = "net_flow_bounded_by_payouts"
    tolerance = config.tolerances.share_rounding * g.rounding_slack
    if g.total_in <= g.total_out + tolerance:
        return _ok(name)
    return InvariantResult(
        name,
        False,
        {
            "sum_deposited": g.sum_deposited,
            "sum_minted": g.sum_minted,
            "sum_redeemed": g.sum_redeemed,
            "sum_withdrawn": g.sum_withdrawn,
            "total_in": g.total_in,
            "total_out": g.total_out,
            "tolerance": tolerance,
            "delta": g.total_in - g.total_out - tolerance,
        },
    )


def net_inflow_within_total_assets(g: GhostState, _config: HarnessConfig) -> InvariantResult:
    name = "net_inflow_within_total_assets"
    net = g.total_in - g.total_out
    if net < 0 or net <= g.total_assets_after:
        return _ok(name)
    return InvariantResult(
        name,
        False,
        {"net_inflow": net, "total_assets_after": g.total_assets_after, "delta": net - g.total_assets_after},
    )


def total_assets_within_tracked_band(g: GhostState, _config: HarnessConfig) -> InvariantResult:
    """trackedAssets - yieldAssets <= totalAssets <= trackedAssets (lower bound floored at zero)."""
    name = "total_assets_within_tracked_band"
    lower = max(g.tracked_assets - g.yield_assets, 0)
    if lower <= g.total_assets_after <= g.tracked_assets:
        return _ok(name)
    return InvariantResult(
        name,
        False,
        {
            "tracked_assets": g.tracked_assets,
            "yield_assets": g.yield_assets,
            "lower_bound": lower,
            "total_assets_after": g.total_assets_after,
            "below_by": max(lower - g.total_assets_after, 0),
            "above_by": max(g.total_assets_after - g.tracked_assets, 0),
        },
    )


AGGREGATE_INVARIANTS: tuple[Predicate, ...] = (
    net_flow_bounded_by_payouts,
    net_inflow_within_total_assets,
    total_assets_within_tracked_band,
)


def check_step_invariants(g: GhostState, config: HarnessConfig) -> list[InvariantResult]:
    return [predicate(g, config) for predicate in STEP_INVARIANTS]


def check_aggregate_invariants(g: GhostState, config: HarnessConfig) -> list[InvariantResult]:
    return [predicate(g, config) for predicate in AGGREGATE_INVARIANTS]


def failed(results: list[InvariantResult]) -> list[InvariantResult]:
    return [r for r in results if not r.passed]
