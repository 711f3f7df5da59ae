"""Console output formatting."""

import sys
from typing import TYPE_CHECKING

from vault_invariants.formatters import delta_indicator, format_amount, format_detail_value
from vault_invariants.ghost import GhostState
from vault_invariants.models import InvariantResult

if TYPE_CHECKING:
    from vault_invariants.campaign import CampaignReport  # pragma: no cover


def format_failures(results: list[InvariantResult], *, step: str | None = None) -> str:
    """Render failing invariants with every value they compared."""
    lines = []
    where = f" after {step}" if step else ""
    lines.append(f"❌ INVARIANT VIOLATION{where}")
    for r in results:
        if r.passed:
            continue
        lines.append(f"   • {r.name}")
        for key, value in r.details.items():
            lines.append(f"      - {key}: {format_detail_value(value)}")
    return "\n".join(lines)


def print_failures(results: list[InvariantResult], *, step: str | None = None) -> None:
    print(format_failures(results, step=step), file=sys.stderr)


def print_ghost_summary(g: GhostState) -> None:
    """Print the shadow accounting totals."""
    print("🧾 Ghost accounting:")
    print(f"   • Deposited:       {format_amount(g.sum_deposited)}")
    print(f"   • Minted:          {format_amount(g.sum_minted)}")
    print(f"   • Redeemed:        {format_amount(g.sum_redeemed)}")
    print(f"   • Withdrawn:       {format_amount(g.sum_withdrawn)}")
    flow = delta_indicator(g.total_in, g.total_out)
    print(f"   {flow} Net payout:      {format_amount(g.total_out - g.total_in)}")
    print(f"   • Donated credits: {format_amount(g.sum_donated_credits)}")
    print(f"   • Rounding slack:  {format_amount(g.rounding_slack)} over {g.vault_operations} vault operation(s)")
    print("🏦 Vault (last snapshot):")
    print(f"   • Total assets:    {format_amount(g.total_assets_after)}")
    print(f"   • Tracked assets:  {format_amount(g.tracked_assets)}")
    print(f"   • Yield assets:    {format_amount(g.yield_assets)} (ends at {g.yield_end})")
    print(f"   • Base held:       {format_amount(g.oeth_balance_of_vault)}")
    if g.vault_rebase_state is not None:
        print(f"   • Rebase state:    {g.vault_rebase_state.name}")


def print_campaign_summary(report: "CampaignReport", g: GhostState) -> None:
    """Print the end-of-campaign summary."""
    print("=" * 70)
    status = "✅ PASSED" if report.passed else "❌ FAILED"
    print(f"🧪 CAMPAIGN {status}  •  seed={report.seed}")
    print(f"   Steps: {report.executed} executed  •  {report.skipped} skipped  •  {report.discarded} discarded")
    print("=" * 70)

    print("📋 Handler calls (executed / skipped):")
    for name in sorted(report.calls):
        executed, skipped = report.calls[name]
        print(f"   • {name:<20} {executed:>6} / {skipped:<6}")

    print_ghost_summary(g)

    if report.failures:
        print_failures(report.failures, step=report.failed_step)
    elif report.aggregate_results:
        print("✅ Aggregate invariants:")
        for r in report.aggregate_results:
            print(f"   • {r.name}")
