import pytest

from conftest import make_harness
from vault_invariants.campaign import Campaign
from vault_invariants.models import HarnessConfig
from vault_invariants.simulated import SimWrappedVault


class UnbackedSharesVault(SimWrappedVault):
    """Mints shares without collecting the assets."""

    def _pull(self, owner, assets):
        return None


def test_campaign_rejects_bad_arguments(harness):
    with pytest.raises(ValueError, match="steps"):
        Campaign(harness, steps=0)
    with pytest.raises(ValueError, match="unknown handlers"):
        Campaign(harness, handlers=["deposit", "rug_pull"])


@pytest.mark.parametrize("seed", [0, 1, 7])
def test_seeded_campaign_on_reference_vault_passes(seed):
    harness = make_harness()
    report = Campaign(harness, seed=seed, steps=150, progress=False).run()

    assert report.passed, report.failures
    assert report.executed + report.skipped == 150
    assert report.failed_step is None
    assert {r.name for r in report.aggregate_results} == {
        "net_flow_bounded_by_payouts",
        "net_inflow_within_total_assets",
        "total_assets_within_tracked_band",
    }
    assert sum(executed for executed, _ in report.calls.values()) == report.executed


def test_campaign_is_reproducible():
    first = Campaign(make_harness(), seed=42, steps=60, progress=False).run()
    second = Campaign(make_harness(), seed=42, steps=60, progress=False).run()
    assert first.sequence == second.sequence
    assert first.calls == second.calls


def test_soft_skip_campaign_discards_void_inputs():
    harness = make_harness(HarnessConfig(skip_mode="soft"))
    report = Campaign(harness, seed=3, steps=40, handlers=["redeem", "deposit"], progress=False).run()
    assert report.passed
    assert report.skipped == 0
    assert report.executed == 40


def test_campaign_reports_first_violation():
    harness = make_harness(vault_cls=UnbackedSharesVault)
    report = Campaign(harness, seed=5, steps=200, handlers=["deposit", "redeem"], progress=False).run()
    assert not report.passed
    assert report.failed_step.startswith("deposit(")
    assert "erc4626_deposit_mint" in [r.name for r in report.failures]
    assert report.sequence[-1][0] == "deposit"


def test_long_campaign_does_not_accumulate_snapshots():
    harness = make_harness()
    report = Campaign(harness, seed=1, steps=300, progress=False).run()
    assert report.passed
    assert len(harness.env._snapshots) == 0
    assert harness.ghost.steps_skipped == report.skipped
