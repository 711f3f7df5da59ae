import copy

import pytest

from vault_invariants.constants import VIEW_FUNCTIONS
from vault_invariants.errors import HarnessError
from vault_invariants.ghost import GhostState
from vault_invariants.models import LastAction


def test_fresh_ghost_state_is_zeroed():
    g = GhostState()
    assert g.total_in == 0
    assert g.total_out == 0
    assert g.last_action is LastAction.NONE
    assert set(g.view_ok) == set(VIEW_FUNCTIONS)
    assert g.view_failures() == []


def test_record_flows_update_per_actor_and_totals():
    g = GhostState()
    g.record_deposit("a", 100)
    g.record_mint("b", 50)
    g.record_redeem("a", 40)
    g.record_withdraw("b", 20)

    assert g.deposited["a"] == 100
    assert g.minted["b"] == 50
    assert g.redeemed["a"] == 40
    assert g.withdrawn["b"] == 20
    assert g.total_in == 150
    assert g.total_out == 60
    assert g.vault_operations == 4
    # Untouched actors read as zero.
    assert g.deposited["nobody"] == 0


def test_record_transfer_tracks_both_sides():
    g = GhostState()
    g.record_transfer("a", "b", 10)
    g.record_transfer("a", "c", 5)
    assert g.transfer_from["a"] == 15
    assert g.transfer_to["b"] == 10
    assert g.transfer_to["c"] == 5


def test_negative_amounts_are_harness_errors():
    g = GhostState()
    with pytest.raises(HarnessError):
        g.record_deposit("a", -1)
    with pytest.raises(HarnessError):
        g.record_donation(10, 9)
    assert g.sum_deposited == 0


def test_record_donation_accumulates_credit_delta():
    g = GhostState()
    g.record_donation(1_000, 1_500)
    g.record_donation(1_500, 1_500)
    assert g.sum_donated_credits == 500


def test_deepcopy_is_independent():
    g = GhostState()
    g.record_deposit("a", 1)
    backup = copy.deepcopy(g)
    g.record_deposit("a", 1)
    g.view_ok["total_assets"] = False
    assert backup.deposited["a"] == 1
    assert backup.view_failures() == []
    assert g.view_failures() == ["total_assets"]
