import pytest

from vault_invariants.constants import MAX_UINT256, TOKEN_SCALE
from vault_invariants.errors import CallReverted
from vault_invariants.models import RebaseState
from vault_invariants.simulated import SIM_GENESIS_TIMESTAMP, build_simulated_backend

ALICE = "0x" + "0" * 39 + "a"
BOB = "0x" + "0" * 39 + "b"


@pytest.fixture
def backend():
    return build_simulated_backend(yield_window=1000)


def _deposit(chain, token, vault, actor, amount):
    token.mint(actor, amount)
    with chain.act_as(actor):
        token.approve(vault.address, MAX_UINT256)
        return vault.deposit(amount, actor)


def test_token_mint_transfer_burn(backend):
    chain, token, _vault = backend
    token.mint(ALICE, 1_000)
    with chain.act_as(ALICE):
        token.transfer(BOB, 400)
    assert token.balance_of(ALICE) == 600
    assert token.balance_of(BOB) == 400
    token.burn(BOB, 400)
    assert token.balance_of(BOB) == 0
    assert token.total_supply() == 600


def test_token_mint_respects_max_supply():
    _chain, token, _vault = build_simulated_backend(max_supply=1_000)
    token.mint(ALICE, 1_000)
    with pytest.raises(CallReverted, match="max supply"):
        token.mint(ALICE, 1)


def test_transfer_more_than_balance_reverts(backend):
    chain, token, _vault = backend
    token.mint(ALICE, 10)
    with chain.act_as(ALICE), pytest.raises(CallReverted):
        token.transfer(BOB, 11)


def test_change_supply_rebases_only_rebasing_accounts(backend):
    chain, token, _vault = backend
    token.mint(ALICE, 1_000 * TOKEN_SCALE)
    token.mint(BOB, 1_000 * TOKEN_SCALE)
    with chain.act_as(BOB):
        token.rebase_opt_out()
    assert token.rebase_state(BOB) is RebaseState.STD_NON_REBASING

    token.change_supply(3_000 * TOKEN_SCALE)

    assert token.balance_of(BOB) == 1_000 * TOKEN_SCALE
    # Ceiling credits-per-token can only round the rebased balance down.
    assert 2_000 * TOKEN_SCALE - 1 <= token.balance_of(ALICE) <= 2_000 * TOKEN_SCALE
    assert token.total_supply() <= 3_000 * TOKEN_SCALE


def test_change_supply_is_capped_at_max_supply():
    _chain, token, _vault = build_simulated_backend(max_supply=10**24)
    token.mint(ALICE, 10**21)
    token.change_supply(10**30)
    assert token.total_supply() <= 10**24


def test_vault_opts_into_rebasing_on_construction(backend):
    _chain, token, vault = backend
    assert token.rebase_state(vault.address) is RebaseState.STD_REBASING


def test_deposit_and_redeem_round_trip_at_unit_price(backend):
    chain, token, vault = backend
    shares = _deposit(chain, token, vault, ALICE, 1_000)
    assert shares == 1_000
    assert vault.total_assets() == 1_000
    assert vault.total_supply() == 1_000

    with chain.act_as(ALICE):
        assets = vault.redeem(shares, ALICE)
    assert assets == 1_000
    assert token.balance_of(ALICE) == 1_000
    assert vault.total_supply() == 0


def test_redeem_requires_owner_as_caller(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    with chain.act_as(BOB), pytest.raises(CallReverted, match="owner"):
        vault.redeem(1, ALICE)


def test_donation_is_ignored_until_yield_is_scheduled(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    token.mint(BOB, 500)
    with chain.act_as(BOB):
        token.transfer(vault.address, 500)

    assert vault.total_assets() == 1_000
    assert token.balance_of(vault.address) == 1_500

    vault.schedule_yield()
    assert vault.yield_assets() == 500
    assert vault.tracked_assets() == 1_500
    assert vault.yield_end() == SIM_GENESIS_TIMESTAMP + 1000
    # Nothing has dripped yet.
    assert vault.total_assets() == 1_000


def test_yield_drips_linearly_and_completes(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    token.mint(BOB, 500)
    with chain.act_as(BOB):
        token.transfer(vault.address, 500)
    vault.schedule_yield()

    chain.advance_clock(250)
    assert vault.total_assets() == 1_125
    chain.advance_clock(10_000)
    assert vault.total_assets() == 1_500


def test_schedule_yield_is_noop_inside_running_window(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    token.mint(BOB, 500)
    with chain.act_as(BOB):
        token.transfer(vault.address, 500)
    vault.schedule_yield()
    end = vault.yield_end()

    chain.advance_clock(10)
    vault.schedule_yield()
    assert vault.yield_end() == end
    assert vault.yield_assets() == 500


def test_share_price_above_one_rounds_against_the_user(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    token.mint(BOB, 1_000)
    with chain.act_as(BOB):
        token.transfer(vault.address, 1_000)
    vault.schedule_yield()
    chain.advance_clock(1_000)
    assert vault.total_assets() == 2_000

    # Price is ~2 assets per share: one asset buys nothing, one share costs two assets.
    assert vault.convert_to_shares(1) == 0
    assert vault.convert_to_assets(1) == 1
    token.mint(BOB, 10)
    with chain.act_as(BOB):
        token.approve(vault.address, MAX_UINT256)
        assert vault.mint(1, BOB) == 2


def test_withdraw_burns_rounded_up_shares(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    with chain.act_as(ALICE):
        shares = vault.withdraw(400, ALICE)
    assert shares == 400
    assert vault.balance_of(ALICE) == 600
    assert token.balance_of(ALICE) == 400
    with chain.act_as(ALICE), pytest.raises(CallReverted, match="max"):
        vault.withdraw(601, ALICE)


def test_snapshot_and_revert_restore_state_and_clock(backend):
    chain, token, vault = backend
    _deposit(chain, token, vault, ALICE, 1_000)
    snap = chain.snapshot()

    _deposit(chain, token, vault, BOB, 500)
    chain.advance_clock(42)
    chain.revert(snap)

    assert vault.total_supply() == 1_000
    assert token.balance_of(BOB) == 0
    assert chain.now() == SIM_GENESIS_TIMESTAMP
    with pytest.raises(ValueError):
        chain.revert(snap)


def test_negative_clock_advance_rejected(backend):
    chain, _token, _vault = backend
    with pytest.raises(ValueError):
        chain.advance_clock(-1)
