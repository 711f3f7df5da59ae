from types import SimpleNamespace

import pytest
from web3.exceptions import ContractLogicError

from vault_invariants.errors import CallReverted
from vault_invariants.models import RebaseState
from vault_invariants.onchain import AnvilEnvironment, Web3BaseAsset, Web3Vault

VAULT = "0x" + "1" * 40
ASSET = "0x" + "2" * 40
MINTER = "0x" + "3" * 40
ACTOR = "0x" + "0" * 35 + "10000"


class FakeProvider:
    def __init__(self, responses=None):
        self.calls = []
        self.responses = responses or {}

    def make_request(self, method, params):
        self.calls.append((method, params))
        return self.responses.get(method, {"result": True})


class FakeFunction:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    def call(self, tx=None):
        self.contract.calls.append(("call", self.name, self.args, tx))
        result = self.contract.results.get(self.name)
        if isinstance(result, Exception):
            raise result
        return result

    def transact(self, tx):
        self.contract.calls.append(("transact", self.name, self.args, tx))
        return b"\x12" * 32


class FakeContract:
    def __init__(self, results):
        self.results = results
        self.calls = []
        contract = self

        class _Functions:
            def __getattr__(self, name):
                return lambda *args: FakeFunction(contract, name, args)

        self.functions = _Functions()


def make_w3(results=None, *, status=1, responses=None):
    contract = FakeContract(results or {})
    eth = SimpleNamespace(
        contract=lambda address, abi: contract,
        get_block=lambda _tag: {"timestamp": 1_700_000_123},
        wait_for_transaction_receipt=lambda _tx, timeout: {"status": status},
    )
    w3 = SimpleNamespace(eth=eth, provider=FakeProvider(responses))
    return w3, contract


def test_environment_clock_and_snapshots():
    w3, _ = make_w3(responses={"evm_snapshot": {"result": "0x2a"}})
    env = AnvilEnvironment(w3)

    assert env.now() == 1_700_000_123
    env.advance_clock(3600)
    assert env.snapshot() == 42
    env.revert(42)

    methods = [m for m, _ in w3.provider.calls]
    assert methods == ["evm_increaseTime", "evm_mine", "evm_snapshot", "evm_revert"]
    assert w3.provider.calls[-1] == ("evm_revert", ["0x2a"])


def test_environment_rpc_errors_raise():
    w3, _ = make_w3(responses={"evm_mine": {"error": {"message": "boom"}}})
    env = AnvilEnvironment(w3)
    with pytest.raises(RuntimeError, match="evm_mine"):
        env.advance_clock(1)


def test_failed_revert_raises():
    w3, _ = make_w3(responses={"evm_revert": {"result": False}})
    with pytest.raises(RuntimeError, match="rejected"):
        AnvilEnvironment(w3).revert(7)


def test_act_as_impersonates_once_and_restores_sender():
    w3, _ = make_w3()
    env = AnvilEnvironment(w3)
    default = env.sender
    with env.act_as(ACTOR):
        assert env.sender.lower() == ACTOR
        with env.act_as(ACTOR):
            pass
    assert env.sender == default
    methods = [m for m, _ in w3.provider.calls]
    assert methods == ["anvil_impersonateAccount", "anvil_setBalance"]


def test_vault_sends_from_current_actor_and_returns_simulated_value():
    w3, contract = make_w3({"deposit": 999})
    env = AnvilEnvironment(w3)
    vault = Web3Vault(w3, env, VAULT)

    with env.act_as(ACTOR):
        shares = vault.deposit(1000, ACTOR)

    assert shares == 999
    kinds = [(kind, name) for kind, name, _args, _tx in contract.calls]
    assert kinds == [("call", "deposit"), ("transact", "deposit")]
    _, _, args, tx = contract.calls[1]
    assert args[0] == 1000
    assert tx["from"].lower() == ACTOR


def test_contract_logic_error_becomes_call_reverted():
    w3, _ = make_w3({"redeem": ContractLogicError("execution reverted: more than max")})
    vault = Web3Vault(w3, AnvilEnvironment(w3), VAULT)
    with pytest.raises(CallReverted) as exc_info:
        vault.redeem(1, ACTOR)
    assert exc_info.value.call == "redeem"


def test_failed_receipt_becomes_call_reverted():
    w3, _ = make_w3({"scheduleYield": None}, status=0)
    vault = Web3Vault(w3, AnvilEnvironment(w3), VAULT)
    with pytest.raises(CallReverted, match="failed"):
        vault.schedule_yield()


def test_base_asset_privileged_calls_come_from_minter():
    w3, contract = make_w3({"mint": None, "rebaseState": 1, "creditsBalanceOfHighres": (10, 20, True)})
    env = AnvilEnvironment(w3)
    asset = Web3BaseAsset(w3, env, ASSET, minter=MINTER)

    asset.mint(ACTOR, 5)

    _, name, _args, tx = contract.calls[-1]
    assert name == "mint"
    assert tx["from"].lower() == MINTER
    assert asset.rebase_state(ACTOR) is RebaseState.STD_NON_REBASING
    assert asset.credits_balance_of_highres(ACTOR) == (10, 20, True)


def test_revert_forgets_impersonations_so_gas_is_topped_up_again():
    w3, _ = make_w3(responses={"evm_snapshot": {"result": "0x1"}})
    env = AnvilEnvironment(w3)

    snapshot_id = env.snapshot()
    with env.act_as(ACTOR):
        pass
    env.revert(snapshot_id)
    with env.act_as(ACTOR):
        pass

    methods = [m for m, _ in w3.provider.calls]
    assert methods.count("anvil_setBalance") == 2
    assert methods[-2:] == ["anvil_impersonateAccount", "anvil_setBalance"]


def test_release_sends_nothing():
    w3, _ = make_w3()
    AnvilEnvironment(w3).release(3)
    assert w3.provider.calls == []
