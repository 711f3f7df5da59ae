"""Web3-backed adapters for running campaigns against a dev node (anvil / hardhat) or a fork.

Identity overrides use account impersonation, time moves with `evm_increaseTime`, and every
handler step is made atomic with `evm_snapshot` / `evm_revert`.
"""

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from web3 import Web3
from web3.exceptions import ContractLogicError

from vault_invariants.constants import (
    DEFAULT_TIMEOUT,
    DEV_NODE_GAS_BALANCE,
    HARNESS_ADDRESS,
    REBASING_TOKEN_MIN_ABI,
    WRAPPED_VAULT_MIN_ABI,
)
from vault_invariants.errors import CallReverted
from vault_invariants.formatters import as_int
from vault_invariants.models import RebaseState


class AnvilEnvironment:
    """Clock, identity and snapshots of a dev node, through raw JSON-RPC."""

    def __init__(self, w3: Web3, *, default_sender: str = HARNESS_ADDRESS) -> None:
        self.w3 = w3
        self.sender = Web3.to_checksum_address(default_sender)
        self._impersonated: set[str] = set()

    def rpc(self, method: str, params: list[Any]) -> Any:
        # provider.make_request bypasses web3.py middleware, so dev-node methods pass through untouched.
        response = self.w3.provider.make_request(method, params)
        if "error" in response:
            raise RuntimeError(f"RPC error in {method}: {response['error']}")
        return response.get("result")

    def impersonate(self, account: str) -> str:
        """Let `account` send transactions and give it gas money; returns the checksum address."""
        addr = Web3.to_checksum_address(account)
        if addr not in self._impersonated:
            self.rpc("anvil_impersonateAccount", [addr])
            self.rpc("anvil_setBalance", [addr, hex(DEV_NODE_GAS_BALANCE)])
            self._impersonated.add(addr)
        return addr

    def now(self) -> int:
        return as_int(self.w3.eth.get_block("latest")["timestamp"])

    def advance_clock(self, duration: int) -> None:
        self.rpc("evm_increaseTime", [duration])
        self.rpc("evm_mine", [])

    @contextmanager
    def act_as(self, actor: str) -> Iterator[None]:
        previous = self.sender
        self.sender = self.impersonate(actor)
        try:
            yield
        finally:
            self.sender = previous

    def snapshot(self) -> int:
        return as_int(self.rpc("evm_snapshot", []))

    def revert(self, snapshot_id: int) -> None:
        if not self.rpc("evm_revert", [hex(snapshot_id)]):
            raise RuntimeError(f"evm_revert rejected snapshot {snapshot_id}")
        # Gas money handed out after the snapshot is gone; impersonate again on next use.
        self._impersonated.clear()

    def release(self, snapshot_id: int) -> None:
        """No-op: dev nodes offer no RPC to discard a snapshot."""


class _ContractAdapter:
    def __init__(self, w3: Web3, env: AnvilEnvironment, address: str, abi: list[dict]) -> None:
        self.w3 = w3
        self.env = env
        self.address = Web3.to_checksum_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=abi)

    def _view(self, name: str, *args: Any) -> Any:
        try:
            return getattr(self.contract.functions, name)(*args).call()
        except ContractLogicError as ex:
            raise CallReverted(name, str(ex)) from ex

    def _send(self, name: str, *args: Any, sender: str | None = None) -> Any:
        """Simulate for the return value, then send and wait for the receipt."""
        sender = sender or self.env.sender
        fn = getattr(self.contract.functions, name)(*args)
        try:
            result = fn.call({"from": sender})
            tx_hash = fn.transact({"from": sender})
        except ContractLogicError as ex:
            raise CallReverted(name, str(ex)) from ex
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=DEFAULT_TIMEOUT)
        if receipt["status"] != 1:
            raise CallReverted(name, f"transaction {Web3.to_hex(tx_hash)} failed")
        return result


def _cs(address: str) -> str:
    return Web3.to_checksum_address(address)


class Web3Vault(_ContractAdapter):
    """Wrapped ERC4626 vault deployed on the node."""

    def __init__(self, w3: Web3, env: AnvilEnvironment, address: str) -> None:
        super().__init__(w3, env, address, WRAPPED_VAULT_MIN_ABI)

    def deposit(self, assets: int, receiver: str) -> int:
        return as_int(self._send("deposit", assets, _cs(receiver)))

    def mint(self, shares: int, receiver: str) -> int:
        return as_int(self._send("mint", shares, _cs(receiver)))

    def withdraw(self, assets: int, owner: str) -> int:
        return as_int(self._send("withdraw", assets, _cs(owner), _cs(owner)))

    def redeem(self, shares: int, owner: str) -> int:
        return as_int(self._send("redeem", shares, _cs(owner), _cs(owner)))

    def transfer(self, to: str, amount: int) -> bool:
        return bool(self._send("transfer", _cs(to), amount))

    def schedule_yield(self) -> None:
        self._send("scheduleYield")

    def preview_redeem(self, shares: int) -> int:
        return as_int(self._view("previewRedeem", shares))

    def convert_to_assets(self, shares: int) -> int:
        return as_int(self._view("convertToAssets", shares))

    def convert_to_shares(self, assets: int) -> int:
        return as_int(self._view("convertToShares", assets))

    def total_assets(self) -> int:
        return as_int(self._view("totalAssets"))

    def total_supply(self) -> int:
        return as_int(self._view("totalSupply"))

    def balance_of(self, account: str) -> int:
        return as_int(self._view("balanceOf", _cs(account)))

    def tracked_assets(self) -> int:
        return as_int(self._view("trackedAssets"))

    def yield_assets(self) -> int:
        return as_int(self._view("yieldAssets"))

    def yield_end(self) -> int:
        return as_int(self._view("yieldEnd"))

    def max_deposit(self, account: str) -> int:
        return as_int(self._view("maxDeposit", _cs(account)))

    def max_mint(self, account: str) -> int:
        return as_int(self._view("maxMint", _cs(account)))

    def max_withdraw(self, account: str) -> int:
        return as_int(self._view("maxWithdraw", _cs(account)))

    def max_redeem(self, account: str) -> int:
        return as_int(self._view("maxRedeem", _cs(account)))


class Web3BaseAsset(_ContractAdapter):
    """Rebasing base asset; privileged calls are sent from the impersonated `minter`."""

    def __init__(self, w3: Web3, env: AnvilEnvironment, address: str, *, minter: str) -> None:
        super().__init__(w3, env, address, REBASING_TOKEN_MIN_ABI)
        self.minter = _cs(minter)

    def _privileged(self, name: str, *args: Any) -> None:
        self._send(name, *args, sender=self.env.impersonate(self.minter))

    def mint(self, account: str, amount: int) -> None:
        self._privileged("mint", _cs(account), amount)

    def burn(self, account: str, amount: int) -> None:
        self._privileged("burn", _cs(account), amount)

    def change_supply(self, new_total: int) -> None:
        self._privileged("changeSupply", new_total)

    def transfer(self, to: str, amount: int) -> bool:
        return bool(self._send("transfer", _cs(to), amount))

    def approve(self, spender: str, amount: int) -> bool:
        return bool(self._send("approve", _cs(spender), amount))

    def rebase_opt_out(self) -> None:
        self._send("rebaseOptOut")

    def balance_of(self, account: str) -> int:
        return as_int(self._view("balanceOf", _cs(account)))

    def total_supply(self) -> int:
        return as_int(self._view("totalSupply"))

    def rebase_state(self, account: str) -> RebaseState:
        return RebaseState(as_int(self._view("rebaseState", _cs(account))))

    def credits_balance_of_highres(self, account: str) -> tuple[int, int, bool]:
        credits, credits_per_token, upgraded = self._view("creditsBalanceOfHighres", _cs(account))
        return as_int(credits), as_int(credits_per_token), bool(upgraded)


def connect_backend(
    rpc_url: str,
    *,
    vault_address: str,
    asset_address: str,
    minter: str,
    timeout_s: int = DEFAULT_TIMEOUT,
) -> tuple[AnvilEnvironment, Web3BaseAsset, Web3Vault]:
    """Connect to a dev node and wrap the deployed token and vault."""
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_s}))
    if not w3.is_connected():
        raise ConnectionError(f"failed to connect to RPC at {rpc_url}")
    env = AnvilEnvironment(w3)
    asset = Web3BaseAsset(w3, env, asset_address, minter=minter)
    vault = Web3Vault(w3, env, vault_address)
    print(f"ℹ️ Connected to {rpc_url} (chain id {w3.eth.chain_id})", file=sys.stderr)
    return env, asset, vault
