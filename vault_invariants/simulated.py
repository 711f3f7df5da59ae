"""In-memory system under test: a rebasing base asset, a wrapped ERC4626 vault and a clock.

The token follows the credits model of OETH-style rebasing tokens: rebasing accounts hold
credits that convert to balances through a global credits-per-token ratio, non-rebasing
accounts hold balances directly. The vault tracks the principal it believes it holds and
releases scheduled yield linearly over a fixed window.
"""

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from vault_invariants.constants import (
    CREDITS_RESOLUTION,
    HARNESS_ADDRESS,
    MAX_SUPPLY,
    MAX_UINT256,
    TOKEN_SCALE,
    YIELD_WINDOW,
)
from vault_invariants.errors import CallReverted
from vault_invariants.models import RebaseState

SIM_TOKEN_ADDRESS = "0x00000000000000000000000000000000000A55E7"
SIM_VAULT_ADDRESS = "0x0000000000000000000000000000000000000A17"
SIM_GENESIS_TIMESTAMP = 1_700_000_000


def _ceil_div(numer: int, denom: int) -> int:
    return -(-numer // denom)


class SimChain:
    """Clock, current sender and state snapshots shared by the simulated contracts."""

    def __init__(self, *, timestamp: int = SIM_GENESIS_TIMESTAMP, default_sender: str = HARNESS_ADDRESS) -> None:
        self.timestamp = timestamp
        self.sender = default_sender
        self._contracts: list[Any] = []
        self._snapshots: dict[int, tuple[int, list[Any]]] = {}
        self._next_snapshot_id = 1

    def register(self, contract: Any) -> None:
        self._contracts.append(contract)

    def now(self) -> int:
        return self.timestamp

    def advance_clock(self, duration: int) -> None:
        if duration < 0:
            raise ValueError("duration must be >= 0")
        self.timestamp += duration

    @contextmanager
    def act_as(self, actor: str) -> Iterator[None]:
        previous = self.sender
        self.sender = actor
        try:
            yield
        finally:
            self.sender = previous

    def snapshot(self) -> int:
        snapshot_id = self._next_snapshot_id
        self._next_snapshot_id += 1
        self._snapshots[snapshot_id] = (self.timestamp, [copy.deepcopy(c.state) for c in self._contracts])
        return snapshot_id

    def revert(self, snapshot_id: int) -> None:
        """Restore a snapshot; it and every later snapshot become unusable (dev-node semantics)."""
        if snapshot_id not in self._snapshots:
            raise ValueError(f"unknown snapshot id {snapshot_id}")
        self.timestamp, states = self._snapshots[snapshot_id]
        for contract, state in zip(self._contracts, states, strict=True):
            contract.state = copy.deepcopy(state)
        for sid in [s for s in self._snapshots if s >= snapshot_id]:
            del self._snapshots[sid]

    def release(self, snapshot_id: int) -> None:
        """Drop a snapshot that will never be reverted to."""
        self._snapshots.pop(snapshot_id, None)


@dataclass
class TokenState:
    credits: dict[str, int] = field(default_factory=dict)
    # Present only for non-rebasing accounts; their balance equals their credits.
    alternative_cpt: dict[str, int] = field(default_factory=dict)
    rebase_options: dict[str, RebaseState] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)
    rebasing_cpt: int = CREDITS_RESOLUTION
    rebasing_credits: int = 0
    non_rebasing_supply: int = 0
    total_supply: int = 0


class SimRebasingToken:
    """Rebasing base asset with a hard supply ceiling."""

    def __init__(self, chain: SimChain, *, address: str = SIM_TOKEN_ADDRESS, max_supply: int = MAX_SUPPLY) -> None:
        self.chain = chain
        self.address = address
        self.max_supply = max_supply
        self.state = TokenState()
        chain.register(self)

    def _cpt(self, account: str) -> int:
        return self.state.alternative_cpt.get(account) or self.state.rebasing_cpt

    def _is_non_rebasing(self, account: str) -> bool:
        return account in self.state.alternative_cpt

    def balance_of(self, account: str) -> int:
        credits = self.state.credits.get(account, 0)
        if credits == 0:
            return 0
        return credits * TOKEN_SCALE // self._cpt(account)

    def total_supply(self) -> int:
        return self.state.total_supply

    def credits_balance_of_highres(self, account: str) -> tuple[int, int, bool]:
        return self.state.credits.get(account, 0), self._cpt(account), True

    def rebase_state(self, account: str) -> RebaseState:
        return self.state.rebase_options.get(account, RebaseState.NOT_SET)

    def _set_balance(self, account: str, new_balance: int) -> None:
        s = self.state
        old_credits = s.credits.get(account, 0)
        if self._is_non_rebasing(account):
            s.non_rebasing_supply += new_balance - old_credits
            s.credits[account] = new_balance
        else:
            new_credits = _ceil_div(new_balance * s.rebasing_cpt, TOKEN_SCALE)
            s.rebasing_credits += new_credits - old_credits
            s.credits[account] = new_credits

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise CallReverted("transfer", "negative amount")
        balance = self.balance_of(sender)
        if amount > balance:
            raise CallReverted("transfer", f"amount {amount} exceeds balance {balance}")
        self._set_balance(sender, balance - amount)
        self._set_balance(to, self.balance_of(to) + amount)

    def transfer(self, to: str, amount: int) -> bool:
        self._move(self.chain.sender, to, amount)
        return True

    def approve(self, spender: str, amount: int) -> bool:
        self.state.allowances[(self.chain.sender, spender)] = amount
        return True

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        spender = self.chain.sender
        allowance = self.state.allowances.get((owner, spender), 0)
        if allowance < amount:
            raise CallReverted("transferFrom", f"allowance {allowance} < {amount}")
        if allowance != MAX_UINT256:
            self.state.allowances[(owner, spender)] = allowance - amount
        self._move(owner, to, amount)
        return True

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise CallReverted("mint", "negative amount")
        if self.state.total_supply + amount > self.max_supply:
            raise CallReverted("mint", "max supply")
        self.state.total_supply += amount
        self._set_balance(account, self.balance_of(account) + amount)

    def burn(self, account: str, amount: int) -> None:
        balance = self.balance_of(account)
        if amount < 0 or amount > balance:
            raise CallReverted("burn", f"amount {amount} exceeds balance {balance}")
        self._set_balance(account, balance - amount)
        self.state.total_supply -= amount

    def change_supply(self, new_total: int) -> None:
        s = self.state
        if s.total_supply == 0:
            raise CallReverted("changeSupply", "cannot increase 0 supply")
        new_total = min(new_total, self.max_supply)
        if new_total == s.total_supply:
            return
        rebasing_supply = new_total - s.non_rebasing_supply
        if rebasing_supply <= 0 or s.rebasing_credits == 0:
            raise CallReverted("changeSupply", "invalid change in supply")
        cpt = _ceil_div(s.rebasing_credits * TOKEN_SCALE, rebasing_supply)
        if cpt == 0:
            raise CallReverted("changeSupply", "invalid change in supply")
        s.rebasing_cpt = cpt
        s.total_supply = s.non_rebasing_supply + s.rebasing_credits * TOKEN_SCALE // cpt

    def rebase_opt_out(self) -> None:
        account = self.chain.sender
        if self._is_non_rebasing(account):
            raise CallReverted("rebaseOptOut", "account is not rebasing")
        s = self.state
        balance = self.balance_of(account)
        s.rebasing_credits -= s.credits.get(account, 0)
        s.credits[account] = balance
        s.alternative_cpt[account] = TOKEN_SCALE
        s.non_rebasing_supply += balance
        s.rebase_options[account] = RebaseState.STD_NON_REBASING

    def rebase_opt_in(self) -> None:
        account = self.chain.sender
        s = self.state
        if self._is_non_rebasing(account):
            balance = self.balance_of(account)
            del s.alternative_cpt[account]
            s.non_rebasing_supply -= balance
            new_credits = _ceil_div(balance * s.rebasing_cpt, TOKEN_SCALE)
            s.credits[account] = new_credits
            s.rebasing_credits += new_credits
        s.rebase_options[account] = RebaseState.STD_REBASING


@dataclass
class VaultState:
    balances: dict[str, int] = field(default_factory=dict)
    total_supply: int = 0
    tracked_assets: int = 0
    yield_assets: int = 0
    yield_end: int = 0


class SimWrappedVault:
    """ERC4626 wrapper around the rebasing token with one virtual share and one virtual asset."""

    def __init__(
        self,
        chain: SimChain,
        asset: SimRebasingToken,
        *,
        address: str = SIM_VAULT_ADDRESS,
        yield_window: int = YIELD_WINDOW,
    ) -> None:
        self.chain = chain
        self.asset = asset
        self.address = address
        self.yield_window = yield_window
        self.state = VaultState()
        chain.register(self)
        with chain.act_as(address):
            asset.rebase_opt_in()

    # -- accounting views -------------------------------------------------

    def total_assets(self) -> int:
        s = self.state
        now = self.chain.now()
        if now >= s.yield_end:
            return s.tracked_assets
        if now <= s.yield_end - self.yield_window:
            return s.tracked_assets - s.yield_assets
        unlocked = s.yield_assets * (self.yield_window - (s.yield_end - now)) // self.yield_window
        return s.tracked_assets - s.yield_assets + unlocked

    def total_supply(self) -> int:
        return self.state.total_supply

    def balance_of(self, account: str) -> int:
        return self.state.balances.get(account, 0)

    def tracked_assets(self) -> int:
        return self.state.tracked_assets

    def yield_assets(self) -> int:
        return self.state.yield_assets

    def yield_end(self) -> int:
        return self.state.yield_end

    def _to_shares(self, assets: int, *, round_up: bool) -> int:
        numer = assets * (self.state.total_supply + 1)
        denom = self.total_assets() + 1
        return _ceil_div(numer, denom) if round_up else numer // denom

    def _to_assets(self, shares: int, *, round_up: bool) -> int:
        numer = shares * (self.total_assets() + 1)
        denom = self.state.total_supply + 1
        return _ceil_div(numer, denom) if round_up else numer // denom

    def convert_to_shares(self, assets: int) -> int:
        return self._to_shares(assets, round_up=False)

    def convert_to_assets(self, shares: int) -> int:
        return self._to_assets(shares, round_up=False)

    def preview_redeem(self, shares: int) -> int:
        return self._to_assets(shares, round_up=False)

    def max_deposit(self, account: str) -> int:
        return MAX_UINT256

    def max_mint(self, account: str) -> int:
        return MAX_UINT256

    def max_withdraw(self, account: str) -> int:
        return self.convert_to_assets(self.balance_of(account))

    def max_redeem(self, account: str) -> int:
        return self.balance_of(account)

    # -- mutations --------------------------------------------------------

    def _mint_shares(self, account: str, shares: int) -> None:
        self.state.balances[account] = self.balance_of(account) + shares
        self.state.total_supply += shares

    def _burn_shares(self, account: str, shares: int) -> None:
        balance = self.balance_of(account)
        if shares > balance:
            raise CallReverted("burn", f"shares {shares} exceed balance {balance}")
        self.state.balances[account] = balance - shares
        self.state.total_supply -= shares

    def _pull(self, owner: str, assets: int) -> None:
        with self.chain.act_as(self.address):
            self.asset.transfer_from(owner, self.address, assets)

    def _push(self, receiver: str, assets: int) -> None:
        with self.chain.act_as(self.address):
            self.asset.transfer(receiver, assets)

    def deposit(self, assets: int, receiver: str) -> int:
        if assets < 0:
            raise CallReverted("deposit", "negative amount")
        caller = self.chain.sender
        shares = self._to_shares(assets, round_up=False)
        self._pull(caller, assets)
        self._mint_shares(receiver, shares)
        self.state.tracked_assets += assets
        return shares

    def mint(self, shares: int, receiver: str) -> int:
        if shares <= 0:
            raise CallReverted("mint", "zero shares")
        caller = self.chain.sender
        assets = self._to_assets(shares, round_up=True)
        self._pull(caller, assets)
        self._mint_shares(receiver, shares)
        self.state.tracked_assets += assets
        return assets

    def withdraw(self, assets: int, owner: str) -> int:
        if self.chain.sender != owner:
            raise CallReverted("withdraw", "caller is not owner")
        if assets > self.max_withdraw(owner):
            raise CallReverted("withdraw", "more than max")
        shares = self._to_shares(assets, round_up=True)
        self._burn_shares(owner, shares)
        self.state.tracked_assets -= assets
        self._push(owner, assets)
        return shares

    def redeem(self, shares: int, owner: str) -> int:
        if self.chain.sender != owner:
            raise CallReverted("redeem", "caller is not owner")
        if shares > self.max_redeem(owner):
            raise CallReverted("redeem", "more than max")
        assets = self._to_assets(shares, round_up=False)
        self._burn_shares(owner, shares)
        self.state.tracked_assets -= assets
        self._push(owner, assets)
        return assets

    def transfer(self, to: str, amount: int) -> bool:
        sender = self.chain.sender
        balance = self.balance_of(sender)
        if amount < 0 or amount > balance:
            raise CallReverted("transfer", f"amount {amount} exceeds balance {balance}")
        self.state.balances[sender] = balance - amount
        self.state.balances[to] = self.balance_of(to) + amount
        return True

    def schedule_yield(self) -> None:
        """Start releasing any surplus base asset over the next window; a no-op while one is running."""
        s = self.state
        now = self.chain.now()
        if now < s.yield_end:
            return
        computed = self.total_assets()
        actual = self.asset.balance_of(self.address)
        new_yield = actual - computed if actual > computed else 0
        s.tracked_assets = computed + new_yield
        s.yield_assets = new_yield
        s.yield_end = now + self.yield_window


def build_simulated_backend(
    *, max_supply: int = MAX_SUPPLY, yield_window: int = YIELD_WINDOW
) -> tuple[SimChain, SimRebasingToken, SimWrappedVault]:
    """Fresh chain with a token and a vault deployed on it."""
    chain = SimChain()
    token = SimRebasingToken(chain, max_supply=max_supply)
    vault = SimWrappedVault(chain, token, yield_window=yield_window)
    return chain, token, vault
