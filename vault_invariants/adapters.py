"""Interfaces of the external collaborators the harness drives.

The simulated backend (`simulated.py`) and the web3 backend (`onchain.py`) both satisfy them.
Every call that fails on the other side raises `CallReverted`.
"""

from contextlib import AbstractContextManager
from typing import Protocol

from vault_invariants.models import RebaseState


class VaultAdapter(Protocol):
    """ERC4626 wrapped vault with scheduled, linearly dripping yield."""

    address: str

    def deposit(self, assets: int, receiver: str) -> int: ...

    def mint(self, shares: int, receiver: str) -> int: ...

    def withdraw(self, assets: int, owner: str) -> int: ...

    def redeem(self, shares: int, owner: str) -> int: ...

    def preview_redeem(self, shares: int) -> int: ...

    def convert_to_assets(self, shares: int) -> int: ...

    def convert_to_shares(self, assets: int) -> int: ...

    def total_assets(self) -> int: ...

    def total_supply(self) -> int: ...

    def balance_of(self, account: str) -> int: ...

    def transfer(self, to: str, amount: int) -> bool: ...

    def tracked_assets(self) -> int: ...

    def yield_assets(self) -> int: ...

    def yield_end(self) -> int: ...

    def schedule_yield(self) -> None: ...

    def max_deposit(self, account: str) -> int: ...

    def max_mint(self, account: str) -> int: ...

    def max_withdraw(self, account: str) -> int: ...

    def max_redeem(self, account: str) -> int: ...


class BaseAssetAdapter(Protocol):
    """Rebasing base asset. mint/burn/change_supply are privileged and handled by the adapter."""

    address: str

    def mint(self, account: str, amount: int) -> None: ...

    def burn(self, account: str, amount: int) -> None: ...

    def balance_of(self, account: str) -> int: ...

    def total_supply(self) -> int: ...

    def transfer(self, to: str, amount: int) -> bool: ...

    def approve(self, spender: str, amount: int) -> bool: ...

    def change_supply(self, new_total: int) -> None: ...

    def rebase_state(self, account: str) -> RebaseState: ...

    def credits_balance_of_highres(self, account: str) -> tuple[int, int, bool]: ...

    def rebase_opt_out(self) -> None: ...


class Environment(Protocol):
    """Clock and identity provider."""

    def now(self) -> int: ...

    def advance_clock(self, duration: int) -> None: ...

    def act_as(self, actor: str) -> AbstractContextManager[None]: ...

    def snapshot(self) -> int: ...

    def revert(self, snapshot_id: int) -> None: ...

    def release(self, snapshot_id: int) -> None: ...
