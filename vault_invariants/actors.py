"""Fixed pool of transaction senders."""

from collections.abc import Callable, Sequence

from vault_invariants.constants import ACTOR_ADDRESS_BASE


def default_actor_addresses(count: int) -> list[str]:
    """Deterministic, distinct addresses for an actor pool of `count` members."""
    if count <= 0:
        raise ValueError("count must be > 0")
    return [f"0x{ACTOR_ADDRESS_BASE + i:040x}" for i in range(count)]


class ActorRegistry:
    """Owns the actor pool; actors are never added or removed mid-campaign."""

    def __init__(self, actors: Sequence[str]) -> None:
        if not actors:
            raise ValueError("actor pool must not be empty")
        if len(set(actors)) != len(actors):
            raise ValueError("actor pool contains duplicates")
        self._actors = tuple(actors)

    def __len__(self) -> int:
        return len(self._actors)

    def __iter__(self):
        return iter(self._actors)

    def __contains__(self, actor: object) -> bool:
        return actor in self._actors

    @property
    def actors(self) -> tuple[str, ...]:
        return self._actors

    def pick(self, seed: int) -> str:
        return self._actors[seed % len(self._actors)]

    def scan_order(self, seed: int) -> list[str]:
        """Every actor exactly once, starting at `seed % len` and wrapping around."""
        n = len(self._actors)
        start = seed % n
        return [self._actors[(start + i) % n] for i in range(n)]

    def find(self, seed: int, predicate: Callable[[str], bool]) -> str | None:
        for actor in self.scan_order(seed):
            if predicate(actor):
                return actor
        return None

    def find_with_shares(self, seed: int, balance_of: Callable[[str], int]) -> tuple[str, int] | None:
        """First actor (in scan order from `seed`) holding a strictly positive share balance."""
        for actor in self.scan_order(seed):
            balance = balance_of(actor)
            if balance > 0:
                return actor, balance
        return None
