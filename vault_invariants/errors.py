"""Exception types for the harness.

Three tiers: a void input is expected and skipped, an invariant violation is a
bug in the system under test, a harness error is a bug in the harness itself.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vault_invariants.models import InvariantResult  # pragma: no cover


class VoidInput(Exception):
    """Raised when a random input sample maps to no meaningful action."""

    def __init__(self, handler: str, reason: str) -> None:
        self.handler = handler
        self.reason = reason
        super().__init__(f"{handler}: {reason}")


class InvariantViolation(AssertionError):
    """Raised when one or more invariants fail after a step or at teardown."""

    def __init__(self, results: list["InvariantResult"], *, step: str | None = None) -> None:
        self.results = results
        self.step = step
        names = ", ".join(r.name for r in results)
        where = f" after {step}" if step else ""
        super().__init__(f"invariant violations{where}: {names}")


class HarnessError(RuntimeError):
    """Raised when the harness's own bookkeeping or assumptions about an adapter break."""


class CallReverted(RuntimeError):
    """Raised by adapters when an external call fails."""

    def __init__(self, call: str, reason: str = "") -> None:
        self.call = call
        self.reason = reason
        super().__init__(f"{call} reverted{': ' + reason if reason else ''}")
