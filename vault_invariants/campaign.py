"""Reference campaign driver: seeded random handler calls, halting on the first violation."""

import random
import sys
from dataclasses import dataclass, field
from typing import Any

from tqdm import tqdm

from vault_invariants.constants import (
    DEFAULT_SEED,
    DEFAULT_STEPS,
    MAX_DISCARDS_PER_STEP,
    MAX_SUPPLY,
    MAX_UINT256,
    TOKEN_SCALE,
)
from vault_invariants.errors import InvariantViolation, VoidInput
from vault_invariants.handlers import HANDLERS, Harness
from vault_invariants.invariants import failed
from vault_invariants.models import InvariantResult

# Boundary values mixed into amount generation.
INTERESTING_AMOUNTS = (0, 1, 2, TOKEN_SCALE, MAX_SUPPLY, MAX_SUPPLY + 1, MAX_UINT256, -1)
AMOUNT_BIT_WIDTHS = (8, 16, 32, 64, 96, 128, 256)


@dataclass
class CampaignReport:
    """Outcome of one campaign."""

    seed: int
    passed: bool = True
    executed: int = 0
    skipped: int = 0
    discarded: int = 0
    # handler -> [executed, skipped]
    calls: dict[str, list[int]] = field(default_factory=dict)
    failures: list[InvariantResult] = field(default_factory=list)
    failed_step: str | None = None
    aggregate_results: list[InvariantResult] = field(default_factory=list)
    sequence: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)


class Campaign:
    """Drives a `Harness` with a reproducible pseudo-random sequence of handler calls."""

    def __init__(
        self,
        harness: Harness,
        *,
        seed: int = DEFAULT_SEED,
        steps: int = DEFAULT_STEPS,
        handlers: list[str] | None = None,
        progress: bool = True,
        verbose: bool = False,
    ) -> None:
        if steps <= 0:
            raise ValueError("steps must be > 0")
        names = handlers or list(HANDLERS)
        unknown = [n for n in names if n not in HANDLERS]
        if unknown:
            raise ValueError(f"unknown handlers: {', '.join(unknown)}")
        self.harness = harness
        self.seed = seed
        self.steps = steps
        self.handlers = names
        self.progress = progress
        self.verbose = verbose
        self._rng = random.Random(seed)

    def _random_amount(self) -> int:
        if self._rng.random() < 0.2:
            return self._rng.choice(INTERESTING_AMOUNTS)
        return self._rng.getrandbits(self._rng.choice(AMOUNT_BIT_WIDTHS))

    def _random_args(self, name: str) -> tuple[Any, ...]:
        args: list[Any] = []
        for kind in HANDLERS[name]:
            if kind == "seed":
                args.append(self._rng.getrandbits(32))
            elif kind == "flag":
                args.append(self._rng.random() < 0.5)
            else:
                args.append(self._random_amount())
        return tuple(args)

    def run(self) -> CampaignReport:
        report = CampaignReport(seed=self.seed, calls={name: [0, 0] for name in self.handlers})
        max_attempts = self.steps * MAX_DISCARDS_PER_STEP
        attempts = 0

        with tqdm(total=self.steps, desc="🧪 Fuzzing", unit="step", file=sys.stderr, disable=not self.progress) as pbar:
            while report.executed + report.skipped < self.steps:
                if attempts >= max_attempts:
                    tqdm.write(
                        f"⚠️  Gave up after {attempts} samples ({report.discarded} discarded); inputs are mostly void.",
                        file=sys.stderr,
                    )
                    break
                attempts += 1
                name = self._rng.choice(self.handlers)
                args = self._random_args(name)
                try:
                    outcome = self.harness.step(name, *args)
                except VoidInput as ex:
                    report.discarded += 1
                    if self.verbose:
                        tqdm.write(f"ℹ️  discarded {ex}", file=sys.stderr)
                    continue
                except InvariantViolation as ex:
                    report.sequence.append((name, args))
                    report.passed = False
                    report.failures = ex.results
                    report.failed_step = f"{name}{args}"
                    return report

                report.sequence.append((name, args))
                if outcome.executed:
                    report.executed += 1
                    report.calls[name][0] += 1
                else:
                    report.skipped += 1
                    report.calls[name][1] += 1
                    if self.verbose:
                        tqdm.write(f"ℹ️  skipped {name}: {outcome.reason}", file=sys.stderr)
                pbar.set_postfix(executed=report.executed, skipped=report.skipped)
                pbar.update(1)

        report.aggregate_results = self.harness.teardown()
        failures = failed(report.aggregate_results)
        if failures:
            report.passed = False
            report.failures = failures
            report.failed_step = "teardown"
        return report
