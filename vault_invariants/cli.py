"""CLI and main logic."""

import argparse
import os
import sys

from vault_invariants.actors import default_actor_addresses
from vault_invariants.campaign import Campaign
from vault_invariants.console import print_campaign_summary
from vault_invariants.constants import DEFAULT_ACTOR_COUNT, DEFAULT_SEED, DEFAULT_STEPS
from vault_invariants.errors import CallReverted, HarnessError
from vault_invariants.handlers import HANDLERS, Harness
from vault_invariants.models import HarnessConfig

EXIT_OK = 0
EXIT_INVARIANT_VIOLATION = 1
EXIT_CONFIG_ERROR = 2
EXIT_HARNESS_ERROR = 3


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(
        description="Stateful invariant fuzzing of a yield-accruing ERC4626 vault over a rebasing asset."
    )
    p.add_argument(
        "--backend",
        choices=("sim", "rpc"),
        default="sim",
        help="Run against the in-memory reference vault (sim) or contracts on a dev node (rpc). Default: sim.",
    )
    p.add_argument("--steps", type=int, default=DEFAULT_STEPS, help=f"Handler calls per campaign. Default: {DEFAULT_STEPS}.")
    p.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Seed for the pseudo-random call sequence.")
    p.add_argument(
        "--actors", type=int, default=DEFAULT_ACTOR_COUNT, help=f"Size of the actor pool. Default: {DEFAULT_ACTOR_COUNT}."
    )
    p.add_argument(
        "--handlers",
        default=None,
        help=f"Comma-separated subset of handlers to call. Available: {', '.join(HANDLERS)}.",
    )
    p.add_argument(
        "--soft-skip",
        action="store_true",
        help="Discard and resample void inputs instead of counting them as vacuous steps.",
    )
    p.add_argument("--log-clamps", action="store_true", help="Log every raw input that had to be folded into range.")
    p.add_argument(
        "--fail-on-revert",
        action="store_true",
        help="Treat a reverting adapter call as an invariant violation instead of a void input.",
    )
    p.add_argument("--verbose", action="store_true", help="Log skipped and discarded steps.")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    p.add_argument(
        "--rpc-url",
        default=None,
        help="Dev-node RPC URL (rpc backend). Required if ETH_RPC_URL environment variable is not set.",
    )
    p.add_argument("--vault", default=None, help="Wrapped vault address (rpc backend).")
    p.add_argument("--asset", default=None, help="Rebasing base asset address (rpc backend).")
    p.add_argument(
        "--minter",
        default=None,
        help="Address allowed to mint/burn/changeSupply on the base asset; impersonated (rpc backend).",
    )
    return p.parse_args(argv)


def build_harness(args: argparse.Namespace, config: HarnessConfig) -> Harness:
    """Build a harness on the requested backend. Raises ValueError/ConnectionError on bad configuration."""
    actors = default_actor_addresses(args.actors)
    if args.backend == "sim":
        from vault_invariants.simulated import build_simulated_backend

        chain, asset, vault = build_simulated_backend(max_supply=config.max_supply, yield_window=config.yield_window)
        return Harness(vault, asset, chain, actors=actors, config=config)

    rpc_url = args.rpc_url or os.getenv("ETH_RPC_URL")
    if not rpc_url:
        raise ValueError("RPC URL is required. Provide --rpc-url or set ETH_RPC_URL environment variable.")
    missing = [flag for flag, value in (("--vault", args.vault), ("--asset", args.asset), ("--minter", args.minter)) if not value]
    if missing:
        raise ValueError(f"rpc backend requires {', '.join(missing)}")

    try:
        from vault_invariants.onchain import connect_backend
    except ImportError as ex:
        raise ValueError(f"Missing dependency ({ex.name}). Run: uv sync") from ex

    env, asset, vault = connect_backend(rpc_url, vault_address=args.vault, asset_address=args.asset, minter=args.minter)
    return Harness(vault, asset, env, actors=actors, config=config)


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = HarnessConfig(
            skip_mode="soft" if args.soft_skip else "hard",
            log_clamps=args.log_clamps,
            fail_on_revert=args.fail_on_revert,
        )
        handlers = [h.strip() for h in args.handlers.split(",") if h.strip()] if args.handlers else None
        harness = build_harness(args, config)
        campaign = Campaign(
            harness,
            seed=args.seed,
            steps=args.steps,
            handlers=handlers,
            progress=not args.no_progress,
            verbose=args.verbose,
        )
    except (ValueError, ConnectionError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        harness.setup()
        report = campaign.run()
    except (HarnessError, CallReverted) as ex:
        print(f"💥 Harness error: {ex}", file=sys.stderr)
        return EXIT_HARNESS_ERROR

    print_campaign_summary(report, harness.ghost)
    if not report.passed:
        print(f"\n🔁 Reproduce with: --seed {report.seed} --steps {args.steps}", file=sys.stderr)
        return EXIT_INVARIANT_VIOLATION
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
