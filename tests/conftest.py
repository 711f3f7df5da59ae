import pytest

from vault_invariants.actors import default_actor_addresses
from vault_invariants.handlers import Harness
from vault_invariants.models import HarnessConfig
from vault_invariants.simulated import SimChain, SimRebasingToken, SimWrappedVault, build_simulated_backend


def make_harness(config: HarnessConfig | None = None, *, vault_cls: type[SimWrappedVault] | None = None) -> Harness:
    """Set-up harness on the simulated backend with a four-actor pool."""
    config = config or HarnessConfig()
    if vault_cls is None:
        chain, token, vault = build_simulated_backend(max_supply=config.max_supply, yield_window=config.yield_window)
    else:
        chain = SimChain()
        token = SimRebasingToken(chain, max_supply=config.max_supply)
        vault = vault_cls(chain, token, yield_window=config.yield_window)
    harness = Harness(vault, token, chain, actors=default_actor_addresses(4), config=config)
    harness.setup()
    return harness


@pytest.fixture
def harness() -> Harness:
    return make_harness()
