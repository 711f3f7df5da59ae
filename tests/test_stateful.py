"""Hypothesis-driven state machine over the harness and the simulated vault."""

from hypothesis import HealthCheck, settings
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, rule

from conftest import make_harness
from vault_invariants.constants import MAX_SUPPLY, MAX_YIELD_TIME

seeds = st.integers(min_value=0, max_value=2**32)
# Boundary-heavy raw amounts: valid values, folded overflow and negatives.
amounts = st.one_of(
    st.integers(min_value=0, max_value=10**24),
    st.sampled_from([0, 1, 2, MAX_SUPPLY, MAX_SUPPLY + 1, 2**256 - 1, -1]),
    st.integers(min_value=-(2**256), max_value=2**256),
)


class WrappedVaultMachine(RuleBasedStateMachine):
    def __init__(self):
        super().__init__()
        self.harness = make_harness()

    @rule(actor=seeds, amount=amounts)
    def deposit(self, actor, amount):
        self.harness.step("deposit", actor, amount)

    @rule(actor=seeds, shares=amounts)
    def mint(self, actor, shares):
        self.harness.step("mint", actor, shares)

    @rule(actor=seeds, shares=amounts)
    def redeem(self, actor, shares):
        self.harness.step("redeem", actor, shares)

    @rule(actor=seeds, shares=amounts)
    def withdraw(self, actor, shares):
        self.harness.step("withdraw", actor, shares)

    @rule(pct=amounts)
    def change_supply(self, pct):
        self.harness.step("change_supply", pct)

    @rule(amount=amounts)
    def donate(self, amount):
        self.harness.step("donate", amount)

    @rule(amount=amounts, increase=st.booleans(), non_rebasing=st.booleans())
    def manage_extra_supply(self, amount, increase, non_rebasing):
        self.harness.step("manage_extra_supply", amount, increase, non_rebasing)

    @rule(duration=st.one_of(st.integers(min_value=1, max_value=MAX_YIELD_TIME), amounts))
    def pass_time(self, duration):
        self.harness.step("pass_time", duration)

    @rule(sender=seeds, receiver=seeds)
    def transfer(self, sender, receiver):
        self.harness.step("transfer", sender, receiver)

    @rule()
    def schedule_yield(self):
        self.harness.step("schedule_yield")

    @rule(actor=seeds, value=amounts)
    def views(self, actor, value):
        self.harness.step("views", actor, value)

    def teardown(self):
        self.harness.finish()


WrappedVaultMachine.TestCase.settings = settings(
    max_examples=30,
    stateful_step_count=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
TestWrappedVault = WrappedVaultMachine.TestCase
