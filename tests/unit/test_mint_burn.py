"""
test_mint_burn.py - Unit tests for MintBurnController

Tests:
- mint records debt before the solvency check and issues tokens after it
- burn pulls tokens from the payer and destroys them from custody
- Local rollback on refused mints, failed checks and failed pulls
- settle() hands pulled tokens back when the release step fails
"""

import pytest

from stablecoin import (
    MintBurnController, create_debt_token,
    InvalidAmount, DebtUnderflow, MintFailed, TransferFailed, BreaksHealthFactor,
)

from tests.fake_tokens import RefusingDebtToken


CUSTODY = "dsc-engine"


@pytest.fixture
def dsc(chain):
    return create_debt_token(chain, owner=CUSTODY)


@pytest.fixture
def controller(dsc):
    return MintBurnController(dsc, CUSTODY)


class TestMint:

    def test_mint_records_debt_and_issues(self, controller, dsc):
        controller.mint("alice", 100)
        assert controller.debt_of("alice") == 100
        assert dsc.balance_of("alice") == 100

    def test_solvency_check_sees_new_debt(self, controller):
        seen = []
        controller.mint("alice", 100, solvency_check=lambda account: seen.append(controller.debt_of(account)))
        controller.mint("alice", 50, solvency_check=lambda account: seen.append(controller.debt_of(account)))
        assert seen == [100, 150]

    def test_failed_check_reverts_debt(self, controller, dsc):
        controller.mint("alice", 100)

        def reject(account):
            raise BreaksHealthFactor(0, account)

        with pytest.raises(BreaksHealthFactor):
            controller.mint("alice", 50, solvency_check=reject)
        assert controller.debt_of("alice") == 100
        assert dsc.balance_of("alice") == 100

    def test_refused_mint_reverts_debt(self, chain):
        refusing = RefusingDebtToken.register(chain, owner=CUSTODY)
        controller = MintBurnController(refusing, CUSTODY)
        with pytest.raises(MintFailed):
            controller.mint("alice", 100)
        assert controller.debt_of("alice") == 0

    def test_zero_amount(self, controller):
        with pytest.raises(InvalidAmount):
            controller.mint("alice", 0)

    def test_total_debt(self, controller):
        controller.mint("alice", 100)
        controller.mint("bob", 30)
        assert controller.total_debt() == 130


class TestBurn:

    @pytest.fixture
    def indebted(self, controller, dsc):
        controller.mint("alice", 100)
        dsc.approve("alice", CUSTODY, 100)
        return controller

    def test_burn_reduces_debt_and_supply(self, indebted, dsc):
        indebted.burn(40, "alice", "alice")
        assert indebted.debt_of("alice") == 60
        assert dsc.balance_of("alice") == 60
        assert dsc.balance_of(CUSTODY) == 0
        assert dsc.total_supply() == 60

    def test_third_party_payer(self, indebted, dsc):
        dsc.mint(CUSTODY, "bob", 30)
        dsc.approve("bob", CUSTODY, 30)
        indebted.burn(30, "alice", "bob")
        assert indebted.debt_of("alice") == 70
        assert dsc.balance_of("bob") == 0
        assert dsc.balance_of("alice") == 100

    def test_burn_more_than_debt(self, indebted):
        with pytest.raises(DebtUnderflow):
            indebted.burn(101, "alice", "alice")
        assert indebted.debt_of("alice") == 100

    def test_burn_without_allowance(self, controller, dsc):
        controller.mint("alice", 100)
        with pytest.raises(TransferFailed):
            controller.burn(10, "alice", "alice")
        assert controller.debt_of("alice") == 100
        assert dsc.balance_of("alice") == 100

    def test_burn_all_clears_entry(self, indebted):
        indebted.burn(100, "alice", "alice")
        assert indebted.snapshot() == {}


class TestSteps:
    """Table steps and token steps used separately."""

    def test_table_steps_move_no_tokens(self, controller, dsc):
        controller.increase_debt("alice", 100)
        controller.reduce_debt("alice", 40)
        assert controller.debt_of("alice") == 60
        assert dsc.total_supply() == 0

    def test_reduce_debt_underflow(self, controller):
        controller.increase_debt("alice", 10)
        with pytest.raises(DebtUnderflow):
            controller.reduce_debt("alice", 11)
        assert controller.debt_of("alice") == 10

    def test_settle_runs_release_before_burning(self, controller, dsc):
        controller.mint("alice", 100)
        dsc.approve("alice", CUSTODY, 100)
        custody_during_release = []
        controller.settle("alice", 40, release=lambda: custody_during_release.append(dsc.balance_of(CUSTODY)))
        assert custody_during_release == [40]
        assert dsc.balance_of(CUSTODY) == 0
        assert dsc.total_supply() == 60

    def test_failed_release_returns_pulled_tokens(self, controller, dsc):
        controller.mint("alice", 100)
        dsc.approve("alice", CUSTODY, 100)

        def fail():
            raise TransferFailed("collateral stuck")

        with pytest.raises(TransferFailed, match="collateral stuck"):
            controller.settle("alice", 40, release=fail)
        assert dsc.balance_of("alice") == 100
        assert dsc.balance_of(CUSTODY) == 0
        assert dsc.total_supply() == 100
