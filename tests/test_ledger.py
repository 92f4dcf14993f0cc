"""
test_ledger.py - Unit tests for TokenLedger

Tests:
- Unit registration
- Atomic execution and rejection
- SYSTEM_WALLET issuance and conservation
- Allowances
- Snapshot and restore
"""

import pytest

from stablecoin import (
    Unit, Move, ExecuteResult, SYSTEM_WALLET,
    UnitNotRegistered, UNIT_TYPE_DEBT,
)


@pytest.fixture
def weth_chain(chain):
    chain.register_unit(Unit("WETH", "Wrapped Ether"))
    chain.execute([Move(100, "WETH", SYSTEM_WALLET, "alice", "mint")])
    return chain


class TestRegistration:
    """Tests for unit registration."""

    def test_register_unit(self, chain):
        chain.register_unit(Unit("DSC", "Stable", unit_type=UNIT_TYPE_DEBT))
        assert chain.list_units() == ["DSC"]
        assert chain.get_unit("DSC").unit_type == UNIT_TYPE_DEBT

    def test_register_duplicate_raises(self, chain):
        chain.register_unit(Unit("WETH", "Wrapped Ether"))
        with pytest.raises(ValueError, match="already registered"):
            chain.register_unit(Unit("WETH", "Other"))

    def test_unregistered_unit_balance_raises(self, chain):
        with pytest.raises(UnitNotRegistered):
            chain.get_balance("alice", "NOPE")

    def test_unknown_wallet_has_zero_balance(self, weth_chain):
        assert weth_chain.get_balance("nobody", "WETH") == 0


class TestExecute:
    """Tests for atomic batch execution."""

    def test_transfer_applies(self, weth_chain):
        result = weth_chain.execute([Move(40, "WETH", "alice", "bob")])
        assert result == ExecuteResult.APPLIED
        assert weth_chain.get_balance("alice", "WETH") == 60
        assert weth_chain.get_balance("bob", "WETH") == 40

    def test_overdraft_rejected(self, weth_chain):
        result = weth_chain.execute([Move(101, "WETH", "alice", "bob")])
        assert result == ExecuteResult.REJECTED
        assert weth_chain.get_balance("alice", "WETH") == 100
        assert weth_chain.get_balance("bob", "WETH") == 0

    def test_batch_validated_on_net_balances(self, weth_chain):
        """bob can forward tokens he receives earlier in the same batch."""
        result = weth_chain.execute([
            Move(50, "WETH", "alice", "bob"),
            Move(50, "WETH", "bob", "carol"),
        ])
        assert result == ExecuteResult.APPLIED
        assert weth_chain.get_balance("carol", "WETH") == 50
        assert weth_chain.get_balance("bob", "WETH") == 0

    def test_failing_move_rolls_back_batch(self, weth_chain):
        result = weth_chain.execute([
            Move(50, "WETH", "alice", "bob"),
            Move(80, "WETH", "alice", "carol"),
        ])
        assert result == ExecuteResult.REJECTED
        assert weth_chain.get_balance("alice", "WETH") == 100
        assert weth_chain.get_balance("bob", "WETH") == 0

    def test_unregistered_unit_rejected(self, weth_chain):
        result = weth_chain.execute([Move(1, "WBTC", "alice", "bob")])
        assert result == ExecuteResult.REJECTED

    def test_empty_batch_is_noop(self, weth_chain):
        log_length = len(weth_chain.transaction_log)
        assert weth_chain.execute([]) == ExecuteResult.APPLIED
        assert len(weth_chain.transaction_log) == log_length

    def test_audit_log_records_origin(self, weth_chain):
        weth_chain.execute([Move(1, "WETH", "alice", "bob")], origin="WETH.transfer")
        tx = weth_chain.transaction_log[-1]
        assert tx.origin == "WETH.transfer"
        assert tx.sequence_number == 1
        assert tx.exec_id == "exec:test:000000000001"

    def test_move_rejects_non_int_quantity(self):
        with pytest.raises(ValueError, match="must be int"):
            Move(1.5, "WETH", "alice", "bob")

    def test_move_rejects_self_transfer(self):
        with pytest.raises(ValueError, match="different"):
            Move(1, "WETH", "alice", "alice")


class TestConservation:
    """Issuance through SYSTEM_WALLET keeps every unit summing to zero."""

    def test_total_supply_tracks_issuance(self, weth_chain):
        assert weth_chain.total_supply("WETH") == 100
        weth_chain.execute([Move(30, "WETH", "alice", SYSTEM_WALLET, "burn")])
        assert weth_chain.total_supply("WETH") == 70

    def test_verify_conservation(self, weth_chain):
        weth_chain.execute([Move(25, "WETH", "alice", "bob")])
        report = weth_chain.verify_conservation()
        assert report['valid']
        assert report['supplies'] == {"WETH": 100}
        assert report['discrepancies'] == []

    def test_positions_include_system_wallet(self, weth_chain):
        assert weth_chain.get_positions("WETH") == {"alice": 100, SYSTEM_WALLET: -100}


class TestAllowances:

    def test_approve_and_spend(self, weth_chain):
        weth_chain.approve("alice", "engine", "WETH", 10)
        assert weth_chain.spend_allowance("alice", "engine", "WETH", 4)
        assert weth_chain.allowance("alice", "engine", "WETH") == 6

    def test_overspend_refused(self, weth_chain):
        weth_chain.approve("alice", "engine", "WETH", 10)
        assert not weth_chain.spend_allowance("alice", "engine", "WETH", 11)
        assert weth_chain.allowance("alice", "engine", "WETH") == 10

    def test_negative_allowance_raises(self, weth_chain):
        with pytest.raises(ValueError):
            weth_chain.approve("alice", "engine", "WETH", -1)


class TestStateCapture:
    """Tests for snapshot/restore."""

    def test_restore_undoes_transfers_and_log(self, weth_chain):
        snapshot = weth_chain.snapshot()
        weth_chain.execute([Move(60, "WETH", "alice", "bob")])
        weth_chain.approve("alice", "engine", "WETH", 5)

        weth_chain.restore(snapshot)

        assert weth_chain.get_balance("alice", "WETH") == 100
        assert weth_chain.get_balance("bob", "WETH") == 0
        assert weth_chain.allowance("alice", "engine", "WETH") == 0
        assert len(weth_chain.transaction_log) == 1
        assert weth_chain.snapshot() == snapshot

    def test_sequence_resumes_after_restore(self, weth_chain):
        snapshot = weth_chain.snapshot()
        weth_chain.execute([Move(1, "WETH", "alice", "bob")])
        weth_chain.restore(snapshot)
        weth_chain.execute([Move(1, "WETH", "alice", "carol")])
        assert weth_chain.transaction_log[-1].sequence_number == 1
