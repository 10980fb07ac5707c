"""
Tests for goal allocation
"""

from decimal import Decimal

import pytest

from ledger_core.goals import allocate_goals, initial_states, run_pass
from ledger_core.models import Goal


def goal(goal_id: str, target: str) -> Goal:
    return Goal(id=goal_id, title=goal_id, target_amount=Decimal(target))


def amounts(result):
    return {a.goal_id: a.current_amount for a in result.allocations}


class TestAllocateGoals:
    """Tests for allocate_goals."""

    def test_small_goal_overflows_into_large_one(self):
        """Test A(10) fills up and passes its surplus to B(1000)."""
        result = allocate_goals(Decimal("100"), [goal("A", "10"), goal("B", "1000")])

        a = result.for_goal("A")
        b = result.for_goal("B")
        assert a.current_amount == Decimal("10.00")
        assert a.is_full is True
        assert b.current_amount == Decimal("90.00")
        assert b.is_full is False
        assert result.converged is True
        assert result.passes == 2

    def test_all_goals_full_when_balance_suffices(self):
        """Test every goal is full when the targets fit in the balance."""
        goals = [goal("A", "10"), goal("B", "20"), goal("C", "30")]

        result = allocate_goals(Decimal("100"), goals)

        assert all(a.is_full for a in result.allocations)
        assert amounts(result) == {
            "A": Decimal("10.00"),
            "B": Decimal("20.00"),
            "C": Decimal("30.00"),
        }

    def test_surplus_is_left_unassigned(self):
        """Test a balance larger than all targets is not forced onto goals."""
        result = allocate_goals(Decimal("100"), [goal("A", "10")])
        assert result.allocated_total == Decimal("10.00")

    def test_cascading_overflow(self):
        """Test overflow freed in a later pass keeps flowing."""
        goals = [goal("A", "10"), goal("B", "35"), goal("C", "100")]

        result = allocate_goals(Decimal("90"), goals)

        assert amounts(result) == {
            "A": Decimal("10.00"),
            "B": Decimal("35.00"),
            "C": Decimal("45.00"),
        }
        assert result.passes == 3
        assert result.allocated_total == Decimal("90.00")

    def test_total_never_exceeds_balance(self):
        goals = [goal("A", "500"), goal("B", "700"), goal("C", "3")]
        result = allocate_goals(Decimal("250"), goals)
        assert result.allocated_total <= Decimal("250")

    def test_no_goals(self):
        result = allocate_goals(Decimal("100"), [])
        assert result.allocations == []
        assert result.converged is True
        assert result.passes == 0

    def test_zero_balance(self):
        result = allocate_goals(Decimal("0"), [goal("A", "10"), goal("B", "20")])
        assert all(a.current_amount == Decimal("0.00") for a in result.allocations)
        assert not any(a.is_full for a in result.allocations)
        assert result.converged is True

    def test_within_epsilon_counts_as_full(self):
        """Test a share a hair below the target still fills the goal."""
        result = allocate_goals(Decimal("9.9995"), [goal("A", "10")])
        allocation = result.for_goal("A")
        assert allocation.is_full is True
        assert allocation.current_amount == Decimal("10.00")

    def test_pass_cap_reports_non_convergence(self):
        """Test hitting the cap returns the last state instead of raising."""
        result = allocate_goals(
            Decimal("100"),
            [goal("A", "10"), goal("B", "1000")],
            max_passes=1,
        )

        assert result.converged is False
        assert result.passes == 1
        assert result.for_goal("B").current_amount == Decimal("90.00")

    def test_pass_cap_from_settings(self, monkeypatch):
        monkeypatch.setenv("LEDGER_ALLOCATOR_MAX_PASSES", "1")
        result = allocate_goals(Decimal("100"), [goal("A", "10"), goal("B", "1000")])
        assert result.passes == 1

    def test_never_more_than_twenty_passes(self):
        """Test the default cap bounds the run for many goals."""
        goals = [goal(f"G{i}", str(i + 1)) for i in range(60)]
        result = allocate_goals(Decimal("1000"), goals)
        assert result.passes <= 20

    def test_idempotent(self):
        """Test the same inputs always give the same allocation."""
        goals = [goal("A", "10"), goal("B", "35"), goal("C", "100")]
        first = allocate_goals(Decimal("90"), goals)
        second = allocate_goals(Decimal("90"), goals)
        assert first == second

    def test_full_goals_stay_full_when_reallocated(self):
        """Test feeding a full goal's share back as its own balance changes nothing."""
        goals = [goal("A", "10"), goal("B", "35"), goal("C", "100")]
        settled = allocate_goals(Decimal("90"), goals)
        full = [a for a in settled.allocations if a.is_full]
        assert [a.goal_id for a in full] == ["A", "B"]

        for allocation in full:
            target = next(g for g in goals if g.id == allocation.goal_id)

            rerun = allocate_goals(allocation.current_amount, [target])

            again = rerun.for_goal(target.id)
            assert again.is_full is True
            assert again.current_amount == allocation.current_amount
            assert again.current_amount == target.target_amount
            assert rerun.converged is True

    def test_reallocating_settled_total_keeps_full_goals(self):
        """Test re-running on the allocated total leaves full goals untouched."""
        goals = [goal("A", "10"), goal("B", "35"), goal("C", "100")]
        settled = allocate_goals(Decimal("90"), goals)

        rerun = allocate_goals(settled.allocated_total, goals)

        for allocation in settled.allocations:
            if allocation.is_full:
                assert rerun.for_goal(allocation.goal_id) == allocation

    def test_allocation_order_follows_goal_order(self):
        goals = [goal("B", "1000"), goal("A", "10")]
        result = allocate_goals(Decimal("100"), goals)
        assert [a.goal_id for a in result.allocations] == ["B", "A"]
        assert result.for_goal("B").current_amount == Decimal("90.00")

    def test_progress_is_derived(self):
        result = allocate_goals(Decimal("100"), [goal("A", "10"), goal("B", "1000")])
        assert result.for_goal("A").progress_percent == 100.0
        assert result.for_goal("A").is_completed is True
        assert result.for_goal("B").progress_percent == pytest.approx(9.0)
        assert result.for_goal("B").is_completed is False

    def test_unknown_goal(self):
        result = allocate_goals(Decimal("100"), [goal("A", "10")])
        assert result.for_goal("missing") is None


class TestRunPass:
    """Tests for a single allocation pass."""

    def test_equal_initial_shares(self):
        states = initial_states(Decimal("90"), [goal("A", "10"), goal("B", "35"), goal("C", "100")])
        assert [s.current_amount for s in states] == [Decimal("30")] * 3
        assert not any(s.is_full for s in states)

    def test_pass_does_not_modify_input(self):
        states = initial_states(Decimal("100"), [goal("A", "10"), goal("B", "1000")])
        before = tuple(states)

        result = run_pass(states, Decimal("0.001"))

        assert states == before
        assert result.states != states
        assert result.overflow == Decimal("40")
        assert result.changed is True

    def test_stable_state_is_unchanged(self):
        states = initial_states(Decimal("100"), [goal("A", "10"), goal("B", "1000")])
        settled = run_pass(states, Decimal("0.001")).states

        result = run_pass(settled, Decimal("0.001"))

        assert result.changed is False
        assert result.states == settled
