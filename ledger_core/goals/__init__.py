"""Goal allocation package."""

from ledger_core.goals.allocator import (
    GoalState,
    PassResult,
    allocate_goals,
    initial_states,
    run_pass,
)

__all__ = [
    "GoalState",
    "PassResult",
    "allocate_goals",
    "initial_states",
    "run_pass",
]
