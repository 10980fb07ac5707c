"""
Goal Allocation (water-filling)

One account balance is shared by all goals of the account. The share of
each goal is computed, never stored:

1. Every goal starts with an equal share of the balance
2. A goal whose share reaches its target is full; the excess
   ("overflow") is split equally among the goals that are not full yet
3. Repeat until nothing changes, or until the pass cap is reached

Goals are visited in the order given. Small targets therefore tend to
fill first and pass their surplus on to larger ones; there is no
explicit sort.

If all goals are full, the remaining balance is not assigned to any
goal. Goals are a view over the balance, not a budget that must use it up.

DESIGN DECISION: Each pass is a pure function from one state to the
next. The loop returns the final state with an explicit converged flag
instead of silently returning a possibly unstable result.
"""

from decimal import Decimal
from typing import NamedTuple, Optional, Sequence

import structlog

from ledger_core.config import get_settings
from ledger_core.models.amount import to_amount
from ledger_core.models.audit import LedgerEventType
from ledger_core.models.ledger import AllocationResult, Goal, GoalAllocation


logger = structlog.get_logger(__name__)


class GoalState(NamedTuple):
    """Working state of one goal between passes."""
    goal_id: str
    target_amount: Decimal
    current_amount: Decimal
    is_full: bool


class PassResult(NamedTuple):
    states: tuple[GoalState, ...]
    overflow: Decimal
    changed: bool


def initial_states(balance: Decimal, goals: Sequence[Goal]) -> tuple[GoalState, ...]:
    """Equal share of the balance for every goal."""
    share = Decimal(balance) / len(goals)
    return tuple(
        GoalState(
            goal_id=goal.id,
            target_amount=goal.target_amount,
            current_amount=share,
            is_full=False,
        )
        for goal in goals
    )


def run_pass(states: tuple[GoalState, ...], epsilon: Decimal) -> PassResult:
    """
    One fill-and-spill pass.

    Goals reaching their target (within epsilon) are clamped to it and
    become full. Their combined excess is split equally among the goals
    still incomplete in this pass.
    """
    changed = False
    overflow = Decimal(0)
    incomplete: list[int] = []
    next_states: list[GoalState] = []

    for index, state in enumerate(states):
        if state.is_full:
            next_states.append(state)
        elif state.current_amount >= state.target_amount - epsilon:
            overflow += max(Decimal(0), state.current_amount - state.target_amount)
            next_states.append(state._replace(
                current_amount=state.target_amount,
                is_full=True,
            ))
            changed = True
        else:
            incomplete.append(index)
            next_states.append(state)

    if overflow > epsilon and incomplete:
        share = overflow / len(incomplete)
        for index in incomplete:
            state = next_states[index]
            next_states[index] = state._replace(
                current_amount=state.current_amount + share
            )
        changed = True

    return PassResult(states=tuple(next_states), overflow=overflow, changed=changed)


def allocate_goals(
    balance: Decimal,
    goals: Sequence[Goal],
    max_passes: Optional[int] = None,
    epsilon: Optional[Decimal] = None,
) -> AllocationResult:
    """
    Distribute a balance over goals.

    Always terminates within max_passes. Non-convergence is reported
    through AllocationResult.converged, never raised.
    """
    if not goals:
        return AllocationResult(allocations=[], converged=True, passes=0)

    allocator_settings = get_settings().allocator
    if max_passes is None:
        max_passes = allocator_settings.max_passes
    if epsilon is None:
        epsilon = Decimal(str(allocator_settings.epsilon))

    states = initial_states(balance, goals)
    converged = False
    passes = 0

    while passes < max_passes:
        result = run_pass(states, epsilon)
        states = result.states
        passes += 1
        if not result.changed:
            converged = True
            break

    if not converged:
        logger.warning(
            LedgerEventType.ALLOCATION_NOT_CONVERGED.value,
            passes=passes,
            goal_count=len(goals),
        )

    return AllocationResult(
        allocations=[
            GoalAllocation(
                goal_id=state.goal_id,
                target_amount=state.target_amount,
                current_amount=to_amount(state.current_amount),
                is_full=state.is_full,
            )
            for state in states
        ],
        converged=converged,
        passes=passes,
    )
