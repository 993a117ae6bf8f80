"""
Solvers Module

This module provides the two fixed-point solvers of the package:

    - value_iteration: repeated Bellman backups over V(s)
    - q_value_iteration: repeated Bellman backups over Q(s, a)

Both solvers sweep synchronously: every backup of a sweep reads the table
produced by the previous sweep. The goal state is absorbing; its value (and
every Q entry of its row) is pinned to its reward. Moves that leave the grid
or run into an obstacle keep the agent in place.

Ties between actions are always broken by the fixed action order
NORTH, SOUTH, EAST, WEST (the first maximising action wins), so both solvers
return the same policy for the same values.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional, TYPE_CHECKING

import numpy as np

from gridmdp.transitions import TransitionModel

if TYPE_CHECKING:
    from gridmdp.grid_world import GridWorld

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 100_000


class DidNotConverge(RuntimeError):
    """Raised when a solver exhausts its iteration budget before reaching epsilon."""

    def __init__(self, iterations: int, delta: float, epsilon: float) -> None:
        super().__init__(
            f"Did not converge after {iterations} iterations "
            f"(delta={delta:.3e}, epsilon={epsilon:.3e})"
        )
        self.iterations = iterations
        self.delta = delta
        self.epsilon = epsilon


class Solution(NamedTuple):
    """
    Result of a solver call.

    Attributes:
        values: Array of shape (n_states,) with V(s).
        policy: Int array of shape (n_states,) with the action index per
            state; -1 for the goal.
        iterations: Number of sweeps performed.
        delta: Sup-norm change of the last sweep.
        q_values: Array of shape (n_states, n_actions) for Q-value iteration,
            None for value iteration.
    """

    values: np.ndarray
    policy: np.ndarray
    iterations: int
    delta: float
    q_values: Optional[np.ndarray] = None


def _check_parameters(discount: float, epsilon: float, max_iterations: int) -> None:
    if not 0.0 < discount < 1.0:
        raise ValueError(f"Discount factor must be in (0, 1), got {discount}")
    if epsilon <= 0:
        raise ValueError(f"Convergence threshold must be positive, got {epsilon}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")


def _freeze(solution: Solution) -> Solution:
    for array in (solution.values, solution.policy, solution.q_values):
        if array is not None:
            array.flags.writeable = False
    return solution


def bellman_backup(
    world: "GridWorld",
    model: TransitionModel,
    values: np.ndarray,
    discount: float,
) -> np.ndarray:
    """
    Compute Q(s, a) = R(s) + discount * sum_d P(d | a) * V(dest(s, d)).

    Args:
        world: The GridWorld.
        model: Transition model.
        values: Array of shape (n_states,) read as V.
        discount: Discount factor.

    Returns:
        Array of shape (n_states, n_actions). The goal row is not pinned here.
    """
    # values[successors][s, d] = V(dest(s, d)); contract d against P[a, d]
    expected = values[world.successors] @ model.P.T
    return world.rewards[:, np.newaxis] + discount * expected


def greedy_policy(world: "GridWorld", q_values: np.ndarray) -> np.ndarray:
    """
    Derive the deterministic policy argmax_a Q(s, a).

    np.argmax returns the first maximum, which is the fixed action-order
    tie-break. The goal gets -1.
    """
    policy = np.argmax(q_values, axis=1).astype(np.int64)
    policy[world.goal_state] = -1
    return policy


def value_iteration(
    world: "GridWorld",
    discount: float,
    epsilon: float = 1e-3,
    model: Optional[TransitionModel] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Solution:
    """
    Solve the MDP by value iteration.

    Starting from V = 0, each sweep computes
        V_new(s) = max_a [ R(s) + discount * sum_d P(d | a) * V(dest(s, d)) ]
    for every non-goal state, and V_new(goal) = R(goal). Iteration stops as
    soon as max_s |V_new(s) - V(s)| <= epsilon.

    Args:
        world: The GridWorld.
        discount: Discount factor in (0, 1).
        epsilon: Convergence threshold, > 0.
        model: Transition model. If None, uses TransitionModel.default().
        max_iterations: Safety bound on the number of sweeps.

    Returns:
        Solution with values, policy (goal = -1), iterations and final delta.

    Raises:
        ValueError: If discount, epsilon or max_iterations are out of range.
        DidNotConverge: If max_iterations sweeps pass without convergence.

    Example:
        >>> world = GridWorld.default()
        >>> solution = value_iteration(world, discount=0.9, epsilon=1e-3)
        >>> world.policy_map(solution.policy)["S22"]
        'E'
    """
    _check_parameters(discount, epsilon, max_iterations)
    if model is None:
        model = TransitionModel.default()

    goal = world.goal_state
    values = np.zeros(world.n_states, dtype=np.float64)
    q_values = np.zeros((world.n_states, world.n_actions), dtype=np.float64)
    delta = np.inf

    for iteration in range(1, max_iterations + 1):
        q_values = bellman_backup(world, model, values, discount)
        new_values = q_values.max(axis=1)
        new_values[goal] = world.rewards[goal]

        delta = float(np.max(np.abs(new_values - values)))
        values = new_values

        if delta <= epsilon:
            logger.debug(
                "value iteration converged after %d sweeps (delta=%.3e, discount=%.3f)",
                iteration, delta, discount,
            )
            return _freeze(Solution(values, greedy_policy(world, q_values), iteration, delta))

    raise DidNotConverge(max_iterations, delta, epsilon)


def q_value_iteration(
    world: "GridWorld",
    discount: float,
    epsilon: float = 1e-3,
    model: Optional[TransitionModel] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Solution:
    """
    Solve the MDP by Q-value iteration.

    Starting from Q = 0, each sweep computes
        Q_new(s, a) = R(s) + discount * sum_d P(d | a) * max_a' Q(dest(s, d), a')
    for every non-goal state, with the goal row pinned to R(goal). The goal
    row does not take part in the convergence test, which compares the
    sup-norm change over all remaining (s, a) pairs with epsilon.

    After convergence, V(s) = max_a Q(s, a) and the policy is the argmax,
    ties broken by the fixed action order.

    Args:
        world: The GridWorld.
        discount: Discount factor in (0, 1).
        epsilon: Convergence threshold, > 0.
        model: Transition model. If None, uses TransitionModel.default().
        max_iterations: Safety bound on the number of sweeps.

    Returns:
        Solution with values, policy, iterations, final delta and q_values.

    Raises:
        ValueError: If discount, epsilon or max_iterations are out of range.
        DidNotConverge: If max_iterations sweeps pass without convergence.
    """
    _check_parameters(discount, epsilon, max_iterations)
    if model is None:
        model = TransitionModel.default()

    goal = world.goal_state
    non_goal = np.arange(world.n_states) != goal
    q_values = np.zeros((world.n_states, world.n_actions), dtype=np.float64)
    delta = np.inf

    for iteration in range(1, max_iterations + 1):
        new_q = bellman_backup(world, model, q_values.max(axis=1), discount)
        new_q[goal, :] = world.rewards[goal]

        delta = float(np.max(np.abs(new_q[non_goal] - q_values[non_goal]), initial=0.0))
        q_values = new_q

        if delta <= epsilon:
            logger.debug(
                "Q-value iteration converged after %d sweeps (delta=%.3e, discount=%.3f)",
                iteration, delta, discount,
            )
            values = q_values.max(axis=1)
            return _freeze(Solution(values, greedy_policy(world, q_values), iteration, delta, q_values))

    raise DidNotConverge(max_iterations, delta, epsilon)
