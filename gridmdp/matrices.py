"""
Transition Matrices Module

This module materialises the dense transition matrices of the MDP.

For each action a, the matrix T_a has shape (n_states, n_states) and
T_a[s, s'] is the probability of ending in s' after attempting a in s.
Rows and columns follow the state enumeration of the GridWorld (row-major
order, obstacles excluded). Moves that hit a wall or an obstacle fold back
onto the origin, so several outcomes may accumulate on the diagonal.

Utility functions:
    - policy_transition_matrix: Compute T_pi from the T_a and a policy
    - format_transition_matrix / save_transition_matrices: fixed-precision rows
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union, TYPE_CHECKING

import numpy as np

from gridmdp.grid_world import Action
from gridmdp.transitions import TransitionModel

if TYPE_CHECKING:
    from gridmdp.grid_world import GridWorld

logger = logging.getLogger(__name__)


def build_transition_matrix(
    world: "GridWorld",
    action: Union[Action, str],
    model: Optional[TransitionModel] = None,
) -> np.ndarray:
    """
    Build the transition matrix of a single action.

    For each origin state s and outcome direction d:
        T[s, dest(s, d)] += P(d | action)

    Args:
        world: The GridWorld.
        action: Action, its index or its symbol.
        model: Transition model. If None, uses TransitionModel.default().

    Returns:
        Array of shape (n_states, n_states); every row sums to 1.

    Raises:
        ValueError: If the action is unknown.

    Example:
        >>> world = GridWorld.default()
        >>> T = build_transition_matrix(world, "N")
        >>> assert np.allclose(T.sum(axis=1), 1.0)
    """
    if model is None:
        model = TransitionModel.default()
    a = Action.from_symbol(action)

    n = world.n_states
    T = np.zeros((n, n), dtype=np.float64)
    origins = np.repeat(np.arange(n), world.n_actions)
    masses = np.tile(model.P[a], n)

    # np.add.at accumulates repeated (origin, dest) pairs, unlike fancy-index +=
    np.add.at(T, (origins, world.successors.ravel()), masses)
    return T


def build_transition_matrices(
    world: "GridWorld",
    model: Optional[TransitionModel] = None,
) -> np.ndarray:
    """
    Build the transition matrices of all actions.

    Returns:
        Array of shape (n_actions, n_states, n_states), indexed by Action.
    """
    if model is None:
        model = TransitionModel.default()
    return np.stack([build_transition_matrix(world, action, model) for action in Action])


def policy_transition_matrix(matrices: np.ndarray, policy: np.ndarray) -> np.ndarray:
    """
    Compute the state-to-state matrix induced by a deterministic policy.

        T_pi[s, :] = T_{pi(s)}[s, :]

    States without an action (policy == -1, i.e. the goal) become absorbing.

    Args:
        matrices: Array of shape (n_actions, n_states, n_states).
        policy: Int array of shape (n_states,).

    Returns:
        Array of shape (n_states, n_states).

    Raises:
        ValueError: If the policy length doesn't match the matrices.
    """
    n_states = matrices.shape[1]
    if policy.shape != (n_states,):
        raise ValueError(
            f"Policy shape {policy.shape} doesn't match expected ({n_states},)"
        )

    states = np.arange(n_states)
    actions = np.where(policy >= 0, policy, 0)
    T_pi = matrices[actions, states, :]

    terminal = policy < 0
    T_pi[terminal] = 0.0
    T_pi[terminal, states[terminal]] = 1.0
    return T_pi


def format_transition_matrix(matrix: np.ndarray, decimals: int = 2) -> List[str]:
    """
    Format a matrix as comma-separated rows of fixed-precision probabilities.

    Example:
        >>> format_transition_matrix(np.array([[0.9, 0.1], [0.0, 1.0]]))
        ['0.90,0.10', '0.00,1.00']
    """
    return [",".join(f"{value:.{decimals}f}" for value in row) for row in matrix]


def save_transition_matrices(
    world: "GridWorld",
    directory: Union[str, Path],
    model: Optional[TransitionModel] = None,
    decimals: int = 2,
) -> List[Path]:
    """
    Write one CSV file per action, named transition_matrix_<SYMBOL>.csv.

    Args:
        world: The GridWorld.
        directory: Output directory (created if missing).
        model: Transition model. If None, uses TransitionModel.default().
        decimals: Number of decimal places per probability.

    Returns:
        Paths of the written files, in action order.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    paths = []
    for action, matrix in zip(Action, build_transition_matrices(world, model)):
        path = directory / f"transition_matrix_{action.symbol}.csv"
        with open(path, 'w') as f:
            f.write('\n'.join(format_transition_matrix(matrix, decimals)) + '\n')
        logger.info("saved %s", path)
        paths.append(path)

    return paths
