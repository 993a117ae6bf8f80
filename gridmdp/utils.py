"""
Utility Module

This module provides helper functions for evaluating, simulating and
displaying solutions of GridWorld MDPs.

Key functions:
    - evaluate_policy: Exact discounted value of a deterministic policy
    - simulate: Run an episode under a policy with a noisy transition model
    - format_policy_grid / print_policy_grid: Arrow map of a policy
    - visualize_values: Matplotlib heat map of values with policy arrows
"""

from __future__ import annotations

from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np

from gridmdp.grid_world import Action
from gridmdp.matrices import build_transition_matrices, policy_transition_matrix
from gridmdp.transitions import TransitionModel

if TYPE_CHECKING:
    from gridmdp.grid_world import GridWorld

ARROWS = {
    Action.NORTH: "^",
    Action.SOUTH: "v",
    Action.EAST: ">",
    Action.WEST: "<",
}


def _check_policy(world: "GridWorld", policy: np.ndarray) -> None:
    if policy.shape != (world.n_states,):
        raise ValueError(
            f"Policy shape {policy.shape} doesn't match expected ({world.n_states},)"
        )


def evaluate_policy(
    world: "GridWorld",
    policy: np.ndarray,
    discount: float,
    model: Optional[TransitionModel] = None,
) -> np.ndarray:
    """
    Compute the exact value of a deterministic policy.

    Solves the linear system
        V(s) = R(s) + discount * sum_s' T_pi[s, s'] * V(s')
    for every non-goal state, with V(goal) = R(goal). States without an
    action (-1) other than the goal are treated as absorbing.

    Args:
        world: The GridWorld.
        policy: Int array of shape (n_states,).
        discount: Discount factor in (0, 1).
        model: Transition model. If None, uses TransitionModel.default().

    Returns:
        Array of shape (n_states,) with V_pi(s).

    Example:
        >>> solution = value_iteration(world, 0.9, epsilon=1e-8)
        >>> V = evaluate_policy(world, solution.policy, 0.9)
        >>> assert np.allclose(V, solution.values, atol=1e-6)
    """
    _check_policy(world, policy)
    if not 0.0 < discount < 1.0:
        raise ValueError(f"Discount factor must be in (0, 1), got {discount}")

    T_pi = policy_transition_matrix(build_transition_matrices(world, model), policy)

    A = np.eye(world.n_states) - discount * T_pi
    b = np.array(world.rewards, dtype=np.float64)

    # Goal row: V(goal) = R(goal)
    A[world.goal_state] = 0.0
    A[world.goal_state, world.goal_state] = 1.0

    return np.linalg.solve(A, b)


def simulate(
    world: "GridWorld",
    policy: np.ndarray,
    n_steps: int,
    start_state: Optional[int] = None,
    model: Optional[TransitionModel] = None,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Simulate an episode under a deterministic policy.

    At each step the prescribed action is attempted and the effective
    direction is sampled from the transition model. The episode ends at the
    goal or after n_steps steps.

    Args:
        world: The GridWorld.
        policy: Int array of shape (n_states,).
        n_steps: Maximum number of steps.
        start_state: Initial state. If None, samples uniformly from non-goal states.
        model: Transition model. If None, uses TransitionModel.default().
        rng: Random number generator. If None, uses numpy's default.

    Returns:
        Tuple of (states, actions, rewards):
            - states: Visited states, including the start.
            - actions: Actions attempted, one per step.
            - rewards: Reward of the state entered at each step.

    Raises:
        ValueError: If the policy shape or start_state is invalid.
    """
    _check_policy(world, policy)
    if rng is None:
        rng = np.random.default_rng()
    if model is None:
        model = TransitionModel.default()

    if start_state is None:
        non_goal = [s for s in range(world.n_states) if s != world.goal_state]
        state = int(rng.choice(non_goal)) if non_goal else world.goal_state
    else:
        if start_state < 0 or start_state >= world.n_states:
            raise ValueError(f"Invalid start_state {start_state}")
        state = start_state

    states = [state]
    actions = []
    rewards = []

    for _ in range(n_steps):
        if state == world.goal_state or policy[state] < 0:
            break

        action = int(policy[state])
        direction = rng.choice(world.n_actions, p=model.P[action])
        state = world.destination(state, direction)

        actions.append(action)
        rewards.append(world.rewards[state])
        states.append(state)

    return (
        np.array(states, dtype=np.int64),
        np.array(actions, dtype=np.int64),
        np.array(rewards, dtype=np.float64),
    )


def format_policy_grid(world: "GridWorld", policy: np.ndarray) -> str:
    """
    Render a policy as a character grid.

    Legend: '#' obstacle, 'G' goal, '!' hazard, '^ v > <' prescribed action,
    '.' no action.
    """
    _check_policy(world, policy)
    lines = []
    for row in world.layout:
        cells = []
        for label in row:
            if label in world.obstacles:
                cells.append("#")
            elif label == world.goal:
                cells.append("G")
            elif label in world.hazards:
                cells.append("!")
            else:
                action = policy[world.index_of[label]]
                cells.append(ARROWS[Action(int(action))] if action >= 0 else ".")
        lines.append(" ".join(cells))
    return "\n".join(lines)


def print_policy_grid(world: "GridWorld", policy: np.ndarray) -> None:
    """
    Print a policy map followed by its legend.

    Example:
        >>> solution = value_iteration(world, 0.9)
        >>> print_policy_grid(world, solution.policy)
    """
    print(format_policy_grid(world, policy))
    print("-" * (2 * world.width - 1))
    print("# = obstacle, G = goal, ! = hazard")


def visualize_values(
    world: "GridWorld",
    values: np.ndarray,
    policy: Optional[np.ndarray] = None,
    ax=None,
    title: Optional[str] = None,
    figsize: Tuple[float, float] = (10, 8)
):
    """
    Visualize a value function on the grid using matplotlib.

    Creates a heat map where:
        - Each state is colored by its value
        - Obstacles are black
        - Values are annotated on each cell
        - Optionally draws the policy as arrows

    Args:
        world: The GridWorld.
        values: Array of shape (n_states,).
        policy: Optional int array of shape (n_states,).
        ax: Matplotlib axes to plot on. If None, creates new figure.
        title: Title for the plot.
        figsize: Figure size if creating new figure.

    Returns:
        Matplotlib axes object.
    """
    import matplotlib
    import matplotlib.pyplot as plt

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)

    grid = np.full((world.height, world.width), np.nan)
    for s, (row, col) in enumerate(world.state_to_pos):
        grid[row, col] = values[s]

    cmap = matplotlib.colormaps['viridis'].copy()
    cmap.set_bad('black')
    image = ax.imshow(np.ma.masked_invalid(grid), cmap=cmap, origin='upper', aspect='equal')
    plt.colorbar(image, ax=ax, label='V(s)')

    for s, (row, col) in enumerate(world.state_to_pos):
        ax.text(
            col, row + 0.3, f"{values[s]:.2f}",
            ha='center', va='center', fontsize=8, color='white'
        )
        if policy is not None and policy[s] >= 0:
            delta_row, delta_col = Action(int(policy[s])).delta
            ax.arrow(
                col - 0.2 * delta_col, row - 0.2 * delta_row,
                0.3 * delta_col, 0.3 * delta_row,
                head_width=0.12, color='red'
            )

    row, col = world.position_of(world.goal)
    ax.plot(col, row, 'w*', markersize=15)

    ax.set_xticks(range(world.width))
    ax.set_yticks(range(world.height))
    ax.set_xlabel('Column')
    ax.set_ylabel('Row')

    if title:
        ax.set_title(title)

    return ax
