"""
gridmdp: Value iteration and robustness analysis for stochastic gridworld MDPs.

This package provides tools for:
- Describing labelled grid worlds with hazards, obstacles and a goal
- Building noisy action-outcome (transition) models
- Solving the MDP by value iteration or Q-value iteration
- Measuring the sensitivity of an optimal policy to transition noise
- Materialising dense per-action transition matrices
"""

from gridmdp.grid_world import Action, GridWorld, StateNotFound
from gridmdp.transitions import TransitionModel
from gridmdp.solvers import (
    DidNotConverge,
    Solution,
    value_iteration,
    q_value_iteration,
)
from gridmdp.robustness import NOISE_MODELS, evaluate_robustness
from gridmdp.matrices import (
    build_transition_matrix,
    build_transition_matrices,
    save_transition_matrices,
)
from gridmdp.utils import (
    evaluate_policy,
    simulate,
    print_policy_grid,
    visualize_values,
)

__version__ = "0.1.0"
__all__ = [
    "Action",
    "GridWorld",
    "StateNotFound",
    "TransitionModel",
    "DidNotConverge",
    "Solution",
    "value_iteration",
    "q_value_iteration",
    "NOISE_MODELS",
    "evaluate_robustness",
    "build_transition_matrix",
    "build_transition_matrices",
    "save_transition_matrices",
    "evaluate_policy",
    "simulate",
    "print_policy_grid",
    "visualize_values",
]
