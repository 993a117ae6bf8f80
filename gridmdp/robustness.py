"""
Robustness Module

Measures how sensitive an optimal policy is to the transition model. The
MDP is re-solved under a catalogue of noise triples and, for each one, the
number of states whose prescribed action changes with respect to a baseline
policy is reported.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np

from gridmdp.solvers import value_iteration
from gridmdp.transitions import TransitionModel

if TYPE_CHECKING:
    from gridmdp.grid_world import GridWorld

logger = logging.getLogger(__name__)

# (left, center, right) noise triples, in reporting order
NOISE_MODELS: Tuple[Tuple[float, float, float], ...] = (
    (0.1, 0.8, 0.1),    # 80% success
    (0.05, 0.9, 0.05),  # 90% success
    (0.15, 0.7, 0.15),  # 70% success
    (0.25, 0.5, 0.25),  # 50% success
)


def noise_label(center: float) -> str:
    """Label of a noise model: its intended-direction probability as a percentage, e.g. '80%'."""
    return f"{int(round(center * 100))}%"


def count_policy_differences(baseline: Mapping[str, str], adapted: Mapping[str, str]) -> int:
    """
    Count baseline states whose action differs in the adapted policy.

    A state present in the baseline but missing from the adapted policy
    counts as a difference. States only present in the adapted policy are
    ignored.
    """
    return sum(
        1 for label, action in baseline.items()
        if label not in adapted or adapted[label] != action
    )


def evaluate_robustness(
    world: "GridWorld",
    baseline_policy: Union[Mapping[str, str], np.ndarray],
    discount: float,
    noise_models: Sequence[Tuple[float, float, float]] = NOISE_MODELS,
    epsilon: float = 0.01,
) -> List[Tuple[str, int]]:
    """
    Compare a baseline policy with the policies optimal under other noise models.

    For each (left, center, right) triple, builds the corresponding
    TransitionModel, re-runs value iteration with the same discount and
    counts the states whose action changed.

    Args:
        world: The GridWorld.
        baseline_policy: {label: action symbol} mapping or policy array.
            Symbol aliases ("O" for "W") are accepted. Not modified.
        discount: Discount factor used for every re-solve.
        noise_models: Sequence of (left, center, right) triples.
        epsilon: Convergence threshold of the re-solves.

    Returns:
        List of (label, difference count), one per noise model, in order.

    Example:
        >>> world = GridWorld.default()
        >>> base = value_iteration(world, 0.9)
        >>> for label, changes in evaluate_robustness(world, base.policy, 0.9):
        ...     print(f"{label}: {changes} changes")
    """
    if isinstance(baseline_policy, np.ndarray):
        baseline = world.policy_map(baseline_policy)
    else:
        baseline = {
            state: world.canonical_symbol(action) for state, action in baseline_policy.items()
        }

    results: List[Tuple[str, int]] = []
    for left, center, right in noise_models:
        label = noise_label(center)
        model = TransitionModel.from_noise(left, center, right)

        adapted = world.policy_map(value_iteration(world, discount, epsilon, model=model).policy)
        changes = count_policy_differences(baseline, adapted)

        logger.info("noise %s: %d changes", label, changes)
        results.append((label, changes))

    return results
