"""
Transition Model Module

This module provides the TransitionModel class: the noisy outcome model of
an attempted action. For each action it stores a probability distribution
over the effective direction of movement.

A model is represented as a read-only numpy array P of shape (4, 4) where
P[a, d] is the probability of actually moving in direction d when
attempting action a. Each row sums to 1.

Available constructors:
    - TransitionModel.default: 0.8 intended, 0.1 to each perpendicular side
    - TransitionModel.from_noise: (left, center, right) noise triple
    - TransitionModel.from_mapping: nested {action: {direction: p}} mapping
"""

from __future__ import annotations

from typing import Dict, Mapping, Union

import numpy as np

from gridmdp.grid_world import Action

# (left, right) perpendicular directions of each action
LEFT_RIGHT: Dict[Action, tuple] = {
    Action.NORTH: (Action.WEST, Action.EAST),
    Action.SOUTH: (Action.WEST, Action.EAST),
    Action.EAST: (Action.NORTH, Action.SOUTH),
    Action.WEST: (Action.NORTH, Action.SOUTH),
}

DEFAULT_NOISE = (0.1, 0.8, 0.1)


class TransitionModel:
    """
    Read-only action-outcome model.

    Attributes:
        P: Array of shape (n_actions, n_actions); P[a, d] = P(d | a).

    Example:
        >>> model = TransitionModel.from_noise(0.05, 0.9, 0.05)
        >>> model.probability(Action.NORTH, Action.EAST)
        0.05
    """

    def __init__(self, P: np.ndarray, atol: float = 1e-9) -> None:
        """
        Wrap a probability array.

        Args:
            P: Array of shape (4, 4) with non-negative entries.
            atol: Tolerance on the row sums.

        Raises:
            ValueError: If the shape is wrong, an entry is negative, or a row
                does not sum to 1.
        """
        P = np.array(P, dtype=np.float64)
        n = len(Action)
        if P.shape != (n, n):
            raise ValueError(f"Transition array shape {P.shape} doesn't match expected ({n}, {n})")
        if np.any(P < 0):
            raise ValueError("Transition probabilities must be non-negative")

        row_sums = P.sum(axis=1)
        if not np.allclose(row_sums, 1.0, rtol=0.0, atol=atol):
            bad = [Action(a).symbol for a in np.flatnonzero(~np.isclose(row_sums, 1.0, rtol=0.0, atol=atol))]
            raise ValueError(f"Probabilities must sum to 1 for every action; invalid actions: {bad}")

        P.flags.writeable = False
        self.P: np.ndarray = P

    @classmethod
    def default(cls) -> "TransitionModel":
        """The default 80/10/10 model."""
        return cls.from_noise(*DEFAULT_NOISE)

    @classmethod
    def from_noise(cls, left: float, center: float, right: float) -> "TransitionModel":
        """
        Build a model from a (left, center, right) noise triple.

        The intended direction receives `center`. For NORTH and SOUTH, WEST
        is left and EAST is right; for EAST and WEST, NORTH is left and
        SOUTH is right.

        Args:
            left: Probability of deviating to the left of the intended action.
            center: Probability of moving in the intended direction.
            right: Probability of deviating to the right of the intended action.

        Returns:
            A TransitionModel usable in place of the default model.

        Raises:
            ValueError: If a probability is outside [0, 1] or the three do
                not sum to 1.

        Example:
            >>> model = TransitionModel.from_noise(0.25, 0.5, 0.25)
        """
        for name, value in (("left", left), ("center", center), ("right", right)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Probability {name}={value} must be in [0, 1]")
        if not np.isclose(left + center + right, 1.0, rtol=0.0, atol=1e-9):
            raise ValueError(
                f"Noise triple must sum to 1, got {left} + {center} + {right} = {left + center + right}"
            )

        P = np.zeros((len(Action), len(Action)), dtype=np.float64)
        for action in Action:
            left_dir, right_dir = LEFT_RIGHT[action]
            P[action, action] = center
            P[action, left_dir] = left
            P[action, right_dir] = right
        return cls(P)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[Union[str, Action], Mapping[Union[str, Action], float]],
    ) -> "TransitionModel":
        """
        Build a model from a nested {action: {direction: probability}} mapping.

        Keys may be Action members or their symbols. Entries absent from the
        mapping are 0.0.

        Raises:
            ValueError: If a symbol is unknown or a row does not sum to 1.

        Example:
            >>> model = TransitionModel.from_mapping({
            ...     "N": {"N": 1.0}, "S": {"S": 1.0}, "E": {"E": 1.0}, "W": {"W": 1.0},
            ... })
        """
        P = np.zeros((len(Action), len(Action)), dtype=np.float64)
        for action, outcomes in mapping.items():
            a = Action.from_symbol(action)
            for direction, probability in outcomes.items():
                P[a, Action.from_symbol(direction)] = probability
        return cls(P)

    def probability(self, action: Union[str, Action], direction: Union[str, Action]) -> float:
        """
        P(direction | action); 0.0 if either symbol is unknown.
        """
        try:
            a = Action.from_symbol(action)
            d = Action.from_symbol(direction)
        except ValueError:
            return 0.0
        return float(self.P[a, d])

    def distribution(self, action: Union[str, Action]) -> Dict[Action, float]:
        """Non-zero outcome probabilities of an action, in action order."""
        a = Action.from_symbol(action)
        return {Action(d): float(p) for d, p in enumerate(self.P[a]) if p > 0}

    def as_dict(self) -> Dict[str, Dict[str, float]]:
        """Nested {action symbol: {direction symbol: probability}} form."""
        return {
            action.symbol: {d.symbol: p for d, p in self.distribution(action).items()}
            for action in Action
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransitionModel):
            return NotImplemented
        return bool(np.array_equal(self.P, other.P))

    def __hash__(self) -> int:
        return hash(self.P.tobytes())

    def __repr__(self) -> str:
        """Return a string representation of the model."""
        return f"TransitionModel({self.as_dict()})"
