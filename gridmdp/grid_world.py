"""
GridWorld Module

This module provides the GridWorld class describing the topology and reward
function of a labelled gridworld MDP, together with the Action enumeration
shared by every other module of the package.

A layout is a rectangular array of string labels. Each label is tagged as
one of four categories:
    - normal: ordinary free cell, small living cost
    - hazard: free cell with a strong negative reward
    - obstacle: occupies a coordinate but is never a state
    - goal: the unique absorbing cell, value pinned to its reward

Non-obstacle cells are assigned dense integer indices in row-major order.
All value, Q and policy tables of the package are flat arrays over these
indices; label lookups are thin adapters on top.
"""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np


class StateNotFound(LookupError):
    """Raised when a label is not part of the grid layout."""

    def __init__(self, label: str) -> None:
        super().__init__(f"State '{label}' not found in grid layout")
        self.label = label


class Action(IntEnum):
    """
    The four cardinal actions, in their fixed tie-break order.

    The integer value of each member is its column in every Q-table and
    transition array of the package.
    """

    NORTH = 0
    SOUTH = 1
    EAST = 2
    WEST = 3

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def delta(self) -> Tuple[int, int]:
        return _DELTAS[self.symbol]

    @classmethod
    def from_symbol(cls, symbol: Union[str, int, "Action"]) -> "Action":
        """
        Resolve an action from its one-letter symbol or its index.

        "O" (oeste) is accepted as an alias of "W".

        Raises:
            ValueError: If the symbol is not one of N, S, E, W, O, or the
                index is not in [0, 3].
        """
        if isinstance(symbol, Action):
            return symbol
        if isinstance(symbol, (int, np.integer)) and not isinstance(symbol, bool):
            try:
                return cls(int(symbol))
            except ValueError:
                raise ValueError(f"Unknown action index {symbol!r}. Valid indices are 0-3") from None
        try:
            return _BY_SYMBOL[symbol]
        except KeyError:
            raise ValueError(
                f"Unknown action symbol {symbol!r}. Valid symbols are: {sorted(_BY_SYMBOL)}"
            ) from None


_SYMBOLS: Dict[Action, str] = {
    Action.NORTH: "N",
    Action.SOUTH: "S",
    Action.EAST: "E",
    Action.WEST: "W",
}

_BY_SYMBOL: Dict[str, Action] = {symbol: action for action, symbol in _SYMBOLS.items()}
_BY_SYMBOL["O"] = Action.WEST

# Movement deltas: (delta_row, delta_col) for each action symbol
_DELTAS: Dict[str, Tuple[int, int]] = {
    "N": (-1, 0),   # north: decrease row
    "S": (1, 0),    # south: increase row
    "E": (0, 1),    # east: increase col
    "W": (0, -1),   # west: decrease col
    "O": (0, -1),   # west alias
}

NORMAL = "normal"
HAZARD = "hazard"
OBSTACLE = "obstacle"
GOAL = "goal"

# Reference 6x8 map: goal "M", hazards "P1".."P4", obstacles "O1".."O10"
DEFAULT_LAYOUT: Tuple[Tuple[str, ...], ...] = (
    ("S0", "S1", "P1", "O1", "S3", "O2", "S4", "S5"),
    ("O3", "S6", "S7", "S8", "S9", "S10", "S11", "O4"),
    ("S12", "P2", "S14", "O5", "S15", "P3", "S17", "S18"),
    ("S19", "S20", "S21", "S22", "M", "S24", "S25", "O6"),
    ("S26", "O7", "O8", "S27", "S28", "S29", "P4", "S31"),
    ("S32", "O9", "S33", "S34", "O10", "S35", "S36", "S37"),
)
DEFAULT_GOAL = "M"
DEFAULT_HAZARDS: Tuple[str, ...] = ("P1", "P2", "P3", "P4")
DEFAULT_OBSTACLES: Tuple[str, ...] = tuple(f"O{i}" for i in range(1, 11))


class GridWorld:
    """
    Immutable topology and reward function of a labelled gridworld.

    Attributes:
        layout: Tuple of rows, each a tuple of labels.
        height: Number of rows in the grid.
        width: Number of columns in the grid.
        n_states: Number of non-obstacle states.
        n_actions: Number of actions (always 4).
        labels: Labels of the non-obstacle states, indexed by state.
        index_of: Mapping from label to state index (non-obstacle only).
        state_to_pos: Array of shape (n_states, 2) with (row, col) per state.
        goal: Label of the goal cell.
        goal_state: State index of the goal cell.
        rewards: Read-only array of shape (n_states,) with R(s).
        successors: Read-only int array of shape (n_states, n_actions);
            successors[s, d] is the state reached by moving one cell in
            direction d from s, or s itself if that cell is out of bounds
            or an obstacle.

    Example:
        >>> world = GridWorld.default()
        >>> world.position_of("M")
        (3, 4)
        >>> world.state_at(0, 3) is None  # obstacle
        True
    """

    def __init__(
        self,
        layout: Sequence[Sequence[str]],
        goal: str,
        hazards: Iterable[str] = (),
        obstacles: Iterable[str] = (),
        goal_reward: float = 10.0,
        hazard_reward: float = -0.5,
        step_reward: float = -0.1,
    ) -> None:
        """
        Build the grid topology, state indices, reward table and successors.

        Args:
            layout: Rectangular 2D sequence of unique string labels.
            goal: Label of the unique goal cell.
            hazards: Labels of hazardous cells.
            obstacles: Labels of obstacle cells.
            goal_reward: Reward of the goal cell.
            hazard_reward: Reward of every hazardous cell.
            step_reward: Reward of every other free cell (living cost).

        Raises:
            ValueError: If the layout or the category sets are invalid, or if
                the rewards do not satisfy goal > step > hazard.
        """
        self.layout: Tuple[Tuple[str, ...], ...] = tuple(tuple(row) for row in layout)
        self.hazards = frozenset(hazards)
        self.obstacles = frozenset(obstacles)
        self.goal = goal

        self._validate_layout()
        self._validate_rewards(goal_reward, hazard_reward, step_reward)

        self.height: int = len(self.layout)
        self.width: int = len(self.layout[0])
        self.n_actions: int = len(Action)
        self.goal_reward = float(goal_reward)
        self.hazard_reward = float(hazard_reward)
        self.step_reward = float(step_reward)

        self._build_state_mappings()
        self.rewards: np.ndarray = self._build_rewards()
        self.successors: np.ndarray = self._build_successors()

    @classmethod
    def default(cls, **kwargs) -> "GridWorld":
        """Build the reference 6x8 map (goal M, four hazards, ten obstacles)."""
        return cls(
            DEFAULT_LAYOUT,
            goal=DEFAULT_GOAL,
            hazards=DEFAULT_HAZARDS,
            obstacles=DEFAULT_OBSTACLES,
            **kwargs,
        )

    @classmethod
    def from_txt(
        cls,
        path: Union[str, Path],
        goal: str,
        hazards: Iterable[str] = (),
        obstacles: Iterable[str] = (),
        **kwargs,
    ) -> "GridWorld":
        """
        Load a GridWorld layout from a text file.

        Each non-empty line is one row; labels are separated by whitespace.

        Args:
            path: Path to the layout file.
            goal: Label of the goal cell.
            hazards: Labels of hazardous cells.
            obstacles: Labels of obstacle cells.
            **kwargs: Reward overrides forwarded to the constructor.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file contains an invalid layout.

        Example:
            >>> world = GridWorld.from_txt("maps/room.txt", goal="G", obstacles=["X1"])
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Layout file not found: {path}")

        with open(path, 'r') as f:
            layout = [line.split() for line in f.read().strip().split('\n') if line.strip()]

        return cls(layout, goal=goal, hazards=hazards, obstacles=obstacles, **kwargs)

    def _validate_layout(self) -> None:
        """
        Validate that the layout and category sets are well-formed.

        Raises:
            ValueError: If validation fails.
        """
        if not self.layout or not self.layout[0]:
            raise ValueError("Layout cannot be empty")

        width = len(self.layout[0])
        seen = set()
        for row_idx, row in enumerate(self.layout):
            if len(row) != width:
                raise ValueError(
                    f"Row {row_idx} has length {len(row)}, expected {width}. "
                    "All rows must have the same length."
                )
            for col_idx, label in enumerate(row):
                if label in seen:
                    raise ValueError(
                        f"Duplicate label '{label}' at position ({row_idx}, {col_idx}). "
                        "Labels must be unique."
                    )
                seen.add(label)

        if self.goal not in seen:
            raise ValueError(f"Goal '{self.goal}' is not part of the layout")
        if self.goal in self.obstacles:
            raise ValueError(f"Goal '{self.goal}' cannot be an obstacle")
        if self.goal in self.hazards:
            raise ValueError(f"Goal '{self.goal}' cannot be hazardous")

        missing = (self.hazards | self.obstacles) - seen
        if missing:
            raise ValueError(f"Labels not found in layout: {sorted(missing)}")
        overlap = self.hazards & self.obstacles
        if overlap:
            raise ValueError(f"Labels cannot be both hazard and obstacle: {sorted(overlap)}")

    @staticmethod
    def _validate_rewards(goal_reward: float, hazard_reward: float, step_reward: float) -> None:
        if not goal_reward > step_reward > hazard_reward:
            raise ValueError(
                "Rewards must satisfy goal > step > hazard, got "
                f"goal={goal_reward}, step={step_reward}, hazard={hazard_reward}"
            )

    def _build_state_mappings(self) -> None:
        """
        Assign sequential state indices to all non-obstacle cells,
        scanning row by row from top-left.
        """
        self._positions: Dict[str, Tuple[int, int]] = {}
        self.labels: List[str] = []
        self.index_of: Dict[str, int] = {}
        positions = []

        for row in range(len(self.layout)):
            for col in range(len(self.layout[row])):
                label = self.layout[row][col]
                self._positions[label] = (row, col)
                if label not in self.obstacles:
                    self.index_of[label] = len(self.labels)
                    self.labels.append(label)
                    positions.append((row, col))

        self.n_states: int = len(self.labels)
        self.goal_state: int = self.index_of[self.goal]
        self.state_to_pos: np.ndarray = np.array(positions, dtype=np.int64)
        self.state_to_pos.flags.writeable = False

    def _build_rewards(self) -> np.ndarray:
        rewards = np.full(self.n_states, self.step_reward, dtype=np.float64)
        for label in self.hazards:
            rewards[self.index_of[label]] = self.hazard_reward
        rewards[self.goal_state] = self.goal_reward
        rewards.flags.writeable = False
        return rewards

    def _build_successors(self) -> np.ndarray:
        """
        Precompute the destination of every (state, direction) pair.

        Moves that leave the grid or enter an obstacle fold back onto the
        origin state.

        Returns:
            Int array of shape (n_states, n_actions).
        """
        successors = np.empty((self.n_states, self.n_actions), dtype=np.int64)

        for s in range(self.n_states):
            row, col = self.state_to_pos[s]
            for direction in Action:
                new_row, new_col = self.step(row, col, direction)
                label = self.state_at(new_row, new_col)
                successors[s, direction] = s if label is None else self.index_of[label]

        successors.flags.writeable = False
        return successors

    def position_of(self, label: str) -> Tuple[int, int]:
        """
        Get the (row, col) coordinate of a label.

        Obstacles have coordinates too, even though they are not states.

        Raises:
            StateNotFound: If the label is not part of the layout.
        """
        try:
            return self._positions[label]
        except KeyError:
            raise StateNotFound(label) from None

    def state_at(self, row: int, col: int) -> Optional[str]:
        """
        Get the label at a coordinate.

        Returns:
            The label, or None if the coordinate is out of bounds or an obstacle.
        """
        if row < 0 or row >= self.height or col < 0 or col >= self.width:
            return None
        label = self.layout[row][col]
        if label in self.obstacles:
            return None
        return label

    @staticmethod
    def step(row: int, col: int, direction: Union[Action, str]) -> Tuple[int, int]:
        """
        Move one cell in a cardinal direction.

        Pure coordinate arithmetic: no bounds or obstacle checks. Unknown
        direction symbols leave the coordinate unchanged.

        Args:
            row: Row index.
            col: Column index.
            direction: An Action or its symbol ("N", "S", "E", "W").

        Returns:
            The new (row, col), possibly out of bounds.
        """
        if isinstance(direction, Action):
            direction = direction.symbol
        delta_row, delta_col = _DELTAS.get(direction, (0, 0))
        return int(row) + delta_row, int(col) + delta_col

    def destination(self, state: int, direction: Union[Action, int]) -> int:
        """Return the state reached from `state` in `direction`, staying put on invalid moves."""
        return int(self.successors[state, int(direction)])

    @staticmethod
    def canonical_symbol(symbol: Union[str, Action]) -> Union[str, Action]:
        """Map an action symbol or alias to its canonical symbol; unknown symbols pass through."""
        if isinstance(symbol, Action):
            return symbol.symbol
        action = _BY_SYMBOL.get(symbol)
        return symbol if action is None else action.symbol

    def category_of(self, label: str) -> str:
        """
        Get the category of a label: "normal", "hazard", "obstacle" or "goal".

        Raises:
            StateNotFound: If the label is not part of the layout.
        """
        self.position_of(label)
        if label == self.goal:
            return GOAL
        if label in self.obstacles:
            return OBSTACLE
        if label in self.hazards:
            return HAZARD
        return NORMAL

    def reward(self, label: str) -> float:
        """Reward of a state label; 0.0 for labels that are not states."""
        index = self.index_of.get(label)
        if index is None:
            return 0.0
        return float(self.rewards[index])

    def value_map(self, values: np.ndarray) -> Dict[str, float]:
        """Convert a value array to a {label: value} mapping."""
        return {label: float(values[s]) for s, label in enumerate(self.labels)}

    def policy_map(self, policy: np.ndarray) -> Dict[str, str]:
        """
        Convert a policy array to a {label: action symbol} mapping.

        States without an action (the goal, marked -1) are omitted.
        """
        return {
            label: Action(int(policy[s])).symbol
            for s, label in enumerate(self.labels)
            if policy[s] >= 0
        }

    def policy_from_map(self, policy: Mapping[str, Union[str, Action]]) -> np.ndarray:
        """
        Convert a {label: action} mapping to a policy array.

        States missing from the mapping get -1 (no action).

        Raises:
            StateNotFound: If a key is not a state of this grid.
            ValueError: If an action symbol is unknown.
        """
        array = np.full(self.n_states, -1, dtype=np.int64)
        for label, action in policy.items():
            if label not in self.index_of:
                raise StateNotFound(label)
            array[self.index_of[label]] = Action.from_symbol(action)
        return array

    def __repr__(self) -> str:
        """Return a string representation of the world."""
        return (
            f"GridWorld(height={self.height}, width={self.width}, "
            f"n_states={self.n_states}, goal='{self.goal}')"
        )

    def __str__(self) -> str:
        """Return the layout as aligned text."""
        cell = max(len(label) for row in self.layout for label in row)
        return '\n'.join(' '.join(label.rjust(cell) for label in row) for row in self.layout)
