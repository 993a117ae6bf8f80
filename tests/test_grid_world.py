"""
Unit Tests for GridWorld

Tests layout parsing and validation, label/coordinate lookups, the
coordinate step function, successor folding and the reward function.
"""

import pytest
import numpy as np

from gridmdp.grid_world import Action, GridWorld, StateNotFound


@pytest.fixture
def world():
    """Create the reference 6x8 world."""
    return GridWorld.default()


@pytest.fixture
def small_world():
    """Create a 3x3 world with one obstacle and one hazard."""
    layout = [
        ["A", "B", "C"],
        ["D", "X", "H"],
        ["E", "F", "G"],
    ]
    return GridWorld(layout, goal="G", hazards=["H"], obstacles=["X"])


class TestLayoutParsing:
    """Tests for layout loading and validation."""

    def test_default_dimensions(self, world):
        """Test the reference map has 6 rows, 8 columns and 38 states."""
        assert world.height == 6
        assert world.width == 8
        assert world.n_states == 38
        assert world.n_actions == 4

    def test_from_txt(self, tmp_path):
        """Test parsing a whitespace-separated layout file."""
        path = tmp_path / "room.txt"
        path.write_text("A B C\nD X H\nE F G\n")

        world = GridWorld.from_txt(path, goal="G", hazards=["H"], obstacles=["X"])

        assert world.height == 3
        assert world.width == 3
        assert world.n_states == 8
        assert world.position_of("G") == (2, 2)

    def test_file_not_found(self):
        """Test error when file doesn't exist."""
        with pytest.raises(FileNotFoundError):
            GridWorld.from_txt("nonexistent_layout.txt", goal="G")

    def test_empty_layout_error(self):
        """Test error on empty layout."""
        with pytest.raises(ValueError, match="cannot be empty"):
            GridWorld([], goal="G")

    def test_unequal_row_lengths_error(self):
        """Test error when rows have different lengths."""
        with pytest.raises(ValueError, match="same length"):
            GridWorld([["A", "B"], ["G"]], goal="G")

    def test_duplicate_label_error(self):
        """Test error when a label appears twice."""
        with pytest.raises(ValueError, match="Duplicate label"):
            GridWorld([["A", "A"], ["B", "G"]], goal="G")

    def test_missing_goal_error(self):
        """Test error when the goal is not in the layout."""
        with pytest.raises(ValueError, match="not part of the layout"):
            GridWorld([["A", "B"]], goal="G")

    def test_goal_obstacle_error(self):
        """Test error when the goal is also an obstacle."""
        with pytest.raises(ValueError, match="obstacle"):
            GridWorld([["A", "G"]], goal="G", obstacles=["G"])

    def test_unknown_category_label_error(self):
        """Test error when a hazard label is not in the layout."""
        with pytest.raises(ValueError, match="not found in layout"):
            GridWorld([["A", "G"]], goal="G", hazards=["P9"])

    def test_reward_ordering_error(self):
        """Test error when hazards are not worse than normal cells."""
        with pytest.raises(ValueError, match="goal > step > hazard"):
            GridWorld([["A", "G"]], goal="G", hazard_reward=0.0, step_reward=-0.1)


class TestStateMappings:
    """Tests for state indices and label/coordinate lookups."""

    def test_obstacles_excluded(self, world):
        """Test obstacles get no state index."""
        for label in world.obstacles:
            assert label not in world.index_of
        assert len(world.labels) == world.n_states

    def test_row_major_enumeration(self, small_world):
        """Test states are numbered row by row, skipping obstacles."""
        assert small_world.labels == ["A", "B", "C", "D", "H", "E", "F", "G"]
        assert small_world.goal_state == 7

    def test_index_and_label_inverse(self, world):
        """Test index_of and labels are inverse mappings."""
        for s, label in enumerate(world.labels):
            assert world.index_of[label] == s

    def test_state_to_pos_matches_position_of(self, world):
        """Test state_to_pos agrees with position_of."""
        for s, label in enumerate(world.labels):
            assert tuple(world.state_to_pos[s]) == world.position_of(label)

    def test_position_of(self, world):
        """Test coordinates of a few known labels."""
        assert world.position_of("S0") == (0, 0)
        assert world.position_of("M") == (3, 4)
        assert world.position_of("S37") == (5, 7)

    def test_position_of_obstacle(self, world):
        """Test obstacles still have coordinates."""
        assert world.position_of("O1") == (0, 3)

    def test_position_of_unknown_label(self, world):
        """Test StateNotFound for an unknown label."""
        with pytest.raises(StateNotFound, match="Z99"):
            world.position_of("Z99")

    def test_state_not_found_is_lookup_error(self, world):
        """Test StateNotFound can be caught as LookupError."""
        with pytest.raises(LookupError):
            world.position_of("Z99")

    def test_state_at(self, world):
        """Test label lookup by coordinate."""
        assert world.state_at(3, 4) == "M"
        assert world.state_at(2, 1) == "P2"

    def test_state_at_obstacle(self, world):
        """Test obstacles return None."""
        assert world.state_at(0, 3) is None

    @pytest.mark.parametrize("row,col", [(-1, 0), (0, -1), (6, 0), (0, 8)])
    def test_state_at_out_of_bounds(self, world, row, col):
        """Test out-of-bounds coordinates return None."""
        assert world.state_at(row, col) is None

    def test_category_of(self, world):
        """Test categories of each kind of cell."""
        assert world.category_of("M") == "goal"
        assert world.category_of("P3") == "hazard"
        assert world.category_of("O7") == "obstacle"
        assert world.category_of("S12") == "normal"


class TestStep:
    """Tests for coordinate arithmetic."""

    @pytest.mark.parametrize("direction,expected", [
        ("N", (1, 2)),
        ("S", (3, 2)),
        ("E", (2, 3)),
        ("W", (2, 1)),
    ])
    def test_step_symbols(self, direction, expected):
        """Test one-cell moves by symbol."""
        assert GridWorld.step(2, 2, direction) == expected

    def test_step_action_members(self):
        """Test Action members move like their symbols."""
        for action in Action:
            assert GridWorld.step(2, 2, action) == GridWorld.step(2, 2, action.symbol)

    def test_step_no_bounds_check(self):
        """Test step may leave the grid."""
        assert GridWorld.step(0, 0, "N") == (-1, 0)
        assert GridWorld.step(0, 0, "W") == (0, -1)

    @pytest.mark.parametrize("symbol", ["Q", "", "north"])
    def test_unknown_symbol_is_noop(self, symbol):
        """Test unknown direction symbols leave the coordinate unchanged."""
        assert GridWorld.step(2, 2, symbol) == (2, 2)

    def test_west_alias(self):
        """Test "O" moves west like "W"."""
        assert GridWorld.step(2, 2, "O") == (2, 1)
        assert GridWorld.canonical_symbol("O") == "W"


class TestActionLookup:
    """Tests for Action.from_symbol."""

    def test_symbols(self):
        """Test every canonical symbol resolves to its member."""
        for action in Action:
            assert Action.from_symbol(action.symbol) is action

    def test_west_alias(self):
        """Test "O" resolves to WEST."""
        assert Action.from_symbol("O") is Action.WEST

    @pytest.mark.parametrize("index,expected", [
        (0, Action.NORTH),
        (3, Action.WEST),
        (np.int64(2), Action.EAST),
    ])
    def test_integer_indices(self, index, expected):
        """Test integer indices resolve by action order."""
        assert Action.from_symbol(index) is expected

    @pytest.mark.parametrize("index", [-1, 4])
    def test_out_of_range_index_error(self, index):
        """Test error on an index outside the action order."""
        with pytest.raises(ValueError, match="Unknown action index"):
            Action.from_symbol(index)

    def test_unknown_symbol_error(self):
        """Test error on an unknown symbol."""
        with pytest.raises(ValueError):
            Action.from_symbol("Q")


class TestSuccessors:
    """Tests for the precomputed successor table."""

    def test_shape(self, world):
        """Test successor table has shape (n_states, n_actions)."""
        assert world.successors.shape == (world.n_states, world.n_actions)

    def test_boundary_stays_in_place(self, world):
        """Test moving off the grid keeps the agent in place."""
        s0 = world.index_of["S0"]
        assert world.destination(s0, Action.NORTH) == s0
        assert world.destination(s0, Action.WEST) == s0

    def test_obstacle_stays_in_place(self, world):
        """Test moving into an obstacle keeps the agent in place."""
        # S0 at (0, 0); (1, 0) is O3
        s0 = world.index_of["S0"]
        assert world.destination(s0, Action.SOUTH) == s0

    def test_valid_move(self, world):
        """Test valid moves reach the neighbouring state."""
        s22 = world.index_of["S22"]
        assert world.destination(s22, Action.EAST) == world.goal_state
        assert world.destination(s22, Action.SOUTH) == world.index_of["S27"]

    def test_successors_read_only(self, world):
        """Test the successor table cannot be modified."""
        with pytest.raises(ValueError):
            world.successors[0, 0] = 1


class TestRewardFunction:
    """Tests for the reward function."""

    def test_rewards_by_category(self, world):
        """Test goal, hazard and normal rewards."""
        assert world.reward("M") == 10.0
        assert world.reward("P1") == -0.5
        assert world.reward("S0") == -0.1

    def test_reward_ordering(self, world):
        """Test goal > normal > hazard."""
        assert world.reward("M") > world.reward("S0") > world.reward("P4")

    def test_missing_reward_defaults_to_zero(self, world):
        """Test unknown labels and obstacles have reward 0.0."""
        assert world.reward("O1") == 0.0
        assert world.reward("does-not-exist") == 0.0

    def test_reward_array(self, world):
        """Test the reward array matches label lookups."""
        assert world.rewards.shape == (world.n_states,)
        for s, label in enumerate(world.labels):
            assert world.rewards[s] == world.reward(label)

    def test_custom_rewards(self, small_world):
        """Test reward overrides are applied."""
        world = GridWorld(
            small_world.layout, goal="G", hazards=["H"], obstacles=["X"],
            goal_reward=1.0, hazard_reward=-1.0, step_reward=-0.04,
        )
        assert world.reward("G") == 1.0
        assert world.reward("H") == -1.0
        assert world.reward("A") == -0.04


class TestPolicyAdapters:
    """Tests for label-keyed adapters."""

    def test_value_map(self, small_world):
        """Test value arrays become label-keyed dicts."""
        values = np.arange(small_world.n_states, dtype=float)
        value_map = small_world.value_map(values)
        assert value_map["A"] == 0.0
        assert value_map["G"] == 7.0
        assert "X" not in value_map

    def test_policy_map_omits_goal(self, small_world):
        """Test the goal has no entry in the policy map."""
        policy = np.full(small_world.n_states, int(Action.EAST))
        policy[small_world.goal_state] = -1
        policy_map = small_world.policy_map(policy)
        assert "G" not in policy_map
        assert policy_map["A"] == "E"
        assert len(policy_map) == small_world.n_states - 1

    def test_policy_from_map_inverse(self, small_world):
        """Test policy_from_map inverts policy_map."""
        policy = np.array([0, 1, 2, 3, 0, 1, 2, -1])
        restored = small_world.policy_from_map(small_world.policy_map(policy))
        np.testing.assert_array_equal(restored, policy)

    def test_policy_from_map_unknown_state(self, small_world):
        """Test unknown labels raise StateNotFound."""
        with pytest.raises(StateNotFound):
            small_world.policy_from_map({"X": "N"})
