"""
Tests for the movement validator.
"""

import pytest

from plotter_core.sequence import Move, MoveKind, Point, Sequence
from plotter_core.validation.movement_validator import MovementBounds, MovementValidator, Zone


class TestValidatePosition:

    def test_inside_bounds_is_valid(self, validator):
        result = validator.validate_position(50, 50)
        assert result
        assert result.reason is None

    def test_x_outside_bounds(self, validator):
        result = validator.validate_position(-1, 5)
        assert not result
        assert result.reason.startswith("X position -1 outside bounds")

    def test_y_outside_bounds(self, validator):
        result = validator.validate_position(5, 300)
        assert not result
        assert result.reason.startswith("Y position 300 outside bounds")

    def test_outside_paper_but_inside_travel(self):
        validator = MovementValidator(MovementBounds(max_x=200))
        result = validator.validate_position(160, 10)
        assert not result
        assert result.reason == "Position outside paper bounds"

    def test_danger_zone_is_inclusive(self, zone_validator):
        assert not zone_validator.validate_position(30, 30)
        assert not zone_validator.validate_position(45, 45)
        assert zone_validator.validate_position(29.9, 45)

    @pytest.mark.parametrize("x, y", [
        (float('nan'), 5),
        (5, float('nan')),
        (float('inf'), 5),
        (5, float('-inf')),
    ])
    def test_non_finite_position(self, validator, x, y):
        result = validator.validate_position(x, y)
        assert not result
        assert result.reason.startswith("Non-finite position")

    def test_simulation_mode_accepts_anything(self):
        validator = MovementValidator(simulation_mode=True)
        assert validator.validate_position(-100, -100)


class TestValidatePath:

    def test_end_in_origin_zone(self, origin_zone_validator):
        result = origin_zone_validator.validate_path(20, 20, 5, 5)
        assert not result
        assert result.reason == "Position is in danger zone"

    def test_crossing_zone(self, zone_validator):
        result = zone_validator.validate_path(10, 45, 100, 45)
        assert not result
        assert result.reason == "Path crosses danger zone"

    def test_path_beside_zone(self, zone_validator):
        assert zone_validator.validate_path(10, 20, 35, 20)

    def test_path_too_long(self, validator):
        result = validator.validate_path(0, 0, 148, 210)
        assert not result
        assert result.reason == "Path length exceeds maximum allowed distance"

    def test_excessive_rotation(self, validator):
        result = validator.validate_path(0, 0, 40, 0)
        assert not result
        assert result.reason == "Movement requires excessive motor rotation"

    def test_rotation_at_limit(self, validator):
        assert validator.validate_path(0, 0, 36, 0)

    def test_invalid_start(self, validator):
        result = validator.validate_path(-5, 0, 10, 10)
        assert not result
        assert result.reason.startswith("X position")

    def test_parallel_segments_do_not_intersect(self):
        assert not MovementValidator._lines_intersect(0, 0, 10, 0, 0, 5, 10, 5)

    def test_crossing_segments_intersect(self):
        assert MovementValidator._lines_intersect(0, 0, 10, 10, 0, 10, 10, 0)


class TestValidateSequence:

    def test_valid_sequence(self, validator):
        sequence = Sequence("square", [
            Move(MoveKind.TRAVEL, 10, 10),
            Move(MoveKind.DRAW, 30, 10),
            Move(MoveKind.DRAW, 30, 30),
        ])
        assert validator.validate_sequence(sequence)

    def test_bounding_box_outside_paper(self, validator):
        sequence = Sequence("wide", [Move(MoveKind.TRAVEL, 10, 10), Move(MoveKind.DRAW, 160, 10)])
        result = validator.validate_sequence(sequence)
        assert not result
        assert result.reason == "Sequence exceeds paper bounds"

    def test_first_failing_move_is_reported(self, zone_validator):
        sequence = Sequence("through", [
            Move(MoveKind.TRAVEL, 20, 20),
            Move(MoveKind.TRAVEL, 20, 45),
            Move(MoveKind.DRAW, 50, 45),
        ])
        result = zone_validator.validate_sequence(sequence)
        assert not result
        assert result.reason == "Invalid move at (50, 45): Position is in danger zone"

    def test_start_point_is_used(self, validator):
        sequence = Sequence("short", [Move(MoveKind.DRAW, 50, 10)])
        assert not validator.validate_sequence(sequence)
        assert validator.validate_sequence(sequence, start=Point(40, 10))

    def test_empty_sequence_is_valid(self, validator):
        assert validator.validate_sequence(Sequence("empty"))


class TestFitToPaper:

    def test_scales_to_ninety_percent(self, validator):
        moves = [Move(MoveKind.TRAVEL, 0, 0), Move(MoveKind.DRAW, 10, 20)]
        fitted = validator.fit_to_paper(moves)
        # min(148 / 10, 210 / 20) * 0.9 = 9.45
        assert fitted[0].x == pytest.approx(0.0)
        assert fitted[1].x == pytest.approx(94.5)
        assert fitted[1].y == pytest.approx(189.0)

    def test_shifts_to_corner_with_flat_span(self, validator):
        moves = [Move(MoveKind.TRAVEL, 100, 100), Move(MoveKind.DRAW, 110, 100, pen=-45)]
        fitted = validator.fit_to_paper(moves)
        assert fitted[0].x == pytest.approx(0.0)
        assert fitted[1].x == pytest.approx(133.2)
        assert fitted[1].y == pytest.approx(0.0)
        assert fitted[1].pen == -45
        assert fitted[1].kind is MoveKind.DRAW

    def test_single_point(self, validator):
        fitted = validator.fit_to_paper([Move(MoveKind.TRAVEL, 40, 50)])
        assert (fitted[0].x, fitted[0].y) == (0.0, 0.0)

    def test_simulation_clamps(self):
        validator = MovementValidator(simulation_mode=True)
        fitted = validator.fit_to_paper([Move(MoveKind.TRAVEL, -5, 300), Move(MoveKind.DRAW, 20, 30)])
        assert (fitted[0].x, fitted[0].y) == (0.0, 210.0)
        assert (fitted[1].x, fitted[1].y) == (20.0, 30.0)

    def test_empty(self, validator):
        assert validator.fit_to_paper([]) == []


class TestZone:

    def test_edges(self):
        zone = Zone(0, 0, 2, 1)
        assert len(zone.edges()) == 4
        assert (0, 0, 2, 0) in zone.edges()
