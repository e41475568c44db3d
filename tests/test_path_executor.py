"""
Tests for the path executor.
"""

import asyncio

import pytest

from plotter_core.control.axis import PORT_PEN, PORT_X, PORT_Y, PlotterHardware
from plotter_core.control.path_executor import PathExecutor
from plotter_core.exceptions import HardwareFault, InvalidSequenceError, SequenceExecutionError
from plotter_core.sequence import PEN_DOWN, PEN_UP, Move, MoveKind, Point, Sequence


@pytest.fixture
def executor(hardware, command_queue, calibration):
    return PathExecutor(hardware, command_queue, calibration, simulation_mode=True)


def x_axis(hardware):
    return hardware.axis(PORT_X)


def y_axis(hardware):
    return hardware.axis(PORT_Y)


def pen_axis(hardware):
    return hardware.axis(PORT_PEN)


class TestPlanMotion:

    def test_pure_x_move(self, executor):
        plan = executor.plan_motion(Point(0, 0), Point(30, 0), MoveKind.TRAVEL)
        assert plan.degrees_x == pytest.approx(300.0)
        assert plan.degrees_y == 0
        assert plan.speed_x == pytest.approx(100.0)
        assert plan.speed_y == 0

    def test_speeds_keep_the_line_straight(self, executor):
        plan = executor.plan_motion(Point(0, 0), Point(3, 4), MoveKind.DRAW)
        assert plan.speed_y == pytest.approx(100.0)
        assert plan.speed_x / plan.speed_y == pytest.approx(0.75)

    def test_slow_move_is_not_scaled(self, hardware, command_queue, calibration):
        executor = PathExecutor(hardware, command_queue, calibration, draw_speed=3.0)
        plan = executor.plan_motion(Point(0, 0), Point(3, 4), MoveKind.DRAW)
        # 5mm at 3mm/s takes 5/3s
        assert plan.speed_x == pytest.approx(30 / (5 / 3))
        assert plan.speed_y == pytest.approx(40 / (5 / 3))

    def test_zero_hop(self, executor):
        assert executor.plan_motion(Point(5, 5), Point(5, 5), MoveKind.DRAW).is_zero


@pytest.mark.asyncio
async def test_single_travel_rotates_x_only(executor, hardware):
    await executor.execute_sequence(Sequence("line", [Move(MoveKind.TRAVEL, 30, 0)]))

    assert x_axis(hardware).rotations() == [(300.0, 100.0)]
    assert y_axis(hardware).rotations() == []
    assert executor.current_position == Point(30, 0)
    assert x_axis(hardware).position == pytest.approx(300.0)


@pytest.mark.asyncio
async def test_pen_commands_and_final_pen_up(executor, hardware):
    sequence = Sequence("stroke", [
        Move(MoveKind.TRAVEL, 0, 0, PEN_DOWN),
        Move(MoveKind.DRAW, 10, 0),
        Move(MoveKind.DRAW, 10, 10),
    ])

    await executor.execute_sequence(sequence)

    assert pen_axis(hardware).rotations() == [(-45.0, 30.0), (45.0, 30.0)]
    assert x_axis(hardware).rotations() == [(100.0, 100.0)]
    assert y_axis(hardware).rotations() == [(100.0, 100.0)]
    assert executor.pen_angle == PEN_UP


@pytest.mark.asyncio
async def test_pen_up_is_always_commanded(executor, hardware):
    await executor.execute_sequence(Sequence("empty"))
    assert pen_axis(hardware).rotations() == [(0.0, 30.0)]


@pytest.mark.asyncio
async def test_progress_is_reported_per_move(executor):
    progress = []
    sequence = Sequence("two", [Move(MoveKind.TRAVEL, 5, 0), Move(MoveKind.TRAVEL, 5, 5)])

    await executor.execute_sequence(sequence, on_progress=progress.append)

    assert progress == [50.0, 100.0]


@pytest.mark.asyncio
async def test_failure_raises_pen_and_reports_index(executor, hardware):
    y_axis(hardware).inject_fault('rotate_by_degrees')
    sequence = Sequence("broken", [
        Move(MoveKind.TRAVEL, 5, 0, PEN_DOWN),
        Move(MoveKind.DRAW, 5, 5),
        Move(MoveKind.DRAW, 0, 5),
    ])

    with pytest.raises(SequenceExecutionError) as excinfo:
        await executor.execute_sequence(sequence)

    assert excinfo.value.move_index == 1
    assert isinstance(excinfo.value.cause, HardwareFault)
    assert pen_axis(hardware).rotations()[-1] == (45.0, 30.0)
    assert executor.current_position == Point(5, 0)
    assert not executor.is_executing


@pytest.mark.asyncio
async def test_failure_triggers_emergency_stop_outside_simulation(hardware, command_queue, calibration):
    stops = []

    async def emergency_stop():
        stops.append(True)

    executor = PathExecutor(hardware, command_queue, calibration, emergency_stop=emergency_stop)
    x_axis(hardware).inject_fault('rotate_by_degrees')

    with pytest.raises(SequenceExecutionError):
        await executor.execute_sequence(Sequence("broken", [Move(MoveKind.TRAVEL, 5, 0)]))

    assert stops == [True]


@pytest.mark.asyncio
async def test_no_emergency_stop_in_simulation(hardware, command_queue, calibration):
    stops = []

    async def emergency_stop():
        stops.append(True)

    executor = PathExecutor(hardware, command_queue, calibration,
                            simulation_mode=True, emergency_stop=emergency_stop)
    x_axis(hardware).inject_fault('rotate_by_degrees')

    with pytest.raises(SequenceExecutionError):
        await executor.execute_sequence(Sequence("broken", [Move(MoveKind.TRAVEL, 5, 0)]))

    assert stops == []


@pytest.mark.asyncio
async def test_invalid_sequence_is_refused_up_front(hardware, command_queue, calibration, validator):
    executor = PathExecutor(hardware, command_queue, calibration, validator=validator)

    with pytest.raises(InvalidSequenceError):
        await executor.execute_sequence(Sequence("far", [Move(MoveKind.TRAVEL, 500, 0)]))

    for port in hardware.ports:
        assert hardware.axis(port).commands == []


@pytest.mark.asyncio
async def test_validation_starts_from_tracked_position(hardware, command_queue, calibration, validator):
    executor = PathExecutor(hardware, command_queue, calibration, validator=validator)
    executor.reset_position(Point(40, 10))

    await executor.execute_sequence(Sequence("short", [Move(MoveKind.DRAW, 50, 10)]))

    assert x_axis(hardware).rotations() == [(100.0, 100.0)]


@pytest.mark.asyncio
async def test_failed_axis_waits_for_the_other(command_queue, calibration):
    hardware = PlotterHardware.simulated(time_scale=0.1)
    executor = PathExecutor(hardware, command_queue, calibration, simulation_mode=True)
    x_axis(hardware).inject_fault('rotate_by_degrees')

    with pytest.raises(SequenceExecutionError) as excinfo:
        await executor.execute_sequence(Sequence("hop", [Move(MoveKind.TRAVEL, 5, 5)]))

    assert isinstance(excinfo.value.cause, HardwareFault)
    assert not command_queue.is_executing
    assert not y_axis(hardware).is_moving
    assert y_axis(hardware).position == pytest.approx(50.0)


@pytest.mark.asyncio
async def test_abort_stops_before_next_move(executor, hardware):
    progress = []

    def on_progress(percent):
        progress.append(percent)
        if len(progress) == 2:
            executor.abort("operator")

    sequence = Sequence("steps", [Move(MoveKind.TRAVEL, i, 0) for i in range(1, 6)])

    with pytest.raises(SequenceExecutionError) as excinfo:
        await executor.execute_sequence(sequence, on_progress=on_progress)

    assert excinfo.value.move_index == 2
    assert "operator" in str(excinfo.value)
    assert len(x_axis(hardware).rotations()) == 2
    assert pen_axis(hardware).rotations() == [(0.0, 30.0)]
    assert not executor.is_executing


@pytest.mark.asyncio
async def test_abort_during_a_braked_move(command_queue, calibration):
    hardware = PlotterHardware.simulated(time_scale=0.3)
    executor = PathExecutor(hardware, command_queue, calibration, simulation_mode=True)
    sequence = Sequence("long", [Move(MoveKind.TRAVEL, 10, 0), Move(MoveKind.TRAVEL, 20, 0)])

    run = asyncio.ensure_future(executor.execute_sequence(sequence))
    await asyncio.sleep(0.05)
    await x_axis(hardware).brake()
    executor.abort("brake")

    with pytest.raises(SequenceExecutionError) as excinfo:
        await run

    assert excinfo.value.move_index == 0
    assert x_axis(hardware).rotations() == [(100.0, 100.0)]


@pytest.mark.asyncio
async def test_abort_when_idle_is_ignored(executor, hardware):
    executor.abort("nothing running")

    await executor.execute_sequence(Sequence("line", [Move(MoveKind.TRAVEL, 5, 0)]))

    assert executor.current_position == Point(5, 0)


@pytest.mark.asyncio
async def test_non_finite_target_is_refused_in_simulation(executor, hardware):
    with pytest.raises(InvalidSequenceError):
        await executor.execute_sequence(Sequence("nan", [Move(MoveKind.TRAVEL, float('nan'), 5)]))

    for port in hardware.ports:
        assert hardware.axis(port).commands == []
