"""
Tests for the safety monitor.
"""

import asyncio

import pytest

from plotter_core.exceptions import CommandCancelled
from plotter_core.utils.notifications import Severity
from plotter_core.utils.safety import DEFAULT_LIMITS, SafetyLevel, SafetyMonitor


@pytest.fixture
def monitor(hardware, notifications, command_queue):
    return SafetyMonitor(hardware, notify=notifications, command_queue=command_queue,
                         poll_interval=0.01, violation_cooldown=0.05)


def brake_counts(hardware):
    return {port: hardware.axis(port).brake_count for port in hardware.ports}


def test_default_limits():
    assert DEFAULT_LIMITS['A'].min_degrees == -360
    assert DEFAULT_LIMITS['B'].max_degrees == 180
    assert DEFAULT_LIMITS['C'].max_speed == 50
    assert DEFAULT_LIMITS['C'].max_current == 500


@pytest.mark.asyncio
async def test_healthy_telemetry_does_nothing(monitor, hardware, notifications):
    assert await monitor.check_once()
    assert brake_counts(hardware) == {'A': 0, 'B': 0, 'C': 0}
    assert notifications.messages() == []


@pytest.mark.asyncio
async def test_temperature_violation_stops_once(monitor, hardware, notifications):
    hardware.axis('A').set_telemetry(temperature=55)

    await monitor.check_once()

    errors = notifications.messages(Severity.ERROR)
    assert errors == ["Safety violation on motor A: Temperature too high (55)"]
    assert brake_counts(hardware) == {'A': 1, 'B': 1, 'C': 1}
    assert notifications.messages(Severity.INFO) == ["Emergency stop activated"]
    assert monitor.is_emergency_stop_active()

    # Within the cool-down the same violation is suppressed entirely
    await monitor.check_once()
    assert brake_counts(hardware) == {'A': 1, 'B': 1, 'C': 1}
    assert len(notifications.messages(Severity.ERROR)) == 1

    # After the cool-down it fires again
    await asyncio.sleep(0.1)
    await monitor.check_once()
    assert brake_counts(hardware) == {'A': 2, 'B': 2, 'C': 2}


@pytest.mark.asyncio
async def test_only_first_violation_per_axis(monitor, hardware):
    hardware.axis('B').set_telemetry(position=200, temperature=80)

    await monitor.check_once()

    events = monitor.get_safety_events()
    violations = [e for e in events if e.category == "limit_violation"]
    assert len(violations) == 1
    assert violations[0].port == 'B'
    assert violations[0].value == 200
    assert "Position above maximum limit" in violations[0].message


@pytest.mark.asyncio
async def test_position_after_rotation_is_checked(monitor, hardware, notifications):
    await hardware.axis('B').rotate_by_degrees(200, 50)

    await monitor.check_once()

    assert notifications.messages(Severity.ERROR) == [
        "Safety violation on motor B: Position above maximum limit (200.0)"
    ]


@pytest.mark.asyncio
async def test_emergency_stop_clears_queue(monitor, command_queue):
    started = asyncio.Event()
    release = asyncio.Event()

    async def blocker():
        started.set()
        await release.wait()

    async def pending():
        return None

    in_flight = command_queue.add(blocker)
    waiting = command_queue.add(pending)
    await started.wait()

    await monitor.emergency_stop("test")

    with pytest.raises(CommandCancelled):
        await waiting
    release.set()
    await in_flight


@pytest.mark.asyncio
async def test_brake_failure_is_reported_per_axis(monitor, hardware, notifications):
    hardware.axis('B').inject_fault('brake')

    assert not await monitor.emergency_stop()

    assert hardware.axis('A').brake_count == 1
    assert hardware.axis('C').brake_count == 1
    errors = notifications.messages(Severity.ERROR)
    assert len(errors) == 1
    assert errors[0].startswith("Failed to stop motor B")
    assert notifications.messages(Severity.INFO)[-1] == "Emergency stop activated"


@pytest.mark.asyncio
async def test_telemetry_read_failure_skips_axis(monitor, hardware, notifications):
    hardware.axis('C').inject_fault('read_telemetry')

    assert await monitor.check_once()

    assert notifications.messages(Severity.ERROR)[0].startswith("Failed to get motor C status")
    assert brake_counts(hardware) == {'A': 0, 'B': 0, 'C': 0}


@pytest.mark.asyncio
async def test_disconnect_stops_monitoring(monitor, hardware, notifications):
    monitor.start_monitoring()
    assert monitor.is_monitoring

    hardware.set_connected(False)
    await asyncio.sleep(0.05)

    assert not monitor.is_monitoring
    assert "Hub disconnected, stopping safety monitoring" in notifications.messages(Severity.ERROR)


@pytest.mark.asyncio
async def test_disconnect_callbacks_are_run(monitor, hardware):
    calls = []

    async def release():
        calls.append('async')

    def broken():
        raise RuntimeError("callback failed")

    monitor.add_disconnect_callback(lambda: calls.append('sync'))
    monitor.add_disconnect_callback(broken)
    monitor.add_disconnect_callback(release)
    hardware.set_connected(False)

    assert not await monitor.check_once()

    assert calls == ['sync', 'async']
    events = monitor.get_safety_events(level=SafetyLevel.CRITICAL)
    assert [e.category for e in events] == ['disconnect']


@pytest.mark.asyncio
async def test_monitor_loop_detects_violation(monitor, hardware):
    hardware.axis('C').set_telemetry(load=95)
    monitor.violation_cooldown = 1.0

    monitor.start_monitoring()
    await asyncio.sleep(0.03)
    monitor.stop_monitoring()

    assert hardware.axis('C').brake_count == 1
    stats = monitor.get_safety_statistics()
    assert stats['category_counts']['limit_violation'] == 1
    assert stats['emergency_stop_count'] == 1


@pytest.mark.asyncio
async def test_clear_emergency_stop(monitor):
    changes = []
    monitor.add_emergency_callback(changes.append)

    await monitor.emergency_stop()
    assert await monitor.clear_emergency_stop()

    assert changes == [True, False]
    assert not monitor.is_emergency_stop_active()
    assert monitor.get_safety_events(level=SafetyLevel.CRITICAL)[0].category == "emergency_stop"


def test_update_and_get_limits(monitor, notifications):
    assert monitor.update_limits('C', max_temperature=60)
    assert monitor.get_limits('C').max_temperature == 60
    assert notifications.messages(Severity.INFO) == ["Updated limits for motor C"]

    limits = monitor.get_limits('A')
    limits.max_speed = 1
    assert monitor.get_limits('A').max_speed == 100


def test_invalid_limit_updates(monitor, notifications):
    assert not monitor.update_limits('D', max_speed=10)
    assert not monitor.update_limits('A', max_torque=10)
    assert monitor.get_limits('D') is None
    assert len(notifications.messages(Severity.ERROR)) == 3


@pytest.mark.asyncio
async def test_raised_limit_prevents_violation(monitor, hardware):
    hardware.axis('A').set_telemetry(temperature=55)
    monitor.update_limits('A', max_temperature=60)

    await monitor.check_once()

    assert hardware.axis('A').brake_count == 0
