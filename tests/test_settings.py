"""
Tests for settings loading, validation and builders.
"""

import json

import yaml

from plotter_core.config.settings import Settings
from plotter_core.validation.movement_validator import Zone


def test_defaults_are_valid():
    settings = Settings()
    assert settings._validate_config()
    assert settings.hardware.simulation_mode
    assert settings.executor.move_speed == 50.0
    assert settings.queue.command_timeout == 5.0
    assert settings.logging.log_file == "plotter.log"


def test_missing_file_creates_defaults(tmp_path):
    config_file = tmp_path / "config" / "plotter.yaml"
    settings = Settings(str(config_file))

    assert settings.load_config()
    assert config_file.exists()
    assert yaml.safe_load(config_file.read_text())['safety']['poll_interval'] == 0.1


def test_yaml_round_trip(tmp_path):
    config_file = str(tmp_path / "plotter.yaml")
    settings = Settings(config_file)
    settings.executor.draw_speed = 20.0
    settings.bounds.danger_zones = [{'x1': 0, 'y1': 0, 'x2': 5, 'y2': 5}]
    settings.safety.limits = {'C': {'max_temperature': 45}}
    assert settings.save_config()

    loaded = Settings(config_file)
    assert loaded.load_config()
    assert loaded.executor.draw_speed == 20.0
    assert loaded.bounds.danger_zones == [{'x1': 0, 'y1': 0, 'x2': 5, 'y2': 5}]
    assert loaded.safety.limits == {'C': {'max_temperature': 45}}


def test_json_config(tmp_path):
    config_file = tmp_path / "plotter.json"
    config_file.write_text(json.dumps({
        'hardware': {'simulation_mode': False},
        'queue': {'command_timeout': 2.5},
        'unknown_section': {'ignored': True},
    }))

    settings = Settings(str(config_file))
    assert settings.load_config()
    assert not settings.hardware.simulation_mode
    assert settings.queue.command_timeout == 2.5


def test_invalid_values_fail_validation(tmp_path):
    config_file = tmp_path / "plotter.yaml"
    config_file.write_text(yaml.safe_dump({'executor': {'draw_speed': 0}}))

    assert not Settings(str(config_file)).load_config()


def test_unknown_limit_field_fails_validation():
    settings = Settings()
    settings.safety.limits = {'A': {'max_torque': 3}}
    assert not settings._validate_config()


def test_unsupported_format(tmp_path):
    config_file = tmp_path / "plotter.ini"
    config_file.write_text("[plotter]")
    assert not Settings(str(config_file)).load_config()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('PLOTTER_LOG_LEVEL', 'debug')
    monkeypatch.setenv('PLOTTER_LOG_FILE', 'custom.log')
    monkeypatch.setenv('PLOTTER_SIMULATION', 'off')

    settings = Settings()
    settings.load_environment_overrides()

    assert settings.logging.level == 'DEBUG'
    assert settings.logging.log_file == 'custom.log'
    assert not settings.hardware.simulation_mode


def test_build_bounds():
    settings = Settings()
    settings.bounds.danger_zones = [{'x1': -10, 'y1': -10, 'x2': 10, 'y2': 10}]

    bounds = settings.build_bounds()

    assert bounds.paper_width == 148.0
    assert bounds.danger_zones == [Zone(-10, -10, 10, 10)]
    assert bounds.safe_zones == []


def test_build_safety_limits():
    settings = Settings()
    settings.safety.limits = {'B': {'max_degrees': 90}, 'Z': {'max_speed': 1}}

    limits = settings.build_safety_limits()

    assert limits['B'].max_degrees == 90
    assert limits['A'].max_degrees == 360
    assert 'Z' not in limits


def test_build_calibration_inline_and_file(tmp_path):
    settings = Settings()
    settings.calibration.degrees_per_mm_x = 12.5
    assert settings.build_calibration().degrees_per_mm_x == 12.5

    calibration_file = tmp_path / "calibration.json"
    calibration_file.write_text(json.dumps({'degreesPerMM': {'X': 8, 'Y': 9}}))
    settings.calibration.calibration_file = str(calibration_file)
    calibration = settings.build_calibration()
    assert (calibration.degrees_per_mm_x, calibration.degrees_per_mm_y) == (8.0, 9.0)
