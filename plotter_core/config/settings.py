"""
Configuration Management System

Handles plotter settings: loading from YAML or JSON, validation,
environment overrides, and building the runtime value objects
(bounds, calibration, safety limits) from the loaded sections.
"""

import os
import yaml
import json
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict, fields

from ..calibration import Calibration, load_calibration
from ..calibration.calibration import A5_HEIGHT_MM, A5_WIDTH_MM
from ..utils.safety import SafetyLimits, default_limits
from ..validation.movement_validator import MovementBounds, Zone


@dataclass
class HardwareConfig:
    """Hardware selection."""
    simulation_mode: bool = True
    simulated_time_scale: float = 0.0  # 0 = instant simulated moves


@dataclass
class BoundsConfig:
    """Travel bounds, paper size and zones (mm)."""
    min_x: float = 0.0
    max_x: float = A5_WIDTH_MM
    min_y: float = 0.0
    max_y: float = A5_HEIGHT_MM
    paper_width: float = A5_WIDTH_MM
    paper_height: float = A5_HEIGHT_MM

    # Zones as {"x1", "y1", "x2", "y2"} mappings
    safe_zones: List[Dict[str, float]] = None
    danger_zones: List[Dict[str, float]] = None

    def __post_init__(self):
        if self.safe_zones is None:
            self.safe_zones = []
        if self.danger_zones is None:
            self.danger_zones = []


@dataclass
class CalibrationConfig:
    """Calibration source; a calibration file takes precedence over inline values."""
    calibration_file: Optional[str] = None
    degrees_per_mm_x: float = 10.0
    degrees_per_mm_y: float = 10.0
    max_travel_x: float = A5_WIDTH_MM
    max_travel_y: float = A5_HEIGHT_MM


@dataclass
class ExecutorConfig:
    """Motion and planning parameters."""
    move_speed: float = 50.0   # mm/s
    draw_speed: float = 30.0   # mm/s
    pen_speed: float = 30.0
    max_axis_speed: float = 100.0
    bezier_segments: int = 10


@dataclass
class QueueConfig:
    """Command queue configuration."""
    command_timeout: float = 5.0  # seconds


@dataclass
class SafetyConfig:
    """Safety monitor configuration."""
    poll_interval: float = 0.1        # seconds
    violation_cooldown: float = 1.0   # seconds

    # Per-port overrides of the default limits, e.g. {"C": {"max_temperature": 45}}
    limits: Dict[str, Dict[str, float]] = None

    def __post_init__(self):
        if self.limits is None:
            self.limits = {}


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_file: str = "plotter.log"
    max_file_size_mb: float = 10.0
    backup_count: int = 5
    console_output: bool = True
    detailed_format: bool = False


class Settings:
    """
    Plotter configuration management.

    Handles loading, validation and saving of all settings, and builds the
    value objects the control core is constructed from.
    """

    SECTIONS = ('hardware', 'bounds', 'calibration', 'executor', 'queue', 'safety', 'logging')

    def __init__(self, config_file: str = "config/plotter_config.yaml"):
        """
        Initialize settings manager.

        Args:
            config_file: Path to configuration file
        """
        self.config_file = config_file
        self.logger = logging.getLogger(__name__)

        # Configuration sections
        self.hardware = HardwareConfig()
        self.bounds = BoundsConfig()
        self.calibration = CalibrationConfig()
        self.executor = ExecutorConfig()
        self.queue = QueueConfig()
        self.safety = SafetyConfig()
        self.logging = LoggingConfig()

    def load_config(self, config_file: str = None) -> bool:
        """
        Load configuration from file.

        Args:
            config_file: Configuration file path (optional)

        Returns:
            bool: True if loaded successfully
        """
        if config_file:
            self.config_file = config_file

        try:
            if not os.path.exists(self.config_file):
                self.logger.warning(f"Config file {self.config_file} not found, using defaults")
                return self._create_default_config()

            if self.config_file.endswith(('.yaml', '.yml')):
                with open(self.config_file, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            elif self.config_file.endswith('.json'):
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
            else:
                self.logger.error(f"Unsupported config file format: {self.config_file}")
                return False

            self._load_section_config(config_data)

            if not self._validate_config():
                return False

            self.logger.info(f"Configuration loaded from {self.config_file}")
            return True

        except (OSError, yaml.YAMLError, json.JSONDecodeError, TypeError) as e:
            self.logger.error(f"Failed to load configuration: {e}")
            return False

    def save_config(self, config_file: str = None) -> bool:
        """
        Save current configuration to file.

        Args:
            config_file: Configuration file path (optional)

        Returns:
            bool: True if saved successfully
        """
        if config_file:
            self.config_file = config_file

        try:
            config_dir = os.path.dirname(self.config_file)
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)

            config_data = self.to_dict()

            if self.config_file.endswith(('.yaml', '.yml')):
                with open(self.config_file, 'w') as f:
                    yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)
            elif self.config_file.endswith('.json'):
                with open(self.config_file, 'w') as f:
                    json.dump(config_data, f, indent=2)
            else:
                self.logger.error(f"Unsupported config file format: {self.config_file}")
                return False

            self.logger.info(f"Configuration saved to {self.config_file}")
            return True

        except (OSError, yaml.YAMLError, TypeError) as e:
            self.logger.error(f"Failed to save configuration: {e}")
            return False

    def update_from_dict(self, config_dict: Dict[str, Any]):
        """Update configuration from dictionary."""
        self._load_section_config(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {name: asdict(getattr(self, name)) for name in self.SECTIONS}

    def load_environment_overrides(self):
        """Load configuration overrides from environment variables."""
        if 'PLOTTER_LOG_LEVEL' in os.environ:
            self.logging.level = os.environ['PLOTTER_LOG_LEVEL'].upper()
        if 'PLOTTER_LOG_FILE' in os.environ:
            self.logging.log_file = os.environ['PLOTTER_LOG_FILE']

        if 'PLOTTER_SIMULATION' in os.environ:
            enabled = os.environ['PLOTTER_SIMULATION'].lower() in ('true', '1', 'yes', 'on')
            self.hardware.simulation_mode = enabled

        self.logger.info("Environment variable overrides applied")

    def build_bounds(self) -> MovementBounds:
        """Build validator bounds from the bounds section."""
        b = self.bounds
        return MovementBounds(
            min_x=b.min_x,
            max_x=b.max_x,
            min_y=b.min_y,
            max_y=b.max_y,
            paper_width=b.paper_width,
            paper_height=b.paper_height,
            safe_zones=[self._zone(z) for z in b.safe_zones],
            danger_zones=[self._zone(z) for z in b.danger_zones]
        )

    def build_calibration(self) -> Calibration:
        """Build the calibration, loading the calibration file when one is set."""
        c = self.calibration
        if c.calibration_file:
            return load_calibration(c.calibration_file)
        return Calibration(
            degrees_per_mm_x=c.degrees_per_mm_x,
            degrees_per_mm_y=c.degrees_per_mm_y,
            max_travel_x=c.max_travel_x,
            max_travel_y=c.max_travel_y
        )

    def build_safety_limits(self) -> Dict[str, SafetyLimits]:
        """Default per-axis limits with the configured overrides applied."""
        limits = default_limits()
        for port, overrides in self.safety.limits.items():
            if port not in limits:
                self.logger.warning(f"Ignoring safety limits for unknown port {port}")
                continue
            for key, value in overrides.items():
                setattr(limits[port], key, float(value))
        return limits

    @staticmethod
    def _zone(data: Dict[str, float]) -> Zone:
        return Zone(float(data['x1']), float(data['y1']), float(data['x2']), float(data['y2']))

    def _load_section_config(self, config_data: Dict[str, Any]):
        """Load configuration data into sections, ignoring unknown keys."""
        for name in self.SECTIONS:
            section_data = config_data.get(name)
            if not section_data:
                continue
            section = getattr(self, name)
            for key, value in section_data.items():
                if hasattr(section, key):
                    setattr(section, key, value)
                else:
                    self.logger.warning(f"Unknown setting {name}.{key} ignored")

    def _validate_config(self) -> bool:
        """Validate configuration values."""
        try:
            b = self.bounds
            if b.min_x >= b.max_x or b.min_y >= b.max_y:
                raise ValueError("Invalid travel bounds")
            if b.paper_width <= 0 or b.paper_height <= 0:
                raise ValueError("Paper size must be positive")
            for zone in b.safe_zones + b.danger_zones:
                if not all(key in zone for key in ('x1', 'y1', 'x2', 'y2')):
                    raise ValueError(f"Zone {zone} needs x1, y1, x2 and y2")

            c = self.calibration
            if not c.calibration_file and (c.degrees_per_mm_x <= 0 or c.degrees_per_mm_y <= 0):
                raise ValueError("Degrees per mm must be positive")

            e = self.executor
            if e.move_speed <= 0 or e.draw_speed <= 0 or e.pen_speed <= 0:
                raise ValueError("Executor speeds must be positive")
            if e.max_axis_speed <= 0:
                raise ValueError("Max axis speed must be positive")
            if e.bezier_segments < 1:
                raise ValueError("Bezier segments must be at least 1")

            if self.queue.command_timeout <= 0:
                raise ValueError("Command timeout must be positive")

            s = self.safety
            if s.poll_interval <= 0:
                raise ValueError("Safety poll interval must be positive")
            if s.violation_cooldown < 0:
                raise ValueError("Violation cool-down cannot be negative")
            limit_fields = {f.name for f in fields(SafetyLimits)}
            for port, overrides in s.limits.items():
                unknown = set(overrides) - limit_fields
                if unknown:
                    raise ValueError(f"Unknown safety limits for port {port}: {sorted(unknown)}")

            return True

        except ValueError as e:
            self.logger.error(f"Configuration validation failed: {e}")
            return False

    def _create_default_config(self) -> bool:
        """Write the current defaults out as the configuration file."""
        self.logger.info("Creating default configuration file")
        return self.save_config()
