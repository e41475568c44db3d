"""
Pen Plotter Control - Main Application

Demonstration of the control core on simulated hardware:
- Configuration and logging setup
- Path planning from SVG path data or a saved sequence document
- Validated, queued execution with live safety monitoring
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from plotter_core import PlotterController, PlotterHardware, Settings
from plotter_core.exceptions import PlotterError
from plotter_core.sequence import Sequence
from plotter_core.utils.logging_config import setup_logging
from plotter_core.utils.notifications import Severity

# Small square with a curved lid, sized to stay inside the default axis limits
DEMO_PATH = "M 2 2 L 14 2 L 14 14 L 2 14 Z M 2 14 C 5 17 11 17 14 14"


class PlotterSystem:
    """Main system coordinator for the pen plotter."""

    def __init__(self, config_file: str = "config/plotter_config.yaml"):
        """Initialize the plotter system."""
        self.config_file = config_file
        self.logger = None

        self.settings: Optional[Settings] = None
        self.controller: Optional[PlotterController] = None

    async def initialize(self) -> bool:
        """Load settings, set up logging and connect the controller."""
        try:
            print("🚀 Initializing pen plotter control...")

            print("📋 Loading configuration...")
            self.settings = Settings(self.config_file)
            if not self.settings.load_config():
                print("❌ Failed to load configuration")
                return False

            self.settings.load_environment_overrides()

            print("📝 Setting up logging...")
            if not setup_logging(
                level=self.settings.logging.level,
                log_file=self.settings.logging.log_file,
                max_file_size_mb=self.settings.logging.max_file_size_mb,
                backup_count=self.settings.logging.backup_count,
                console_output=self.settings.logging.console_output,
                detailed_format=self.settings.logging.detailed_format
            ):
                print("❌ Failed to setup logging")
                return False

            self.logger = logging.getLogger(__name__)

            if not self.settings.hardware.simulation_mode:
                # Hub discovery happens outside this package; a connected hub
                # is handed in through PlotterHardware.from_hub
                self.logger.error("❌ No hub available; enable hardware.simulation_mode to run the demo")
                return False

            self.controller = PlotterController(self.settings, notify=self._on_notification)
            self.controller.add_state_callback(self._on_state_change)

            hardware = PlotterHardware.simulated(self.settings.hardware.simulated_time_scale)
            if not await self.controller.connect(hardware):
                return False

            self.controller.safety_monitor.add_safety_callback(self._on_safety_event)
            self.logger.info("✅ System initialization completed successfully")
            return True

        except PlotterError as e:
            if self.logger:
                self.logger.error(f"System initialization failed: {e}")
            else:
                print(f"❌ System initialization failed: {e}")
            return False

    async def run_demo(self, path_data: str = DEMO_PATH, sequence_file: str = None,
                       scale: float = 1.0, save_file: str = None) -> bool:
        """Plan (or load) a sequence and draw it."""
        try:
            if sequence_file:
                self.logger.info(f"📂 Loading sequence from {sequence_file}")
                with open(sequence_file, 'r') as f:
                    sequence = self.controller.load_sequence(f.read())
            else:
                self.logger.info("🧭 Planning sequence from path data")
                sequence = self.controller.plan(path_data, name="Demo", scale=scale)

            self._log_sequence(sequence)

            if save_file:
                with open(save_file, 'w') as f:
                    f.write(self.controller.planner.save_sequence(sequence))
                self.logger.info(f"💾 Sequence saved to {save_file}")

            await self.controller.execute_sequence(sequence, on_progress=self._on_progress)
            self._display_system_status()
            self.logger.info("🎉 Demonstration completed successfully!")
            return True

        except (PlotterError, OSError) as e:
            self.logger.error(f"Demo failed: {e}")
            return False

    def _log_sequence(self, sequence: Sequence):
        box = sequence.bounding_box
        self.logger.info(f"🗺️ {sequence}: {box.width:.1f} x {box.height:.1f}mm, "
                         f"{sequence.total_distance or 0:.1f}mm, ~{sequence.estimated_time or 0:.1f}s")

    def _display_system_status(self):
        """Display system status."""
        status = self.controller.get_status()
        self.logger.info("📊 System Status Report:")
        self.logger.info(f"  🔌 State: {status['state']}")

        queue = status.get('queue', {})
        self.logger.info(f"  📨 Queue: {queue.get('completed', 0)} completed, "
                         f"{queue.get('failed', 0)} failed, {queue.get('timed_out', 0)} timed out")

        position = status.get('position', {})
        self.logger.info(f"  📍 Position: x={position.get('x', 0):.1f}, y={position.get('y', 0):.1f}")

        safety = status.get('safety', {})
        self.logger.info(f"  🛡️ Safety: {safety.get('total_events', 0)} events, "
                         f"emergency_stop={safety.get('emergency_stop_active', False)}")

    def _on_progress(self, percent: float):
        self.logger.debug(f"🔄 Progress {percent:.0f}%")

    def _on_notification(self, message: str, severity: Severity):
        if severity is Severity.ERROR:
            self.logger.error(f"❌ {message}")
        else:
            self.logger.info(f"💬 {message}")

    def _on_state_change(self, old_state, new_state):
        self.logger.info(f"🔁 {old_state.value} -> {new_state.value}")

    def _on_safety_event(self, event):
        """Handle safety events."""
        self.logger.warning(f"🛡️ Safety Event: {event}")

    async def shutdown(self):
        """Disconnect the controller."""
        if self.logger:
            self.logger.info("🛑 Shutting down system...")
        if self.controller:
            await self.controller.disconnect()
        if self.logger:
            self.logger.info("✅ System shutdown completed")

    async def run(self, **demo_args) -> bool:
        """Run the complete system."""
        try:
            if not await self.initialize():
                return False
            return await self.run_demo(**demo_args)
        except asyncio.CancelledError:
            if self.logger:
                self.logger.info("👋 Task cancelled, shutting down")
            return False
        finally:
            await self.shutdown()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pen plotter control demo (simulated hardware)")
    parser.add_argument("--config", default="config/plotter_config.yaml",
                        help="Configuration file (YAML or JSON)")
    parser.add_argument("--path", default=DEMO_PATH, help="SVG path data to plot")
    parser.add_argument("--sequence", help="Sequence document to load instead of planning")
    parser.add_argument("--scale", type=float, default=1.0, help="Scale applied to path coordinates")
    parser.add_argument("--save", help="Write the planned sequence to this file")
    return parser.parse_args(argv)


async def run_system(args: argparse.Namespace) -> int:
    print("=" * 60)
    print("   Pen Plotter Control")
    print("=" * 60)

    system = PlotterSystem(args.config)
    success = await system.run(
        path_data=args.path,
        sequence_file=args.sequence,
        scale=args.scale,
        save_file=args.save
    )
    return 0 if success else 1


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    try:
        return asyncio.run(run_system(args))
    except KeyboardInterrupt:
        print("👋 Received Ctrl+C, shutting down")
        return 1


if __name__ == "__main__":
    sys.exit(main())
