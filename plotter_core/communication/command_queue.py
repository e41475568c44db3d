"""
Command Queue for the plotter's physical link

Serializes every hardware operation so that at most one is in flight at
any time, in submission order, no matter how many callers submit work.
"""

import asyncio
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from ..exceptions import CommandCancelled, CommandTimeout

DEFAULT_COMMAND_TIMEOUT = 5.0  # seconds

Operation = Callable[[], Awaitable[Any]]


@dataclass
class QueuedCommand:
    """A unit of queued work and the future its submitter is waiting on."""
    command_id: int
    name: str
    operation: Operation
    future: asyncio.Future
    timeout: float = DEFAULT_COMMAND_TIMEOUT
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return f"QueuedCommand({self.command_id}, {self.name})"


class CommandQueue:
    """
    Single-flight FIFO dispatcher for async hardware operations.

    Features:
    - Strict submission order across all callers
    - Per-command timeout that rejects the caller without stalling the queue
    - Failures reported only to the submitting caller
    - Clearing rejects not-yet-started commands with CommandCancelled
    """

    def __init__(self, default_timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.default_timeout = default_timeout

        self._queue: Deque[QueuedCommand] = deque()
        self._executing = False
        self._current: Optional[QueuedCommand] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._ids = itertools.count(1)

        self._stats = {
            'submitted': 0,
            'completed': 0,
            'failed': 0,
            'timed_out': 0,
            'cancelled': 0
        }

        self.logger = logging.getLogger(__name__)

    @property
    def is_executing(self) -> bool:
        """True while a command is in flight."""
        return self._executing

    @property
    def pending_count(self) -> int:
        """Number of commands waiting to start."""
        return len(self._queue)

    @property
    def current_command(self) -> Optional[QueuedCommand]:
        return self._current

    def add(self, operation: Operation, timeout: float = None,
            name: str = None) -> asyncio.Future:
        """
        Queue an operation.

        Args:
            operation: Zero-argument callable returning an awaitable
            timeout: Seconds before the caller's handle rejects (default queue timeout)
            name: Label used in logs and errors

        Returns:
            asyncio.Future: Settles with the operation's own result or exception
        """
        loop = asyncio.get_running_loop()
        command_id = next(self._ids)
        command = QueuedCommand(
            command_id=command_id,
            name=name or f"command_{command_id}",
            operation=operation,
            future=loop.create_future(),
            timeout=timeout if timeout is not None else self.default_timeout
        )

        self._queue.append(command)
        self._stats['submitted'] += 1
        self.logger.debug(f"Queued {command} ({len(self._queue)} pending)")

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())

        return command.future

    def clear(self) -> int:
        """
        Drop every command that has not started yet.

        The in-flight command, if any, is left to finish.

        Returns:
            int: Number of commands rejected
        """
        cancelled = 0
        while self._queue:
            command = self._queue.popleft()
            if not command.future.done():
                command.future.set_exception(CommandCancelled(command.name))
                cancelled += 1

        self._stats['cancelled'] += cancelled
        if cancelled:
            self.logger.info(f"Command queue cleared, {cancelled} pending commands cancelled")
        return cancelled

    async def wait_idle(self):
        """Wait until the queue is empty and nothing is in flight."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})

    async def stop(self):
        """Clear pending work and stop the drain task."""
        self.clear()
        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None

    def get_stats(self) -> Dict[str, Any]:
        """Get queue statistics."""
        stats = self._stats.copy()
        stats['pending'] = len(self._queue)
        stats['executing'] = self._executing
        return stats

    async def _drain(self):
        """Run queued commands one at a time until the queue is empty."""
        while self._queue:
            command = self._queue.popleft()
            if command.future.done():
                # Submitter gave up before the command started
                continue

            self._executing = True
            self._current = command
            try:
                await self._execute(command)
            finally:
                self._executing = False
                self._current = None

    async def _execute(self, command: QueuedCommand):
        """Run one command and settle its future."""
        try:
            result = await asyncio.wait_for(command.operation(), timeout=command.timeout)
        except asyncio.TimeoutError:
            self._stats['timed_out'] += 1
            self.logger.error(f"Command {command.name} timed out after {command.timeout}s")
            if not command.future.done():
                command.future.set_exception(CommandTimeout(command.name, command.timeout))
        except asyncio.CancelledError:
            if not command.future.done():
                command.future.set_exception(CommandCancelled(command.name))
            raise
        except Exception as e:
            self._stats['failed'] += 1
            self.logger.error(f"Command {command.name} failed: {e}")
            if not command.future.done():
                command.future.set_exception(e)
        else:
            self._stats['completed'] += 1
            if not command.future.done():
                command.future.set_result(result)
