#!/usr/bin/env python3
"""
log_manager.py - Logging Management

Provides an asynchronous logging system for modules. Events are queued
and written by a background task once the manager is started, or written
straight away when it isn't.

Features:
- Non-blocking async logging through a queue
- Level-based filtering
- Structured logging support (JSON)
- Console and file outputs
- In-memory event history for inspection
- Per-module loggers
"""

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Imports
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

import asyncio
import datetime
import json
import sys
import time
import traceback
from collections import deque
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Union

import aiofiles

from .module_base import LogLevel

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Log Event Class
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

@dataclass
class LogEvent:
    """Container for log event data with metadata."""
    level: LogLevel
    message: str
    timestamp: float = field(default_factory=time.time)
    service: str = "service"
    module: str = "log_manager"
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert log event to dictionary for structured logging."""
        result = asdict(self)
        result['level'] = self.level.value
        result['timestamp_iso'] = datetime.datetime.fromtimestamp(
            self.timestamp
        ).isoformat()
        return result

    def to_str(self, fmt: Optional[str] = None) -> str:
        """Format log event as string using format string."""
        if fmt is None:
            fmt = "[{timestamp}] [{service}] [{module}] [{level}] {message}"

        timestamp_str = datetime.datetime.fromtimestamp(
            self.timestamp
        ).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        return fmt.format(
            timestamp=timestamp_str,
            service=self.service,
            module=self.module,
            level=self.level.value,
            message=self.message,
            **self.context
        )

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Exceptions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class LoggingError(Exception):
    """Base exception for logging errors."""
    pass

class LogFileError(LoggingError):
    """Error related to log file operations."""
    pass

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Log Manager
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class LogManager:
    """
    Asynchronous log manager with console, file and in-memory outputs.

    Every accepted event is kept in ``history`` (bounded), which makes the
    manager usable as a diagnostics sink in tests as well as a real logger.
    """

    def __init__(
        self,
        service_name: str = "service",
        log_level: Union[str, LogLevel] = LogLevel.INFO,
        log_file: Optional[Union[str, Path]] = None,
        json_format: bool = False,
        console_output: bool = True,
        log_format: Optional[str] = None,
        history_size: int = 1000,
        queue_size: int = 10000
    ):
        """
        Initialize log manager.

        Args:
            service_name: Name of the service for log identification
            log_level: Minimum log level to record
            log_file: File to append log lines to
            json_format: Whether to log in JSON format
            console_output: Whether to output logs to console
            log_format: Format string for text log lines
            history_size: Number of recent events kept in memory
            queue_size: Maximum number of events waiting to be written
        """
        self.service_name = service_name
        self.log_level = LogLevel.from_string(log_level) if isinstance(log_level, str) else log_level
        self.log_file = Path(log_file) if log_file else None
        self.json_format = json_format
        self.console_output = console_output
        self.log_format = log_format or "[{timestamp}] [{service}] [{module}] [{level}] {message}"

        self.history: Deque[LogEvent] = deque(maxlen=history_size)
        self.queue_size = queue_size

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._file_handle = None

    @property
    def running(self) -> bool:
        """Whether the background writer is active."""
        return self._worker is not None

    async def start(self) -> None:
        """Open the log file and start the background writer."""
        if self._worker:
            return

        if self.log_file:
            try:
                self.log_file.parent.mkdir(parents=True, exist_ok=True)
                self._file_handle = await aiofiles.open(self.log_file, 'a', encoding='utf-8')
            except OSError as e:
                raise LogFileError(f"Failed to open log file: {e}")

        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._worker = asyncio.create_task(self._process_queue())

        await self.log(
            LogLevel.VERBOSE,
            f"Log manager started - Level: {self.log_level.value}, "
            f"JSON: {self.json_format}, File: {self.log_file}"
        )

    async def stop(self) -> None:
        """Flush queued events, stop the writer and close the log file."""
        if not self._worker:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=2.0)
        except asyncio.TimeoutError:
            print("Log queue did not drain before shutdown", file=sys.stderr)

        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        self._queue = None

        if self._file_handle:
            await self._file_handle.close()
            self._file_handle = None

    async def _process_queue(self) -> None:
        """Write queued events until cancelled."""
        while True:
            event = await self._queue.get()
            try:
                await self._write_log_event(event)
            finally:
                self._queue.task_done()

    async def _write_log_event(self, event: LogEvent) -> None:
        """Write log event to configured outputs."""
        if self.json_format:
            line = json.dumps(event.to_dict(), default=str)
        else:
            line = event.to_str(self.log_format)

        if self._file_handle:
            try:
                await self._file_handle.write(line + "\n")
                await self._file_handle.flush()
            except OSError as e:
                print(f"Error writing log file: {e}", file=sys.stderr)

        if self.console_output:
            print(line, file=sys.stderr)

    def _should_log(self, level: LogLevel) -> bool:
        """Check if a log level should be logged."""
        return level.rank >= self.log_level.rank

    async def log(
        self,
        level: LogLevel,
        message: str,
        module: str = "log_manager",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log a message with the specified level.

        Args:
            level: Log level
            message: Log message
            module: Name of the module logging the message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        event = LogEvent(
            level=level,
            message=message,
            service=self.service_name,
            module=module,
            context=context or {}
        )
        self.history.append(event)

        if self._queue is None:
            await self._write_log_event(event)
            return

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            # Warnings and errors are never dropped
            if level.rank >= LogLevel.WARNING.rank:
                await self._write_log_event(event)

    async def verbose(self, message: str, module: str = "log_manager", context: Optional[Dict[str, Any]] = None) -> None:
        """Log at VERBOSE level."""
        await self.log(LogLevel.VERBOSE, message, module, context)

    async def info(self, message: str, module: str = "log_manager", context: Optional[Dict[str, Any]] = None) -> None:
        """Log at INFO level."""
        await self.log(LogLevel.INFO, message, module, context)

    async def warning(self, message: str, module: str = "log_manager", context: Optional[Dict[str, Any]] = None) -> None:
        """Log at WARNING level."""
        await self.log(LogLevel.WARNING, message, module, context)

    async def error(self, message: str, module: str = "log_manager", context: Optional[Dict[str, Any]] = None) -> None:
        """Log at ERROR level."""
        await self.log(LogLevel.ERROR, message, module, context)

    async def exception(self, exc: BaseException, message: Optional[str] = None, module: str = "log_manager") -> None:
        """Log an exception with traceback."""
        if message is None:
            message = f"Exception: {exc}"
        else:
            message = f"{message}: {exc}"

        tb_str = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        context = {
            'exception_type': exc.__class__.__name__,
            'traceback': tb_str
        }

        await self.error(message, module, context)

    def events(self, level: Optional[LogLevel] = None, module: Optional[str] = None) -> List[LogEvent]:
        """
        Get recorded events, optionally filtered.

        Args:
            level: Only events at exactly this level
            module: Only events logged by this module

        Returns:
            Matching events, oldest first
        """
        return [
            event for event in self.history
            if (level is None or event.level == level)
            and (module is None or event.module == module)
        ]

    def bind(self, module_name: str) -> 'ModuleLogger':
        """Get a logger that tags every event with a module name."""
        return ModuleLogger(self, module_name)

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Module Logger
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class ModuleLogger:
    """Logger for a specific module that delegates to a log manager."""

    def __init__(self, log_manager: LogManager, module_name: str):
        """
        Initialize module logger.

        Args:
            log_manager: Parent log manager
            module_name: Name of module for logging
        """
        self.log_manager = log_manager
        self.module_name = module_name

    async def log(self, level: LogLevel, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Log at the specified level."""
        await self.log_manager.log(level, message, self.module_name, context)

    async def verbose(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(LogLevel.VERBOSE, message, context)

    async def info(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(LogLevel.INFO, message, context)

    async def warning(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(LogLevel.WARNING, message, context)

    async def error(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(LogLevel.ERROR, message, context)

    async def exception(self, exc: BaseException, message: Optional[str] = None) -> None:
        """Log an exception with traceback."""
        await self.log_manager.exception(exc, message, self.module_name)

    def _should_log(self, level: LogLevel) -> bool:
        """Check if a log level should be logged."""
        return self.log_manager._should_log(level)

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Helper Functions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

def create_log_manager(
    service_name: str = "service",
    log_level: Union[str, LogLevel] = LogLevel.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_format: bool = False,
    console_output: bool = True
) -> LogManager:
    """
    Create a log manager with standard settings.

    Args:
        service_name: Service name for logging
        log_level: Minimum log level
        log_file: Log file path
        json_format: Whether to use JSON format
        console_output: Whether to output to console

    Returns:
        Configured LogManager instance
    """
    return LogManager(
        service_name=service_name,
        log_level=log_level,
        log_file=log_file,
        json_format=json_format,
        console_output=console_output
    )
