"""
wkhtmltopdf Process Supervision

Converts HTML to PDF by driving the wkhtmltopdf binary over its standard streams.
HTML is written to stdin while the PDF is read from stdout, and stderr is read line
by line for logging and exit classification.
"""

import asyncio
import io
import os
import queue
import shlex
import shutil
import signal
import subprocess
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import (
    AbstractSet,
    BinaryIO,
    Callable,
    Deque,
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)

from dotenv import load_dotenv
from loguru import logger

from htmlpress.contexts.rendering.logger import (
    _log_debug,
    _log_error,
    _log_warning,
    log_process_start,
    log_renderer_line,
)
from htmlpress.contexts.rendering.outcome import BENIGN_FAILURES, classify_exit, raise_for_outcome
from htmlpress.contexts.settings.conversion_settings import ConversionSettings
from htmlpress.exceptions import (
    ConfigurationError,
    InvalidStateError,
    RenderIOError,
    RenderTimeoutError,
)

load_dotenv()

WKHTMLTOPDF_PATH = os.getenv("WKHTMLTOPDF_PATH")

COPY_CHUNK_SIZE = 64 * 1024
# stderr text is decoded leniently; wkhtmltopdf writes in the host locale
DIAGNOSTIC_ENCODING = "utf-8"
# Upper bound on waiting for log listeners to catch up at the end of a render
LOG_DRAIN_TIMEOUT_S = 1.0

LogListener = Callable[[str], None]


class RendererState(Enum):
    """Lifecycle of a converter instance. At most one process per instance."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class RenderRequest:
    """
    A single render submitted to the converter.

    Attributes:
        source: Binary stream with the HTML document (read to EOF)
        arguments: Serialized wkhtmltopdf arguments (without the trailing "- -")
        timeout: Maximum process lifetime, None for no limit
    """

    source: BinaryIO
    arguments: str
    timeout: Optional[timedelta] = None

    def __post_init__(self):
        if self.source is None:
            raise ConfigurationError("Render source stream must not be None")
        if self.arguments is None:
            raise ConfigurationError("Render arguments must not be None")
        if self.timeout is not None and self.timeout < timedelta(0):
            raise ConfigurationError(f"Execution timeout must not be negative: {self.timeout}")

    @classmethod
    def from_settings(cls, source: BinaryIO, settings: ConversionSettings) -> "RenderRequest":
        return cls(
            source=source,
            arguments=settings.to_arguments(),
            timeout=settings.execution_timeout,
        )


class _LogDispatcher:
    """Delivers renderer stderr lines to listeners on a thread of its own."""

    _STOP = object()

    def __init__(self, listeners: Iterable[LogListener]):
        self._listeners = list(listeners)
        self._queue: "queue.SimpleQueue" = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._run, name="wkhtmltopdf-log", daemon=True)
        self._thread.start()

    def publish(self, line: str) -> None:
        self._queue.put(line)

    def close(self, timeout: float = LOG_DRAIN_TIMEOUT_S) -> None:
        self._queue.put(self._STOP)
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            line = self._queue.get()
            if line is self._STOP:
                return
            log_renderer_line(line)
            for listener in self._listeners:
                try:
                    listener(line)
                except Exception:
                    logger.opt(exception=True).warning(f"Log listener {listener!r} raised")


def _kill_process_tree(process: subprocess.Popen) -> bool:
    """
    SIGKILL the renderer together with anything it forked.

    On POSIX the renderer leads its own session, so its process group also holds
    the children of a wrapper script that does not exec wkhtmltopdf. Windows only
    kills the direct child.

    Returns:
        True if something was still running and got killed
    """
    running = process.poll() is None
    if os.name == "nt":
        if running:
            process.kill()
        return running

    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # Group is gone; BSD kernels answer EPERM when only zombies remain
        if running:
            process.kill()
        return running
    return True


class _Watchdog:
    """Kills the process tree once its wall-clock deadline passes."""

    def __init__(self, process: subprocess.Popen, timeout: timedelta):
        self.fired = False
        self._process = process
        self._deadline = time.monotonic() + timeout.total_seconds()
        self._timer = threading.Timer(timeout.total_seconds(), self._fire)
        self._timer.daemon = True
        self._timer.start()

    def remaining(self) -> float:
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        self._timer.cancel()

    def settle(self) -> bool:
        """Stop the timer and report whether it killed anything. Final once returned."""
        self._timer.cancel()
        self._timer.join()
        return self.fired

    def _fire(self) -> None:
        pid = self._process.pid
        if _kill_process_tree(self._process):
            self.fired = True
            _log_warning(f"Execution timeout reached, killed wkhtmltopdf (pid {pid})")


class HtmlToPdfConverter:
    """
    HTML to PDF converter backed by a wkhtmltopdf process.

    One instance runs at most one process at a time; a second render started
    while one is in flight fails with InvalidStateError. After any outcome the
    instance is idle again and can be reused.

    Attributes:
        executable: Absolute path of the wkhtmltopdf binary
        benign_failures: Last stderr lines that make exit code 1 a success

    Example:
        converter = HtmlToPdfConverter("/usr/local/bin/wkhtmltopdf")
        converter.add_log_listener(print)
        pdf = converter.convert("<h1>Hello</h1>", ConversionSettings(quiet=False))
    """

    def __init__(
        self,
        executable: Union[str, Path],
        benign_failures: Optional[Iterable[str]] = None,
    ):
        if executable is None:
            raise ConfigurationError("wkhtmltopdf executable path must not be None")

        executable = Path(executable).resolve()
        if not executable.is_file():
            raise ConfigurationError(f"wkhtmltopdf executable file not found at path '{executable}'.")

        self.executable = executable
        self.benign_failures: AbstractSet[str] = (
            BENIGN_FAILURES | frozenset(benign_failures) if benign_failures else BENIGN_FAILURES
        )

        self._state = RendererState.IDLE
        self._state_lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._log_listeners: List[LogListener] = []

    @classmethod
    def from_env(cls, **kwargs) -> "HtmlToPdfConverter":
        """Locate wkhtmltopdf via WKHTMLTOPDF_PATH, falling back to PATH lookup."""
        candidate = WKHTMLTOPDF_PATH or shutil.which("wkhtmltopdf")
        if not candidate:
            raise ConfigurationError(
                "wkhtmltopdf not found. Set WKHTMLTOPDF_PATH or add wkhtmltopdf to PATH."
            )
        return cls(candidate, **kwargs)

    @property
    def state(self) -> RendererState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is RendererState.RUNNING

    def add_log_listener(self, listener: LogListener) -> None:
        """
        Register a callback for every non-empty stderr line of the renderer.

        Callbacks run on a dispatcher thread, never on the I/O path. Disable
        ConversionSettings.quiet to receive wkhtmltopdf's progress messages.
        """
        self._log_listeners.append(listener)

    def remove_log_listener(self, listener: LogListener) -> None:
        self._log_listeners.remove(listener)

    # ------------------------------------------------------------------ #
    # Public conversion API
    # ------------------------------------------------------------------ #

    def convert(
        self,
        html: Optional[str],
        settings: Optional[ConversionSettings] = None,
        encoding: str = "utf-8",
    ) -> bytes:
        """
        Generate a PDF from an HTML string.

        Args:
            html: HTML content; None or "" returns b"" without starting wkhtmltopdf
            settings: Conversion settings (default: ConversionSettings.create_default())
            encoding: Encoding used to hand the HTML to wkhtmltopdf

        Returns:
            PDF bytes
        """
        if settings is None:
            settings = ConversionSettings.create_default()

        if not html:
            return b""

        source = io.BytesIO(html.encode(encoding))
        sink = io.BytesIO()
        self.render(RenderRequest.from_settings(source, settings), sink)
        return sink.getvalue()

    def convert_stream(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        settings: Optional[ConversionSettings] = None,
    ) -> None:
        """
        Generate a PDF from an HTML stream into an output stream.

        An empty source writes nothing and starts no process.
        """
        if source is None:
            raise ConfigurationError("Input stream must not be None")
        if sink is None:
            raise ConfigurationError("Output stream must not be None")
        if settings is None:
            settings = ConversionSettings.create_default()

        self.render(RenderRequest.from_settings(source, settings), sink)

    async def convert_async(
        self,
        html: Optional[str],
        settings: Optional[ConversionSettings] = None,
        encoding: str = "utf-8",
    ) -> bytes:
        """convert() on a worker thread, for use inside an event loop."""
        return await asyncio.to_thread(self.convert, html, settings, encoding)

    async def convert_stream_async(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        settings: Optional[ConversionSettings] = None,
    ) -> None:
        """convert_stream() on a worker thread, for use inside an event loop."""
        await asyncio.to_thread(self.convert_stream, source, sink, settings)

    def render(self, request: RenderRequest, sink: BinaryIO) -> None:
        """
        Run one wkhtmltopdf process for a request, streaming its PDF into sink.

        Raises:
            InvalidStateError: Another render is in flight on this instance
            ConfigurationError: The argument string cannot be tokenized
            RenderTimeoutError: The process outlived request.timeout and was killed
            RendererProcessError: Non-zero exit not covered by benign_failures
            RenderIOError: Reading the source or copying to or from the process failed
        """
        with self._running():
            try:
                first_chunk = request.source.read(COPY_CHUNK_SIZE)
            except (OSError, ValueError) as e:
                raise RenderIOError(f"reading HTML input failed: {e}", e) from e
            if not first_chunk:
                _log_debug("Empty input, wkhtmltopdf not started")
                return
            self._invoke(request, first_chunk, sink)

    # ------------------------------------------------------------------ #
    # Process lifecycle
    # ------------------------------------------------------------------ #

    @contextmanager
    def _running(self) -> Iterator[None]:
        with self._state_lock:
            if self._state is RendererState.RUNNING:
                raise InvalidStateError("wkhtmltopdf process has already started")
            self._state = RendererState.RUNNING
        try:
            yield
        finally:
            self._ensure_process_stopped()
            with self._state_lock:
                self._state = RendererState.IDLE

    def _build_command(self, arguments: str) -> Union[str, List[str]]:
        # Windows takes a command line; POSIX needs argv tokens
        if os.name == "nt":
            return f'"{self.executable}" {arguments} - -'
        try:
            tokens = shlex.split(arguments)
        except ValueError as e:
            raise ConfigurationError(f"Cannot parse wkhtmltopdf arguments {arguments!r}: {e}") from e
        return [str(self.executable), *tokens, "-", "-"]

    def _spawn(self, arguments: str) -> subprocess.Popen:
        command = self._build_command(arguments)
        extra = {}
        if os.name == "nt":
            extra["creationflags"] = subprocess.CREATE_NO_WINDOW
        else:
            # Own process group, so a timeout also reaches whatever a wrapper script forks
            extra["start_new_session"] = True
        try:
            return subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # wkhtmltopdf resolves its own resources relative to its directory
                cwd=self.executable.parent,
                **extra,
            )
        except OSError as e:
            raise RenderIOError(f"could not start {self.executable}", e) from e

    def _invoke(self, request: RenderRequest, first_chunk: bytes, sink: BinaryIO) -> None:
        log_process_start(self.executable, request.arguments, request.timeout)
        start_time = time.time()

        process = self._process = self._spawn(request.arguments)

        watchdog = _Watchdog(process, request.timeout) if request.timeout is not None else None
        dispatcher = _LogDispatcher(self._log_listeners)
        input_errors: List[BaseException] = []
        last_lines: Deque[str] = deque(maxlen=1)

        stderr_thread = threading.Thread(
            target=self._read_diagnostics,
            args=(process.stderr, dispatcher, last_lines),
            name="wkhtmltopdf-stderr",
            daemon=True,
        )
        stdin_thread = threading.Thread(
            target=self._write_input,
            args=(process.stdin, first_chunk, request.source, input_errors),
            name="wkhtmltopdf-stdin",
            daemon=True,
        )

        try:
            stderr_thread.start()
            stdin_thread.start()

            output_error: Optional[BaseException] = None
            try:
                shutil.copyfileobj(process.stdout, sink, COPY_CHUNK_SIZE)
            except (OSError, ValueError) as e:
                output_error = e
                # Nobody drains stdout any more; unblock the renderer and the writer
                self._stop_process(process)

            stdin_thread.join()

            exit_code = self._wait_for_exit(process, watchdog, request.timeout)
            stderr_thread.join()

            # The watchdog also covers output held open by a descendant after exit
            if watchdog is not None and watchdog.settle():
                raise RenderTimeoutError(request.timeout)

            _log_debug(f"wkhtmltopdf exited with code {exit_code} ({time.time() - start_time:.2f}s)")

            if output_error is not None:
                raise RenderIOError(
                    f"reading PDF output failed: {output_error}", output_error
                ) from output_error

            last_line = last_lines[-1] if last_lines else None
            outcome = classify_exit(exit_code, last_line, self.benign_failures)
            if outcome.benign:
                _log_warning(f"Accepted exit code {exit_code}: {outcome.message}")
            elif not outcome.success:
                _log_error(f"wkhtmltopdf failed with exit code {exit_code}: {outcome.message}")
            raise_for_outcome(outcome)

            if input_errors:
                error = input_errors[0]
                raise RenderIOError(f"writing HTML input failed: {error}", error) from error
        finally:
            if watchdog is not None:
                watchdog.cancel()
            self._stop_process(process)
            stdin_thread.join(LOG_DRAIN_TIMEOUT_S)
            stderr_thread.join(LOG_DRAIN_TIMEOUT_S)
            dispatcher.close()

    def _wait_for_exit(
        self,
        process: subprocess.Popen,
        watchdog: Optional["_Watchdog"],
        timeout: Optional[timedelta],
    ) -> int:
        if watchdog is None:
            return process.wait()

        try:
            return process.wait(timeout=watchdog.remaining())
        except subprocess.TimeoutExpired:
            self._stop_process(process)
            raise RenderTimeoutError(timeout) from None

    @staticmethod
    def _write_input(
        stdin: BinaryIO, first_chunk: bytes, source: BinaryIO, errors: List[BaseException]
    ) -> None:
        try:
            stdin.write(first_chunk)
            shutil.copyfileobj(source, stdin, COPY_CHUNK_SIZE)
            stdin.flush()
        except Exception as e:
            errors.append(e)
        finally:
            # EOF on stdin is what makes wkhtmltopdf start rendering
            try:
                stdin.close()
            except OSError as e:
                if not errors:
                    errors.append(e)

    @staticmethod
    def _read_diagnostics(
        stderr: BinaryIO, dispatcher: _LogDispatcher, last_lines: Deque[str]
    ) -> None:
        # Universal newlines: progress updates end in a bare "\r"
        reader = io.TextIOWrapper(stderr, encoding=DIAGNOSTIC_ENCODING, errors="replace")
        try:
            for raw_line in reader:
                line = raw_line.rstrip("\n")
                if line:
                    last_lines.append(line)
                    dispatcher.publish(line)
        except (OSError, ValueError) as e:
            # Pipe closed underneath us during teardown
            _log_debug(f"stderr reader stopped: {e}")

    @staticmethod
    def _stop_process(process: subprocess.Popen) -> None:
        _kill_process_tree(process)
        process.wait()

    def _ensure_process_stopped(self) -> None:
        """Kill the renderer if still alive and release its handle. Safe to repeat."""
        process, self._process = self._process, None
        if process is None:
            return

        self._stop_process(process)
        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is None or stream.closed:
                continue
            try:
                stream.close()
            except BrokenPipeError as e:
                # stdin with unflushed bytes; the reader is already gone
                _log_debug(f"Discarded unsent input on close: {e}")
