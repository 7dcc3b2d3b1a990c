"""
This module defines the worker channel that executes conversion requests.

Each request gets its own `ExecutionContext`: a private temporary directory used
as the engine's virtual filesystem, one engine process, and the threads that
stream its output and wait for its exit. A context is created for exactly one
request and is torn down before control returns to the caller, whether the
conversion succeeded, the engine failed, or the caller cancelled it.

The engine is any program with FFmpeg's command-line shape. Virtual paths in the
request (e.g. "/in.webm") are rewritten to their location inside the context
directory just before launch.
"""

import shutil
import subprocess
import tempfile
import threading
from concurrent import futures
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional, Sequence

from loguru import logger

from ..config.common import (
    CONTEXT_DIR_PREFIX,
    READER_JOIN_TIMEOUT,
    TERMINATE_GRACE_SECONDS,
)
from ..domain.exceptions import (
    ConversionCancelledException,
    EngineStartException,
    EngineTimeoutException,
    MissingOutputException,
)
from ..domain.models import (
    ConversionRequest,
    ConversionResult,
    InputFile,
    StreamMessage,
    StreamName,
    StreamSink,
)
from ..utils.ffmpeg_utils import (
    default_engine_command,
    display_command,
    resolve_engine_command,
)


def split_sink(
    on_stdout: Optional[Callable[[str], None]] = None,
    on_stderr: Optional[Callable[[str], None]] = None,
) -> StreamSink:
    """Adapts one callback per stream into a single `StreamSink`."""

    def sink(message: StreamMessage):
        callback = on_stdout if message.stream is StreamName.STDOUT else on_stderr
        if callback is not None:
            callback(message.line)

    return sink


class ExecutionContext:
    """
    An isolated, single-use home for one engine run.

    Use it as a context manager; `close()` runs on every exit path and stops the
    engine process and every thread the context started.

    Attributes:
        root (Path): The context's private directory, once opened.
        exit_future (Future[int]): Resolves with the engine's exit code.
    """

    def __init__(
        self,
        engine_command: Sequence[str],
        grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ):
        self._engine_command = list(engine_command)
        self._resolved_command: Optional[List[str]] = None
        self._grace_seconds = grace_seconds
        self._root: Optional[Path] = None
        self._process: Optional[subprocess.Popen] = None
        self._threads: List[threading.Thread] = []
        self._staged_paths: Dict[str, Path] = {}
        self._lock = threading.Lock()
        self._opened = False
        self._closed = False
        self._cancelled = False
        self.exit_future: futures.Future = futures.Future()

    def __enter__(self) -> "ExecutionContext":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def root(self) -> Path:
        if self._root is None:
            raise RuntimeError("Execution context has not been opened.")
        return self._root

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_running(self) -> bool:
        """True while the engine process or any context thread is still alive."""
        process_alive = self._process is not None and self._process.poll() is None
        return process_alive or any(t.is_alive() for t in self._threads)

    def open(self):
        with self._lock:
            if self._cancelled:
                raise ConversionCancelledException("Conversion cancelled before start.")
            if self._opened:
                raise RuntimeError("Execution context cannot be reused.")
            self._opened = True
            self._root = Path(tempfile.mkdtemp(prefix=CONTEXT_DIR_PREFIX))
        logger.debug(f"Opened execution context at {self._root}")

    def map_path(self, virtual_path: str) -> Path:
        """Maps an absolute virtual path to its location inside the context."""
        pure = PurePosixPath(virtual_path)
        parts = pure.parts[1:]
        if not pure.is_absolute() or not parts or ".." in parts:
            raise ValueError(f"Invalid virtual path: {virtual_path!r}")
        return self.root.joinpath(*parts)

    def load_engine(self):
        """Locates the engine executable; must succeed before `start`."""
        self._resolved_command = resolve_engine_command(self._engine_command)
        logger.debug(f"Engine resolved to {self._resolved_command[0]}")

    def stage(self, input_file: InputFile):
        """
        Writes an input file into the context before the engine starts.

        Args:
            input_file (InputFile): Virtual path and contents to stage.

        Raises:
            ValueError: If the virtual path is not absolute or escapes the context.
        """
        path = self.map_path(input_file.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(input_file.data)
        self._staged_paths[input_file.path] = path
        logger.trace(f"Staged {len(input_file.data)} bytes at {input_file.path}")

    def start(
        self,
        arguments: Sequence[str],
        sink: Optional[StreamSink] = None,
        output_paths: Sequence[str] = (),
    ):
        """
        Launches the engine with `arguments`.

        Tokens equal to a staged input or a declared output path are replaced by
        the real location inside the context. Returns immediately; the exit code
        arrives through `exit_future`.

        Raises:
            EngineStartException: If the engine was not loaded or fails to launch.
            ConversionCancelledException: If the context was cancelled meanwhile.
        """
        if self._resolved_command is None:
            raise EngineStartException("Engine must be loaded before it is started.")

        path_map = {virtual: str(real) for virtual, real in self._staged_paths.items()}
        for virtual in output_paths:
            real = self.map_path(virtual)
            real.parent.mkdir(parents=True, exist_ok=True)
            path_map[virtual] = str(real)
        cmd_list = self._resolved_command + [path_map.get(a, a) for a in arguments]
        logger.debug(f"Executing engine command: {display_command(cmd_list)}")

        with self._lock:
            if self._cancelled or self._closed:
                raise ConversionCancelledException("Conversion cancelled before start.")
            try:
                self._process = subprocess.Popen(
                    cmd_list,
                    cwd=self.root,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    shell=False,
                )
            except OSError as e:
                raise EngineStartException(f"Failed to launch engine: {e}") from e

            self._spawn(self._pump, self._process.stdout, StreamName.STDOUT, sink)
            self._spawn(self._pump, self._process.stderr, StreamName.STDERR, sink)
            self._spawn(self._watch_exit)

    def _spawn(self, target, *args):
        thread = threading.Thread(
            target=target,
            args=args,
            name=f"ctx-{target.__name__.strip('_')}-{len(self._threads)}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    @staticmethod
    def _pump(pipe, stream: StreamName, sink: Optional[StreamSink]):
        with pipe:
            for raw_line in pipe:
                if sink is None:
                    continue
                try:
                    sink(StreamMessage(stream=stream, line=raw_line.rstrip("\n")))
                except Exception as e:
                    logger.error(f"Output sink raised on {stream.value}: {e}")

    def _watch_exit(self):
        try:
            exit_code = self._process.wait()
        except Exception as e:
            self.exit_future.set_exception(e)
            return
        self.exit_future.set_result(exit_code)

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        Blocks until the engine exits and both output streams are drained.

        Raises:
            EngineTimeoutException: If the engine is still running after `timeout` seconds.
            ConversionCancelledException: If the context was cancelled while running.
        """
        try:
            exit_code = self.exit_future.result(timeout=timeout)
        except futures.TimeoutError:
            raise EngineTimeoutException(
                f"Engine did not finish within {timeout} seconds."
            ) from None
        self._join_threads()
        if self._cancelled:
            raise ConversionCancelledException("Conversion was cancelled.")
        logger.debug(f"Engine exited with code {exit_code}")
        return exit_code

    def read_output(self, virtual_path: str) -> bytes:
        """
        Reads a file the engine wrote inside the context.

        Args:
            virtual_path (str): The declared output path.

        Returns:
            bytes: The file contents.

        Raises:
            MissingOutputException: If the engine did not create the file. The
                exception carries the exit code when the engine has finished.
        """
        path = self.map_path(virtual_path)
        if not path.is_file():
            exit_code = self.exit_future.result() if self.exit_future.done() else None
            raise MissingOutputException(virtual_path, exit_code)
        return path.read_bytes()

    def terminate(self):
        """Stops the engine process if it is still running."""
        process = self._process
        if process is None or process.poll() is not None:
            return
        logger.debug(f"Terminating engine process {process.pid}")
        process.terminate()
        try:
            process.wait(timeout=self._grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Engine process {process.pid} ignored terminate; killing it."
            )
            process.kill()
            process.wait()

    def cancel(self):
        """Forcibly abandons the run. Safe to call from any thread."""
        with self._lock:
            self._cancelled = True
        self.terminate()

    def _join_threads(self):
        for thread in self._threads:
            if thread is threading.current_thread():
                continue
            thread.join(READER_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning(f"Context thread {thread.name} did not stop in time.")

    def close(self):
        """Tears the context down. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.terminate()
        self._join_threads()
        if self._root is not None:
            try:
                shutil.rmtree(self._root)
            except OSError as e:
                logger.warning(f"Could not remove context directory {self._root}: {e}")
        logger.debug(f"Closed execution context {self._root}")


class ConversionJob:
    """
    Handle on a conversion running in the background.

    `future` resolves with the `ConversionResult`, or fails with the error that
    ended the run. `cancel()` tears the context down; a cancelled job never also
    produces a result.
    """

    def __init__(self, context: ExecutionContext):
        self.context = context
        self.future: futures.Future = futures.Future()
        self._outcome_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def _run(self, execute, request: ConversionRequest, sink, timeout):
        if not self.future.set_running_or_notify_cancel():
            self.context.cancel()
            return
        try:
            with self.context:
                result = execute(self.context, request, sink, timeout)
        except Exception as e:
            error = e
            result = None
        else:
            error = None
        with self._outcome_lock:
            if self.context.cancelled and not isinstance(error, ConversionCancelledException):
                error = ConversionCancelledException("Conversion was cancelled.")
            if error is not None:
                self.future.set_exception(error)
            else:
                self.future.set_result(result)

    def cancel(self) -> bool:
        """Returns False if the job had already finished."""
        with self._outcome_lock:
            if self.future.done():
                return False
            self.context.cancel()
        logger.info("Conversion job cancelled.")
        return True

    def result(self, timeout: Optional[float] = None) -> ConversionResult:
        return self.future.result(timeout=timeout)

    def done(self) -> bool:
        return self.future.done()

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)


class WorkerChannel:
    """
    Client for the conversion engine.

    Constructed once by the application and passed to whoever needs it. Every
    call creates a fresh `ExecutionContext`; nothing is pooled or shared between
    calls, so concurrent calls are independent.
    """

    def __init__(
        self,
        engine_command: Optional[Sequence[str]] = None,
        grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ):
        self.engine_command = (
            list(engine_command) if engine_command else default_engine_command()
        )
        self.grace_seconds = grace_seconds

    def new_context(self) -> ExecutionContext:
        """Returns a fresh, unopened context bound to this channel's engine."""
        return ExecutionContext(self.engine_command, grace_seconds=self.grace_seconds)

    def run(
        self,
        request: ConversionRequest,
        sink: Optional[StreamSink] = None,
        timeout: Optional[float] = None,
    ) -> ConversionResult:
        """Executes `request` and blocks until the result is available."""
        with self.new_context() as context:
            return self._execute(context, request, sink, timeout)

    def submit(
        self,
        request: ConversionRequest,
        sink: Optional[StreamSink] = None,
        timeout: Optional[float] = None,
    ) -> ConversionJob:
        """Executes `request` on a dedicated thread and returns a job handle."""
        job = ConversionJob(self.new_context())
        job._thread = threading.Thread(
            target=job._run,
            args=(self._execute, request, sink, timeout),
            name="conversion-job",
            daemon=True,
        )
        job._thread.start()
        return job

    @staticmethod
    def _execute(
        context: ExecutionContext,
        request: ConversionRequest,
        sink: Optional[StreamSink],
        timeout: Optional[float],
    ) -> ConversionResult:
        context.load_engine()
        for input_file in request.input_files:
            context.stage(input_file)
        context.start(request.arguments, sink, request.output_files)
        exit_code = context.wait(timeout)
        outputs = {path: context.read_output(path) for path in request.output_files}
        return ConversionResult(exit_code=exit_code, output_files=outputs)
