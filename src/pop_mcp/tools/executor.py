"""Process executor for running Pop CLI commands.

Commands are spawned directly from their argument vector (never through a
shell), with stdin closed so that an interactive prompt fails fast instead
of waiting for input nobody will type.
"""

import asyncio
import logging
import os
import shutil
import signal
import subprocess
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from pop_mcp.config import DEFAULT_OUTPUT_LIMIT

from .base import CommandSpec, ExecutionRecord, LaunchWatch

logger = logging.getLogger(__name__)

# Read size for draining child output
_CHUNK_SIZE = 64 * 1024


class _CaptureBudget:
    """Byte budget shared by a command's stdout and stderr readers."""

    def __init__(self, limit: int) -> None:
        self.remaining = limit
        self.overflowed = False

    def take(self, size: int) -> int:
        """Reserve up to size bytes; returns how many may be kept."""
        allowed = min(size, self.remaining)
        self.remaining -= allowed
        if allowed < size:
            self.overflowed = True
        return allowed


class ProcessExecutor:
    """Runs CommandSpecs as child processes and records what happened.

    The executor holds no per-call state, so one instance can serve any
    number of concurrent calls.
    """

    def __init__(
        self,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        log_dir: Path | str | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            output_limit: Byte ceiling for combined stdout+stderr per command
            log_dir: Where launch-mode output logs are written (default: temp dir)
        """
        self._output_limit = output_limit
        self._log_dir = Path(log_dir) if log_dir else Path(tempfile.gettempdir())

    @property
    def output_limit(self) -> int:
        """Byte ceiling for captured output."""
        return self._output_limit

    async def run(self, spec: CommandSpec) -> ExecutionRecord:
        """Run a command to completion (or to readiness, for launches).

        Args:
            spec: The command to run

        Returns:
            ExecutionRecord; failures to start are recorded in spawn_error

        Raises:
            asyncio.CancelledError: If the calling task is cancelled; the
                child is killed before this propagates
        """
        problem = self._preflight(spec)
        if problem is not None:
            logger.debug("Not starting %s: %s", spec.display(), problem)
            return ExecutionRecord(spawn_error=problem, command=spec.display())

        if spec.launch is not None:
            return await self._launch(spec, spec.launch)
        return await self._run_to_completion(spec)

    def _preflight(self, spec: CommandSpec) -> str | None:
        """Check what can be checked before spawning."""
        if spec.cwd is not None and not Path(spec.cwd).is_dir():
            return f"Working directory does not exist: {spec.cwd}"
        for program in spec.requires:
            if shutil.which(program) is None:
                return f"Required program '{program}' not found in PATH"
        return None

    async def _run_to_completion(self, spec: CommandSpec) -> ExecutionRecord:
        start_time = time.perf_counter()
        logger.debug("Running: %s", spec.display())

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=spec.cwd,
                env=self._get_env(spec),
                start_new_session=True,
            )
        except FileNotFoundError:
            return ExecutionRecord(
                spawn_error=f"Command '{spec.program}' not found",
                command=spec.display(),
            )
        except PermissionError:
            return ExecutionRecord(
                spawn_error=f"Permission denied executing '{spec.program}'",
                command=spec.display(),
            )
        except OSError as e:
            return ExecutionRecord(
                spawn_error=f"Failed to execute '{spec.program}': {e}",
                command=spec.display(),
            )

        budget = _CaptureBudget(self._output_limit)
        stdout = bytearray()
        stderr = bytearray()
        timed_out = False

        # Output past the ceiling ends the run
        def on_overflow() -> None:
            if process.returncode is None:
                self._signal_group(process.pid)

        pipeline = asyncio.gather(
            self._drain(process.stdout, stdout, budget, on_overflow),  # type: ignore[arg-type]
            self._drain(process.stderr, stderr, budget, on_overflow),  # type: ignore[arg-type]
            process.wait(),
        )
        try:
            if spec.timeout is not None:
                await asyncio.wait_for(pipeline, timeout=spec.timeout)
            else:
                await pipeline
        except TimeoutError:
            timed_out = True
            await self._kill(process)
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Finished: %s (exit=%s, %.0fms)", spec.display(), process.returncode, duration_ms
        )

        return ExecutionRecord(
            stdout=bytes(stdout),
            stderr=bytes(stderr),
            exit_code=process.returncode,
            truncated=budget.overflowed,
            timed_out=timed_out,
            command=spec.display(),
            duration_ms=duration_ms,
        )

    async def _launch(self, spec: CommandSpec, watch: LaunchWatch) -> ExecutionRecord:
        """Start a long-running program and wait until it reports readiness.

        Output goes to a log file rather than a pipe so the program can keep
        writing after we stop reading. On readiness the program is left
        running in its own session and the log is kept (its path is in the
        record); otherwise the log is removed before returning.
        """
        start_time = time.perf_counter()
        log_path = self._log_dir / f"pop-mcp-launch-{time.time_ns()}.log"
        logger.debug("Launching: %s (log: %s)", spec.display(), log_path)

        detached = False
        try:
            try:
                with open(log_path, "ab") as log_file:
                    process = subprocess.Popen(
                        spec.argv,
                        stdin=subprocess.DEVNULL,
                        stdout=log_file,
                        stderr=subprocess.STDOUT,
                        cwd=spec.cwd,
                        env=self._get_env(spec),
                        start_new_session=True,
                    )
            except FileNotFoundError:
                return ExecutionRecord(
                    spawn_error=f"Command '{spec.program}' not found",
                    command=spec.display(),
                )
            except PermissionError:
                return ExecutionRecord(
                    spawn_error=f"Permission denied executing '{spec.program}'",
                    command=spec.display(),
                )
            except OSError as e:
                return ExecutionRecord(
                    spawn_error=f"Failed to execute '{spec.program}': {e}",
                    command=spec.display(),
                )

            loop = asyncio.get_running_loop()
            deadline = None if spec.timeout is None else loop.time() + spec.timeout

            def record(**kwargs) -> ExecutionRecord:
                output, truncated = self._read_log(log_path)
                return ExecutionRecord(
                    stdout=output,
                    truncated=truncated,
                    command=spec.display(),
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    **kwargs,
                )

            try:
                while True:
                    output, _ = self._read_log(log_path)
                    text = output.decode("utf-8", errors="replace")

                    if any(marker in text for marker in watch.abort_markers):
                        self._kill_popen(process)
                        return record(exit_code=process.returncode)

                    ready = watch.ready(text)
                    if ready is not None:
                        logger.info("Launch ready (pid %s): %s", process.pid, ready.source)
                        detached = True
                        return record(
                            exit_code=None,
                            pid=process.pid,
                            detached=True,
                            ready=ready,
                            log_file=str(log_path),
                        )

                    if process.poll() is not None:
                        return record(exit_code=process.returncode)

                    if deadline is not None and loop.time() >= deadline:
                        self._kill_popen(process)
                        return record(exit_code=process.returncode, timed_out=True)

                    await asyncio.sleep(watch.poll_interval)
            except asyncio.CancelledError:
                self._kill_popen(process)
                raise
        finally:
            if not detached:
                log_path.unlink(missing_ok=True)

    def _read_log(self, path: Path) -> tuple[bytes, bool]:
        """Read a launch log up to the output ceiling."""
        try:
            with open(path, "rb") as f:
                data = f.read(self._output_limit + 1)
        except OSError:
            return b"", False
        if len(data) > self._output_limit:
            return data[: self._output_limit], True
        return data, False

    @staticmethod
    async def _drain(
        stream: asyncio.StreamReader,
        sink: bytearray,
        budget: _CaptureBudget,
        on_overflow: Callable[[], None],
    ) -> None:
        """Read a stream to EOF, keeping only what the budget allows."""
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return
            keep = budget.take(len(chunk))
            if keep:
                sink.extend(chunk[:keep])
            if budget.overflowed:
                on_overflow()

    @staticmethod
    def _signal_group(pid: int) -> None:
        """SIGKILL a child's session, including anything it spawned."""
        try:
            os.killpg(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    @classmethod
    async def _kill(cls, process: asyncio.subprocess.Process) -> None:
        """Kill a child and its session, then reap it."""
        if process.returncode is None:
            cls._signal_group(process.pid)
        await process.wait()

    @staticmethod
    def _kill_popen(process: subprocess.Popen) -> None:
        """Kill a launched child's whole session and reap it."""
        if process.poll() is None:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        process.wait()

    def _get_env(self, spec: CommandSpec) -> dict[str, str] | None:
        """Get environment variables for subprocess.

        Merges the command's extra variables with the current environment.
        """
        if not spec.env:
            return None
        env = os.environ.copy()
        env.update(spec.env)
        return env


def terminate_process(pid: int, timeout: float = 5.0) -> bool:
    """Stop a detached launch and everything in its session.

    Sends SIGTERM to the process group, then SIGKILL if it is still alive
    after timeout seconds.

    Args:
        pid: Process id returned in a detached ExecutionRecord
        timeout: Seconds to wait before escalating to SIGKILL

    Returns:
        True if a signal was delivered, False if the process was already gone
    """
    try:
        os.killpg(pid, signal.SIGTERM)
    except ProcessLookupError:
        return False

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        _reap(pid)
        try:
            os.killpg(pid, 0)
        except ProcessLookupError:
            return True
        time.sleep(0.05)

    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    return True


def _reap(pid: int) -> None:
    """Collect the exit status of a launch we spawned, if it has exited."""
    try:
        os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        pass


def create_executor(output_limit: int = DEFAULT_OUTPUT_LIMIT) -> ProcessExecutor:
    """Factory function to create a process executor.

    Args:
        output_limit: Byte ceiling for combined stdout+stderr

    Returns:
        Configured ProcessExecutor instance
    """
    return ProcessExecutor(output_limit=output_limit)
