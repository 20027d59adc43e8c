from __future__ import annotations

import asyncio
import contextlib
import os
import signal

import structlog

from .config import InterpreterProfile
from .staging import StagedUnit
from .types import ExecutionOutcome, OutcomeKind

logger = structlog.get_logger(__name__)

_POSIX = os.name == "posix"
_READ_CHUNK_BYTES = 64 * 1024
DEFAULT_DRAIN_GRACE_SECONDS = 2.0


def _kill_process_tree(proc: asyncio.subprocess.Process) -> None:
    """Force-kill the child and everything in its process group.

    Example:
        ```python
        _kill_process_tree(proc)
        ```
    """
    if _POSIX:
        # The child leads its own session, so its pid is also the group id.
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(proc.pid, signal.SIGKILL)
        return
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


async def _collect(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    """Append everything read from a stream to `sink` until EOF.

    Example:
        ```python
        await _collect(proc.stdout, buffer)
        ```
    """
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            return
        sink.extend(chunk)


async def _open_output_reader(read_fd: int) -> tuple[asyncio.StreamReader, asyncio.ReadTransport]:
    """Attach a stream reader to the read end of the child's output pipe.

    The returned transport owns `read_fd` and closes it on EOF or `close()`.

    Example:
        ```python
        stream, transport = await _open_output_reader(read_fd)
        ```
    """
    loop = asyncio.get_running_loop()
    stream = asyncio.StreamReader(limit=_READ_CHUNK_BYTES)
    pipe = os.fdopen(read_fd, "rb", buffering=0)
    try:
        transport, _ = await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(stream), pipe)
    except BaseException:
        pipe.close()
        raise
    return stream, transport


def _decode(raw: bytearray) -> str:
    """Decode captured bytes, replacing anything that is not UTF-8.

    Example:
        ```python
        text = _decode(bytearray(b"5\\n"))
        ```
    """
    return raw.decode("utf-8", errors="replace")


class BatchEngine:
    """Run staged code through an external interpreter in batch mode.

    Example:
        ```python
        engine = BatchEngine(profile=MATLAB_PROFILE, executable="/opt/matlab/bin/matlab")
        ```
    """

    def __init__(
        self,
        *,
        profile: InterpreterProfile,
        executable: str | None = None,
        drain_grace_seconds: float = DEFAULT_DRAIN_GRACE_SECONDS,
    ) -> None:
        """Bind the engine to an interpreter profile and executable.

        An empty or missing executable falls back to the profile's bare
        command name, resolved through PATH at launch time.

        Example:
            ```python
            engine = BatchEngine(profile=MATLAB_PROFILE)
            ```
        """
        cleaned = (executable or "").strip()
        self._profile = profile
        self._executable = cleaned or profile.command_name
        self._drain_grace_seconds = drain_grace_seconds

    @property
    def profile(self) -> InterpreterProfile:
        """Return the interpreter profile.

        Example:
            ```python
            assert engine.profile.name == "matlab"
            ```
        """
        return self._profile

    @property
    def executable(self) -> str:
        """Return the executable path or command name used at launch.

        Example:
            ```python
            print(engine.executable)
            ```
        """
        return self._executable

    async def execute(self, unit: StagedUnit, timeout_seconds: float) -> ExecutionOutcome:
        """Run one staged unit and race its exit against a wall-clock deadline.

        Example:
            ```python
            outcome = await engine.execute(unit, timeout_seconds=30)
            ```
        """
        cmd = self._profile.command(self._executable, name=unit.name, path=str(unit.path))
        # On POSIX the output pipe is owned here rather than by the subprocess
        # transport, so proc.wait() resolves on exit even while descendants
        # keep the write end open.
        read_fd, write_fd = os.pipe() if _POSIX else (-1, -1)
        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    cwd=str(unit.workdir),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=write_fd if _POSIX else asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    start_new_session=_POSIX,
                )
            finally:
                if _POSIX:
                    os.close(write_fd)
        except OSError as exc:
            if _POSIX:
                os.close(read_fd)
            logger.warning(
                "interpreter_launch_failed",
                executable=self._executable,
                error=str(exc),
            )
            return ExecutionOutcome(OutcomeKind.LAUNCH_FAILED, reason=str(exc))

        logger.debug("interpreter_launched", pid=proc.pid, unit=unit.name)
        captured = bytearray()
        pipe_transport: asyncio.ReadTransport | None = None
        reader: asyncio.Future[None] | None = None
        stream: asyncio.StreamReader | None
        try:
            if _POSIX:
                stream, pipe_transport = await _open_output_reader(read_fd)
            else:
                stream = proc.stdout
            reader = asyncio.ensure_future(_collect(stream, captured))
            try:
                await asyncio.wait_for(proc.wait(), timeout=timeout_seconds)
            except TimeoutError:
                await self._reap(proc)
                await self._drain(reader, proc)
                logger.warning(
                    "execution_timed_out",
                    unit=unit.name,
                    timeout_seconds=timeout_seconds,
                )
                return ExecutionOutcome(
                    OutcomeKind.TIMED_OUT,
                    output=_decode(captured),
                    returncode=proc.returncode,
                )
            await self._drain(reader, proc)
            logger.debug("interpreter_exited", unit=unit.name, returncode=proc.returncode)
            return ExecutionOutcome(
                OutcomeKind.COMPLETED,
                output=_decode(captured),
                returncode=proc.returncode,
            )
        finally:
            if proc.returncode is None:
                await self._reap(proc)
            if reader is not None and not reader.done():
                reader.cancel()
            if pipe_transport is not None:
                pipe_transport.close()

    async def _reap(self, proc: asyncio.subprocess.Process) -> None:
        """Kill the process group and wait a bounded time for the child to exit.

        Example:
            ```python
            await engine._reap(proc)
            ```
        """
        _kill_process_tree(proc)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(proc.wait(), timeout=self._drain_grace_seconds)

    async def _drain(self, reader: asyncio.Future[None], proc: asyncio.subprocess.Process) -> None:
        """Wait briefly for the output pipe to close after the child is gone.

        Example:
            ```python
            await engine._drain(reader, proc)
            ```
        """
        _, pending = await asyncio.wait({reader}, timeout=self._drain_grace_seconds)
        if pending:
            # Descendants still hold the write end of the pipe.
            _kill_process_tree(proc)
            _, pending = await asyncio.wait({reader}, timeout=self._drain_grace_seconds)
        for task in pending:
            task.cancel()
