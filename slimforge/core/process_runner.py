"""Blocking external-process execution with bounded output capture.

``ProcessRunner.run`` launches one command, drains stdout and stderr on
reader threads into fixed-size tails, and enforces an optional timeout and a
cooperative cancel event. A process that is timed out or cancelled is
terminated along with its process group, killed after a grace period if it
ignores SIGTERM, and always reaped before ``run`` returns.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections import deque
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

from slimforge.models.pipeline import FailureCause, StageResult, StageState

logger = logging.getLogger(__name__)

DEFAULT_TAIL_LINES = 40
DEFAULT_POLL_INTERVAL = 0.05
DEFAULT_KILL_GRACE_SECONDS = 2.0

# On POSIX each stage runs in its own session so a timeout or cancel can
# signal the whole process group (cargo -> rustc, etc.), not just the leader.
_PROCESS_GROUPS = os.name == "posix"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class CommandRunner(Protocol):
    """Anything that can run one command and report a ``StageResult``.

    ``PipelineExecutor`` accepts any object satisfying this protocol, so
    tests can substitute a recording fake for real process launches.
    """

    def run(
        self,
        command: str,
        args: list[str],
        *,
        stage_name: str,
        cwd: Path | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        tail_lines: int = DEFAULT_TAIL_LINES,
    ) -> StageResult:
        ...


# ---------------------------------------------------------------------------
# Subprocess implementation
# ---------------------------------------------------------------------------


class ProcessRunner:
    """Runs commands with ``subprocess.Popen``.

    Parameters
    ----------
    kill_grace_seconds:
        How long a terminated process gets to exit before it is killed.
    poll_interval:
        Granularity at which the timeout and cancel event are checked.
    env:
        Environment for child processes. ``None`` inherits the parent's.
    """

    def __init__(
        self,
        *,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        env: dict[str, str] | None = None,
    ) -> None:
        self._kill_grace = kill_grace_seconds
        self._poll_interval = poll_interval
        self._env = env

    def run(
        self,
        command: str,
        args: list[str],
        *,
        stage_name: str,
        cwd: Path | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        tail_lines: int = DEFAULT_TAIL_LINES,
    ) -> StageResult:
        """Run ``command args...`` to completion and return its result.

        The result is SUCCEEDED only for exit status 0. A missing executable
        or unusable working directory yields FAILED with cause
        ``launch_error`` and no exit status.
        """
        argv = [command, *args]
        started = time.monotonic()
        logger.debug("Launching %s: %s (cwd=%s)", stage_name, " ".join(argv), cwd)

        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd) if cwd is not None else None,
                env=self._env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=_PROCESS_GROUPS,
            )
        except OSError as exc:
            logger.error("Could not launch %s (%s): %s", stage_name, command, exc)
            return StageResult(
                stage_name=stage_name,
                state=StageState.FAILED,
                exit_status=None,
                duration_seconds=time.monotonic() - started,
                stderr_tail=[f"{command}: {exc}"],
                cause=FailureCause.LAUNCH_ERROR,
            )

        stdout_tail: deque[str] = deque(maxlen=tail_lines)
        stderr_tail: deque[str] = deque(maxlen=tail_lines)
        readers = [
            _start_reader(proc.stdout, stdout_tail, f"{stage_name}-stdout"),
            _start_reader(proc.stderr, stderr_tail, f"{stage_name}-stderr"),
        ]

        cause = self._wait(proc, started, timeout, cancel_event)

        # After a kill the pipes are closed by then; the bound only guards
        # against a descendant that escaped the process group.
        join_timeout = None if cause is None else self._kill_grace
        for reader in readers:
            reader.join(join_timeout)
            if reader.is_alive():
                logger.warning("%s still open after stop; abandoning reader", reader.name)
        duration = time.monotonic() - started
        exit_status = proc.returncode

        if cause is None and exit_status != 0:
            cause = FailureCause.EXIT_STATUS
        state = StageState.SUCCEEDED if cause is None else StageState.FAILED

        if cause is FailureCause.TIMEOUT:
            stderr_tail.append(f"{stage_name} timed out after {timeout}s")
        elif cause is FailureCause.CANCELLED:
            stderr_tail.append(f"{stage_name} was cancelled")

        logger.debug(
            "%s finished: state=%s exit=%s duration=%.2fs",
            stage_name, state.value, exit_status, duration,
        )
        return StageResult(
            stage_name=stage_name,
            state=state,
            exit_status=exit_status,
            duration_seconds=duration,
            stdout_tail=list(stdout_tail),
            stderr_tail=list(stderr_tail),
            cause=cause,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _wait(
        self,
        proc: subprocess.Popen[str],
        started: float,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> FailureCause | None:
        """Block until *proc* exits, killing it on timeout or cancellation."""
        while True:
            try:
                proc.wait(timeout=self._poll_interval)
                return None
            except subprocess.TimeoutExpired:
                pass
            if cancel_event is not None and cancel_event.is_set():
                self._stop(proc)
                return FailureCause.CANCELLED
            if timeout is not None and time.monotonic() - started >= timeout:
                self._stop(proc)
                return FailureCause.TIMEOUT

    def _stop(self, proc: subprocess.Popen[str]) -> None:
        """Terminate *proc* and its descendants, killing them after the grace period."""
        _signal_group(proc, force=False)
        try:
            proc.wait(timeout=self._kill_grace)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s ignored SIGTERM; killing", proc.pid)
            _signal_group(proc, force=True)
            proc.wait()
        # Descendants that outlived the leader still hold the output pipes.
        if _PROCESS_GROUPS:
            _signal_group(proc, force=True)


def _signal_group(proc: subprocess.Popen[str], *, force: bool) -> None:
    if not _PROCESS_GROUPS:
        if force:
            proc.kill()
        else:
            proc.terminate()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
    except ProcessLookupError:
        pass  # group already gone
    except PermissionError as exc:
        logger.debug("Cannot signal process group %s: %s", proc.pid, exc)


def _start_reader(stream: IO[str] | None, sink: deque[str], name: str) -> threading.Thread:
    thread = threading.Thread(target=_drain, args=(stream, sink), name=name, daemon=True)
    thread.start()
    return thread


def _drain(stream: IO[str] | None, sink: deque[str]) -> None:
    if stream is None:
        return
    with stream:
        for line in stream:
            sink.append(line.rstrip("\r\n"))
