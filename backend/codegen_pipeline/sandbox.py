"""
Sandboxed subprocess execution.

Runs an untrusted or long-running binary with resource limits, a scrubbed
environment, an optional isolation wrapper (bwrap, nsjail, ...) and a
wall-clock watchdog, streaming stdout lines back to the caller.
"""

import logging
import re
import shlex
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import psutil

logger = logging.getLogger(__name__)

# Only PATH survives into the sandbox
SANDBOX_ENV = {"PATH": "/usr/local/bin:/usr/bin:/bin", "LANG": "C"}

PROGRESS_PATTERN = re.compile(rb"PROGRESS[:\s]+(\d{1,3})", re.IGNORECASE)

LAUNCHER_PATH = str(Path(__file__).with_name("rlimit_launcher.py"))


@dataclass(frozen=True)
class ResourceLimits:
    """rlimits applied to the child before it execs the real command."""

    cpu_seconds: int = 120
    memory_mb: int = 1024
    max_file_mb: int = 64
    max_open_files: int = 64

    def launcher_prefix(self) -> list[str]:
        """Command prefix that sets these limits and then execs the rest."""
        return [
            sys.executable,
            "-I",
            LAUNCHER_PATH,
            str(self.cpu_seconds),
            str(self.memory_mb),
            str(self.max_file_mb),
            str(self.max_open_files),
            "--",
        ]


@dataclass
class ProcessResult:
    """Outcome of a sandboxed run."""

    returncode: Optional[int]
    stdout: bytes = b""
    stderr: str = ""
    duration: float = 0.0
    timed_out: bool = False
    cancelled: bool = False
    truncated: bool = field(default=False)

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and not self.timed_out and not self.cancelled


def kill_process_tree(pid: int, wait_timeout: Optional[float] = 5) -> None:
    """
    Kill a process and every descendant, ignoring ones already gone.

    With wait_timeout=None the signals are sent and the call returns at once;
    the thread reading the process output reaps it.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    procs = parent.children(recursive=True) + [parent]
    for proc in procs:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    if wait_timeout is not None:
        psutil.wait_procs(procs, timeout=wait_timeout)


def parse_progress(line: bytes) -> Optional[int]:
    """Extract a 0-100 percentage from a 'PROGRESS <n>' line."""
    match = PROGRESS_PATTERN.search(line)
    if not match:
        return None
    return max(0, min(100, int(match.group(1))))


def run_sandboxed(
    argv: list[str],
    cwd: str,
    timeout: float,
    limits: Optional[ResourceLimits] = None,
    wrapper: Optional[list[str]] = None,
    env: Optional[dict[str, str]] = None,
    on_progress: Optional[Callable[[int], None]] = None,
    register_cancel: Optional[Callable[[Callable[[], None]], Callable[[], None]]] = None,
    max_capture_bytes: int = 8 * 1024 * 1024,
) -> ProcessResult:
    """
    Run argv to completion inside the sandbox.

    Args:
        argv: Command to run; nothing else from the caller reaches the child
        cwd: Working directory of the child
        timeout: Wall-clock limit in seconds; the process tree is killed after it
        limits: rlimits set by a launcher that then execs the command; a
            missing command then shows up as exit status 127
        wrapper: Isolation command prefix, e.g. ["bwrap", "--unshare-all", ...]
        env: Child environment (defaults to SANDBOX_ENV)
        on_progress: Receives percentages parsed from 'PROGRESS <n>' lines.
            Exceptions it raises kill the child and propagate.
        register_cancel: Registers a kill callback with a cancellation token;
            must return an unregister function. The callback never blocks,
            since tokens are cancelled from the event loop.
        max_capture_bytes: Cap on captured stdout and stderr, each

    Returns:
        ProcessResult with return code and captured output

    Raises:
        FileNotFoundError: If the command (or wrapper) does not exist and
            no limits were given
    """
    # Limits are inherited through the wrapper's exec into the command
    command = list(wrapper or []) + list(argv)
    if limits is not None:
        command = limits.launcher_prefix() + command

    start = time.time()
    proc = subprocess.Popen(
        command,
        cwd=cwd,
        env=env if env is not None else dict(SANDBOX_ENV),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        start_new_session=True,
        close_fds=True,
    )
    logger.debug(f"Started sandboxed process pid={proc.pid}: {argv[0]}")

    state = {"timed_out": False, "cancelled": False}

    def _on_timeout():
        state["timed_out"] = True
        logger.warning(f"Sandboxed process {proc.pid} exceeded {timeout}s, killing")
        kill_process_tree(proc.pid)

    def _on_cancel():
        state["cancelled"] = True
        kill_process_tree(proc.pid, wait_timeout=None)

    watchdog = threading.Timer(timeout, _on_timeout)
    watchdog.daemon = True
    unregister = register_cancel(_on_cancel) if register_cancel else (lambda: None)

    stderr_chunks: list[bytes] = []
    stderr_thread = threading.Thread(
        target=_drain, args=(proc.stderr, stderr_chunks, max_capture_bytes), daemon=True
    )

    stdout = bytearray()
    truncated = False
    watchdog.start()
    stderr_thread.start()
    try:
        for line in iter(proc.stdout.readline, b""):
            if on_progress is not None:
                percent = parse_progress(line)
                if percent is not None:
                    on_progress(percent)
                    continue
            if len(stdout) < max_capture_bytes:
                stdout.extend(line[: max_capture_bytes - len(stdout)])
            else:
                truncated = True
        returncode = proc.wait()
    except BaseException:
        kill_process_tree(proc.pid)
        proc.wait()
        raise
    finally:
        watchdog.cancel()
        unregister()
        stderr_thread.join(timeout=5)
        proc.stdout.close()
        proc.stderr.close()

    return ProcessResult(
        returncode=returncode,
        stdout=bytes(stdout),
        stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        duration=time.time() - start,
        timed_out=state["timed_out"],
        cancelled=state["cancelled"],
        truncated=truncated,
    )


def _drain(stream, chunks: list[bytes], limit: int) -> None:
    size = 0
    for line in iter(stream.readline, b""):
        if size < limit:
            chunks.append(line[: limit - size])
            size += len(chunks[-1])


def describe_exit(result: ProcessResult) -> str:
    """Human-readable reason for a failed run."""
    if result.cancelled:
        return "cancelled"
    if result.timed_out:
        return "timed out"
    if result.returncode is not None and result.returncode < 0:
        return f"killed by signal {-result.returncode}"
    return f"exited with status {result.returncode}"


def sandbox_wrapper_from_setting(value: str) -> list[str]:
    """Split a SANDBOX_WRAPPER setting into a command prefix."""
    return shlex.split(value) if value and value.strip() else []
