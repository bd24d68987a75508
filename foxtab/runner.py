"""
FoxTab - Scan Runner
Runs one Dalfox process per scan in a background thread and streams its
output line by line to a sink.

The argument vector is executed directly (no shell), stdout and stderr are
merged, and every scan ends with exactly one terminal line: exit code,
cancellation, timeout or error.
"""

import logging
import os
import signal
import subprocess
import threading
import time
import uuid
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from foxtab import flags
from foxtab.builder import render_preview
from foxtab.errors import BinaryNotFound, FoxTabError, LaunchFailure, StreamReadError
from foxtab.models import SCAN_TIMEOUT_RANGE


logger = logging.getLogger(__name__)

LineSink = Callable[[str], None]

DEFAULT_PREFLIGHT_TIMEOUT = 5.0
RULE = "-" * 50

CANCELLED_NOTICE = "[!] Scan cancelled by user."
FINISHED_NOTICE = "[!] Finished. Exit Code: {code}"
TIMEOUT_NOTICE = "[!] TIMEOUT: Scan exceeded {minutes:g} minutes."
ERROR_PREFIX = "[ERROR] "


class ScanState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"
    TIMED_OUT = "timed_out"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ScanState.TIMED_OUT, ScanState.COMPLETED, ScanState.FAILED})

# States only ever move to a higher rank
_STATE_RANK = {
    ScanState.IDLE: 0,
    ScanState.RUNNING: 1,
    ScanState.CANCELLING: 2,
    ScanState.TIMED_OUT: 3,
    ScanState.COMPLETED: 3,
    ScanState.FAILED: 3,
}


def check_binary(path: str, timeout: float = DEFAULT_PREFLIGHT_TIMEOUT) -> bool:
    """Run `<path> version` and report whether it answered cleanly in time."""
    try:
        result = subprocess.run(
            [path, flags.VERSION],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("%s did not answer `version` within %ss", path, timeout)
        return False
    except OSError as e:
        logger.debug("Cannot execute %s: %s", path, e)
        return False
    return result.returncode == 0


class ScanSupervisor:
    """Owns the lifecycle of a single Dalfox process. Never reused."""

    def __init__(
        self,
        args: Sequence[str],
        sink: LineSink,
        method: str = "GET",
        url: str = "",
        timeout_minutes: float = SCAN_TIMEOUT_RANGE[0],
        preflight_timeout: float = DEFAULT_PREFLIGHT_TIMEOUT,
        on_complete: Optional[Callable[["ScanSupervisor"], None]] = None,
        scan_id: Optional[str] = None,
    ):
        if not args:
            raise ValueError("Argument vector is empty")
        self.args: List[str] = list(args)
        self.sink = sink
        self.method = method
        self.url = url
        self.timeout_minutes = timeout_minutes
        self.preflight_timeout = preflight_timeout
        self.on_complete = on_complete
        self.scan_id = scan_id or uuid.uuid4().hex[:12]

        self.exit_code: Optional[int] = None
        self.cancelled = False
        self.line_count = 0
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

        self._lock = threading.Lock()
        self._done = threading.Event()
        self._state = ScanState.IDLE
        self._cancel_requested = False
        self._timed_out = False
        self._finished = False
        self._deadline = 0.0
        self._process: Optional[subprocess.Popen] = None
        self._thread: Optional[threading.Thread] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def binary(self) -> str:
        return self.args[0]

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def timeout_seconds(self) -> float:
        return float(self.timeout_minutes) * 60.0

    def is_process_alive(self) -> bool:
        process = self._process
        return process is not None and process.poll() is None

    def command_string(self) -> str:
        return render_preview(self.args)

    # ── Public control ──────────────────────────────────────────

    def start(self):
        """Launch the scan in a background thread. Only the first call counts."""
        with self._lock:
            if self._thread is not None or self._cancel_requested or self._finished:
                logger.debug("Scan %s already started or stopped; start() ignored", self.scan_id)
                return
            self._thread = threading.Thread(
                target=self._run,
                daemon=True,
                name=f"foxtab-scan-{self.scan_id}",
            )
        self._thread.start()

    def stop(self):
        """Request cancellation and kill the process if it is alive.

        Safe at any time and any number of times; does not wait for the
        reader thread.
        """
        never_started = False
        with self._lock:
            process = self._process
            if not self._finished and not self._timed_out and not self._cancel_requested:
                self._cancel_requested = True
                if self._thread is None:
                    never_started = True
                else:
                    # Also covers the preflight window, before the process exists
                    self._set_state(ScanState.CANCELLING)
                logger.info("Scan %s cancellation requested", self.scan_id)

        if process is not None:
            self._kill(process)
        if never_started:
            self._finish(ScanState.COMPLETED, CANCELLED_NOTICE, cancelled=True)

    def wait(self, timeout: Optional[float] = None) -> ScanState:
        """Block until the scan reaches a terminal state (or timeout) and return the state."""
        self._done.wait(timeout)
        return self._state

    def snapshot(self) -> Dict:
        return {
            "scan_id": self.scan_id,
            "method": self.method,
            "url": self.url,
            "state": self._state.value,
            "cancelled": self.cancelled,
            "exit_code": self.exit_code,
            "pid": self.pid,
            "output_lines": self.line_count,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "command": self.command_string(),
        }

    # ── Worker ──────────────────────────────────────────────────

    def _run(self):
        self.started_at = time.time()
        self._emit(RULE)
        self._emit(f"SCAN STARTED: {self.method} {self.url}")
        self._emit(f"COMMAND: {self.command_string()}")
        self._emit(RULE)

        try:
            self._execute()
        except FoxTabError as e:
            logger.warning("Scan %s failed: %s", self.scan_id, e)
            self._finish(ScanState.FAILED, f"{ERROR_PREFIX}{e}")
        except Exception as e:
            logger.exception("Scan %s crashed", self.scan_id)
            self._finish(ScanState.FAILED, f"{ERROR_PREFIX}{e}")
        finally:
            self._cleanup()

    def _execute(self):
        reachable = check_binary(self.binary, self.preflight_timeout)
        if self._cancel_requested:
            self._finish(ScanState.COMPLETED, CANCELLED_NOTICE, cancelled=True)
            return
        if not reachable:
            raise BinaryNotFound(self.binary)

        process = self._launch()

        with self._lock:
            self._process = process
            self._deadline = time.monotonic() + self.timeout_seconds
            kill_now = self._cancel_requested
            if not kill_now:
                self._set_state(ScanState.RUNNING)
        logger.info("Scan %s started (PID %s)", self.scan_id, process.pid)

        if kill_now:
            self._kill(process)
        else:
            self._timer = threading.Timer(self.timeout_seconds, self._expire)
            self._timer.daemon = True
            self._timer.start()

        self._pump(process)
        self._await_exit(process)
        self._finish()

    def _launch(self) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                self.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                # Own process group so headless helpers die with the scanner
                start_new_session=(os.name == "posix"),
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise LaunchFailure(str(e)) from e

    def _pump(self, process: subprocess.Popen):
        """Forward output lines in order until EOF or cancellation."""
        try:
            for line in process.stdout:
                if self._cancel_requested or self._timed_out:
                    break
                self.line_count += 1
                self._emit(line.rstrip("\r\n"))
        except (OSError, ValueError) as e:
            if self._cancel_requested or self._timed_out:
                return
            raise StreamReadError(f"Error reading scanner output: {e}") from e

    def _await_exit(self, process: subprocess.Popen):
        remaining = max(self._deadline - time.monotonic(), 0.0)
        try:
            process.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            self._expire()
            process.wait()

    def _expire(self):
        """Overall timeout reached: kill the process unless the scan already ended."""
        with self._lock:
            process = self._process
            if self._finished:
                return
            if not self._cancel_requested:
                self._timed_out = True
                logger.info("Scan %s exceeded %s minutes", self.scan_id, self.timeout_minutes)
        if process is not None:
            self._kill(process)

    def _outcome(self):
        """Terminal state for a scan whose process has exited. Caller holds the lock."""
        if self._process is not None:
            self.exit_code = self._process.returncode
        if self._cancel_requested:
            return ScanState.COMPLETED, CANCELLED_NOTICE, True
        if self._timed_out:
            return ScanState.TIMED_OUT, TIMEOUT_NOTICE.format(minutes=self.timeout_minutes), False
        return ScanState.COMPLETED, FINISHED_NOTICE.format(code=self.exit_code), False

    def _finish(self, state: Optional[ScanState] = None, line: str = "", cancelled: bool = False):
        """Enter the terminal state once and emit its single terminal line."""
        with self._lock:
            if self._finished:
                return
            if state is None:
                state, line, cancelled = self._outcome()
            self._finished = True
            self.cancelled = cancelled
            self._set_state(state)

        self._cancel_timer()
        self.finished_at = time.time()
        self._emit(line)
        self._done.set()

        if self.on_complete:
            try:
                self.on_complete(self)
            except Exception:
                logger.exception("on_complete callback failed for scan %s", self.scan_id)

    def _cleanup(self):
        self._cancel_timer()
        process = self._process
        if process is None:
            return
        if process.poll() is None:
            self._kill(process)
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                logger.warning("Scan %s: PID %s still alive after kill", self.scan_id, process.pid)
        if process.stdout:
            process.stdout.close()

    # ── Helpers ─────────────────────────────────────────────────

    def _set_state(self, state: ScanState):
        if _STATE_RANK[state] < _STATE_RANK[self._state]:
            logger.warning("Scan %s: ignoring transition %s -> %s", self.scan_id, self._state.value, state.value)
            return
        self._state = state

    def _cancel_timer(self):
        timer = self._timer
        if timer is not None:
            timer.cancel()

    def _emit(self, line: str):
        try:
            self.sink(line)
        except Exception:
            # A broken sink must not stop the scan or leave the process running
            logger.exception("Line sink failed for scan %s", self.scan_id)

    @staticmethod
    def _kill(process: subprocess.Popen):
        if process.poll() is not None:
            return
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass  # Already dead
        except PermissionError:
            process.kill()
