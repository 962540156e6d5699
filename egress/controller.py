"""Lifecycle control of the nginx-rtmp relay process."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import logging
import signal
import subprocess
import threading
from typing import Optional

import psutil

from egress.config import NginxSettings
from egress.errors import NotRunningError, SignalFailedError, SpawnFailedError
from egress.probe import HandleProbe, LivenessProbe

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """Lifecycle states of the managed relay."""
    STOPPED = 'stopped'
    STARTING = 'starting'
    RUNNING = 'running'


@dataclass
class ProcessHandle:
    """The relay process most recently started or adopted."""
    pid: int
    started_at: datetime = field(default_factory=datetime.now)
    alive: bool = True


class ProcessController:
    """Spawns, reloads and stops the relay.

    All state changes happen while holding ``lock``. The supervisor passes
    its own apply lock in so an exit detected by the watcher thread cannot
    interleave with a reconcile.
    """

    def __init__(
        self,
        settings: NginxSettings,
        *,
        lock: Optional[threading.RLock] = None,
        probe: Optional[LivenessProbe] = None
    ) -> None:
        """Initialize process controller.

        Args:
            settings: Relay binary and config locations
            lock: Lock shared with the supervisor. A new one if None.
            probe: Liveness probe. If None, uses the in-memory handle.
        """
        self.settings = settings
        self.lock = lock or threading.RLock()
        self.state = ProcessState.STOPPED
        self.handle: Optional[ProcessHandle] = None
        self.probe = probe or HandleProbe(self)
        self._process: Optional[subprocess.Popen] = None
        self._watcher: Optional[threading.Thread] = None

    def tracked_pid(self) -> Optional[int]:
        """PID of a live relay spawned by this controller, if any."""
        with self.lock:
            if self.state is not ProcessState.RUNNING or self._process is None:
                return None
            if self.handle is None or not self.handle.alive:
                return None
            return self.handle.pid

    def running_pid(self) -> Optional[int]:
        """PID reported by the probe, falling back to the tracked handle.

        The fallback covers the window between a spawn and the relay
        writing its PID file. A relay that is neither reported nor tracked
        is recorded as exited, which is the only exit signal an adopted
        relay gets.
        """
        with self.lock:
            pid = self.probe.current_pid()
            if pid is None:
                pid = self.tracked_pid()
            if pid is None and self.handle is not None and self.handle.alive:
                handle = self.handle
                handle.alive = False
                self.state = ProcessState.STOPPED
                logger.warning("Nginx (PID: %d) is no longer running",
                               handle.pid)
            return pid

    def is_running(self) -> bool:
        """Whether a relay process is running."""
        return self.running_pid() is not None

    def spawn(self) -> ProcessHandle:
        """Start the relay in the foreground.

        Returns the existing handle when a relay is already running.

        Returns:
            Handle of the running relay

        Raises:
            SpawnFailedError: If the relay binary cannot be launched
        """
        with self.lock:
            pid = self.running_pid()
            if pid is not None:
                logger.warning("Nginx is already running (PID: %d)", pid)
                if self.handle is not None and self.handle.pid == pid:
                    return self.handle
                return self._adopt(pid)

            self.state = ProcessState.STARTING
            cmd = self.settings.build_run_command()
            logger.info("Starting nginx: %s", ' '.join(cmd))
            try:
                # pylint: disable=consider-using-with
                process = subprocess.Popen(
                    cmd, stdin=subprocess.DEVNULL, close_fds=True
                )
            except OSError as e:
                self.state = ProcessState.STOPPED
                logger.error("Failed to start nginx: %s", e)
                raise SpawnFailedError(f"Failed to start nginx: {e}") from e

            self._process = process
            self.handle = ProcessHandle(pid=process.pid)
            self.state = ProcessState.RUNNING
            self._watcher = threading.Thread(
                target=self._watch,
                args=(process, self.handle),
                name=f"nginx-watcher-{process.pid}",
                daemon=True
            )
            self._watcher.start()
            logger.info("Started nginx with PID: %d", process.pid)
            return self.handle

    def _adopt(self, pid: int) -> ProcessHandle:
        """Track a relay this controller did not spawn."""
        try:
            started_at = datetime.fromtimestamp(
                psutil.Process(pid).create_time()
            )
        except psutil.Error:
            started_at = datetime.now()
        self.handle = ProcessHandle(pid=pid, started_at=started_at)
        self.state = ProcessState.RUNNING
        return self.handle

    def _watch(self, process: subprocess.Popen, handle: ProcessHandle) -> None:
        """Wait for the relay to exit and record it."""
        returncode = process.wait()
        with self.lock:
            handle.alive = False
            if self.handle is handle:
                self.state = ProcessState.STOPPED
                self._process = None
        logger.warning(
            "Nginx (PID: %d) exited with return code %d", handle.pid,
            returncode
        )

    def reload(self) -> int:
        """Send the running relay a reconfigure signal.

        Returns:
            PID that was signalled

        Raises:
            NotRunningError: If no relay is running
            SignalFailedError: If the signal could not be delivered
        """
        with self.lock:
            pid = self.running_pid()
            if pid is None:
                raise NotRunningError()
            if self._process is not None and pid == self.tracked_pid():
                try:
                    self._process.send_signal(signal.SIGHUP)
                except OSError as e:
                    raise SignalFailedError(pid, str(e)) from e
                logger.info("Sent SIGHUP to nginx (PID: %d)", pid)
                return pid
            try:
                psutil.Process(pid).send_signal(signal.SIGHUP)
            except psutil.NoSuchProcess as e:
                raise SignalFailedError(pid, "process no longer exists") from e
            except psutil.AccessDenied as e:
                raise SignalFailedError(pid, "permission denied") from e
            logger.info("Sent SIGHUP to nginx (PID: %d)", pid)
            return pid

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Terminate a relay spawned by this controller.

        Args:
            timeout: Seconds to wait before killing. Defaults to the
                configured stop timeout.

        Returns:
            True if a process was stopped, False if there was none
        """
        with self.lock:
            process = self._process
        if process is None or process.poll() is not None:
            return False

        timeout = timeout or self.settings.stop_timeout
        logger.info("Stopping nginx (PID: %d)", process.pid)
        process.terminate()
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                "Nginx did not exit within %ss, killing", timeout
            )
            process.kill()
            process.wait()
        if self._watcher is not None:
            self._watcher.join(timeout=1)
        return True
