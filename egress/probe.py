"""Liveness probes for the relay process."""

from abc import ABC, abstractmethod
import logging
from typing import TYPE_CHECKING, Optional

import psutil

if TYPE_CHECKING:
    from egress.config import Settings
    from egress.controller import ProcessController

logger = logging.getLogger(__name__)


class LivenessProbe(ABC):
    """Interface for deciding whether the relay is running."""

    @abstractmethod
    def current_pid(self) -> Optional[int]:
        """Return the PID of the running relay, or None if it is down."""

    def is_running(self) -> bool:
        """Whether the relay process is alive."""
        return self.current_pid() is not None


class HandleProbe(LivenessProbe):
    """Probe backed by the controller's in-memory process handle.

    Only knows about processes spawned by this supervisor instance.
    """

    def __init__(self, controller: 'ProcessController') -> None:
        self.controller = controller

    def current_pid(self) -> Optional[int]:
        return self.controller.tracked_pid()


class PidFileProbe(LivenessProbe):
    """Probe backed by the PID file the relay writes on startup.

    Survives supervisor restarts. A recycled PID can be reported as
    running.
    """

    def __init__(self, pid_file: str) -> None:
        self.pid_file = pid_file

    def read_pid(self) -> Optional[int]:
        """Read the recorded PID.

        Returns:
            PID from the file, or None if the file is missing or malformed
        """
        try:
            with open(self.pid_file, 'r', encoding='utf-8') as f:
                content = f.read().strip()
        except OSError:
            return None
        if not content.isdigit():
            logger.warning("Ignoring malformed PID file %s", self.pid_file)
            return None
        return int(content)

    def current_pid(self) -> Optional[int]:
        pid = self.read_pid()
        if pid is None or pid <= 0:
            return None
        # pid_exists sends signal 0 on POSIX
        if not psutil.pid_exists(pid):
            logger.debug("Stale PID file %s (PID: %d)", self.pid_file, pid)
            return None
        return pid


def build_probe(
    settings: 'Settings', controller: 'ProcessController'
) -> LivenessProbe:
    """Create the probe selected by the liveness strategy setting."""
    if settings.supervisor.liveness == 'pidfile':
        return PidFileProbe(settings.nginx.pid_file)
    return HandleProbe(controller)
