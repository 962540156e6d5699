"""Exception types raised by the egress supervisor."""


class EgressError(Exception):
    """Base class for all supervisor failures."""


class ConfigError(EgressError):
    """The relay configuration could not be produced or accepted."""


class MissingIngestKeyError(ConfigError):
    """The ingest key is unset or empty."""

    def __init__(self, variable: str = 'INGEST_KEY') -> None:
        super().__init__(f"{variable} is not defined")
        self.variable = variable


class TemplateNotFoundError(ConfigError):
    """No active configuration template is available."""

    def __init__(self) -> None:
        super().__init__("Nginx template not found")


class InvalidSyntaxError(ConfigError):
    """The relay's syntax check rejected the rendered configuration."""

    def __init__(self, diagnostics: str) -> None:
        super().__init__(f"Configuration failed validation:\n{diagnostics}")
        self.diagnostics = diagnostics


class ValidatorUnavailableError(ConfigError):
    """The syntax checker binary could not be executed."""


class ControllerError(EgressError):
    """A lifecycle transition of the relay process failed."""


class NotRunningError(ControllerError):
    """A reload was requested while no relay process is running."""

    def __init__(self) -> None:
        super().__init__("Nginx is not running, cannot reload")


class SignalFailedError(ControllerError):
    """The reload signal could not be delivered."""

    def __init__(self, pid: int, reason: str) -> None:
        super().__init__(f"Failed to signal nginx (PID: {pid}): {reason}")
        self.pid = pid


class SpawnFailedError(ControllerError):
    """The relay binary could not be launched."""


class StoreUnavailableError(ConfigError):
    """The desired-state store could not be read."""
