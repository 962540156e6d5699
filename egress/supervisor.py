"""Reconciliation of the relay process with the desired destinations."""

from dataclasses import dataclass
import logging
import os
import tempfile
from typing import Optional

from egress.config import Settings
from egress.controller import ProcessController
from egress.errors import (
    EgressError,
    InvalidSyntaxError,
    MissingIngestKeyError,
    TemplateNotFoundError,
    ValidatorUnavailableError,
)
from egress.metrics import EgressMetrics
from egress.probe import build_probe
from egress.renderer import render
from egress.store import (
    DesiredStateStore,
    EnvironmentSecretSource,
    SecretSource,
    build_store,
)
from egress.validator import ConfigValidator

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of a successful apply."""
    success: bool
    rendered_config: str
    action: str
    pid: Optional[int] = None
    diagnostics: str = ''


class Supervisor:
    """Renders, validates and applies the relay configuration.

    One instance owns the config file and the process controller. Every
    apply runs as a single unit under the controller's lock.
    """

    def __init__(
        self,
        settings: Settings,
        store: DesiredStateStore,
        secrets: Optional[SecretSource] = None,
        *,
        validator: Optional[ConfigValidator] = None,
        controller: Optional[ProcessController] = None,
        metrics: Optional[EgressMetrics] = None
    ) -> None:
        """Initialize supervisor.

        Args:
            settings: Supervisor settings
            store: Source of the template and destinations
            secrets: Source of the ingest key. Defaults to the environment.
            validator: Config validator. Built from settings if None.
            controller: Process controller. Built from settings if None.
            metrics: Optional metrics to update
        """
        self.settings = settings
        self.store = store
        self.secrets = secrets or EnvironmentSecretSource(
            settings.supervisor.ingest_key_env
        )
        self.validator = validator or ConfigValidator(settings.nginx)
        if controller is None:
            controller = ProcessController(settings.nginx)
            controller.probe = build_probe(settings, controller)
        self.controller = controller
        self.lock = controller.lock
        self.metrics = metrics

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        metrics: Optional[EgressMetrics] = None
    ) -> 'Supervisor':
        """Create a supervisor with the store described by the settings."""
        return cls(settings, build_store(settings), metrics=metrics)

    def apply(self) -> ApplyResult:
        """Render the desired state and bring the relay in line with it.

        Returns:
            Result echoing the rendered configuration

        Raises:
            ConfigError: If the configuration cannot be rendered or is invalid
            ControllerError: If the relay cannot be reloaded or started
        """
        with self.lock:
            try:
                result = self._apply()
            except EgressError as e:
                logger.error("Failed to apply nginx config: %s", e)
                self._record(type(e).__name__)
                raise
        self._record('success')
        return result

    apply_configuration = apply

    def _apply(self) -> ApplyResult:
        template = self.store.get_template()
        if not template:
            raise TemplateNotFoundError()
        destinations = self.store.list_destinations()

        ingest_key = self.secrets.get_ingest_key()
        if not ingest_key:
            raise MissingIngestKeyError(self.settings.supervisor.ingest_key_env)
        rendered = render(
            template,
            destinations,
            ingest_key,
            ffmpeg_binary=self.settings.nginx.ffmpeg_binary
        )
        enabled = sum(1 for d in destinations if d.enabled)
        logger.info(
            "Rendered config with %d of %d destinations enabled", enabled,
            len(destinations)
        )

        diagnostics = self._write_validated(rendered)

        if self.controller.is_running():
            pid = self.controller.reload()
            action = 'reloaded'
        else:
            pid = self.controller.spawn().pid
            action = 'spawned'

        if self.metrics is not None:
            self.metrics.enabled_destinations.set(enabled)
        logger.info("Applied nginx config (%s, PID: %d)", action, pid)
        return ApplyResult(
            success=True,
            rendered_config=rendered,
            action=action,
            pid=pid,
            diagnostics=diagnostics
        )

    def _write_validated(self, rendered: str) -> str:
        """Stage, validate and atomically install the rendered config.

        The live file is only replaced once the staged copy passes.

        Returns:
            Validator diagnostics, empty if validation was skipped
        """
        config_path = self.settings.nginx.config_path
        directory = os.path.dirname(os.path.abspath(config_path))
        os.makedirs(directory, exist_ok=True)

        fd, staged = tempfile.mkstemp(
            prefix=f".{os.path.basename(config_path)}.", dir=directory
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(rendered)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(staged, 0o644)
            diagnostics = self._validate(staged)
            os.replace(staged, config_path)
        finally:
            if os.path.exists(staged):
                os.remove(staged)
        logger.debug("Wrote nginx config to %s", config_path)
        return diagnostics

    def _validate(self, path: str) -> str:
        mode = self.settings.supervisor.validation
        if mode == 'disabled':
            return ''
        try:
            result = self.validator.validate(path)
        except ValidatorUnavailableError as e:
            if mode == 'required':
                raise
            logger.warning("Skipping config validation: %s", e)
            return ''
        if not result.valid:
            raise InvalidSyntaxError(result.diagnostics)
        return result.diagnostics

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_apply(outcome)

    def get_rendered_configuration(self) -> Optional[str]:
        """Return the installed configuration, or None if none exists."""
        try:
            with open(self.settings.nginx.config_path, 'r',
                      encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def is_egress_running(self) -> bool:
        """Whether the relay process is running."""
        return self.controller.is_running()

    def collect_metrics(self) -> None:
        """Refresh the relay process gauges."""
        if self.metrics is not None:
            self.metrics.collect(self.controller.running_pid())

    def shutdown(self) -> None:
        """Stop a relay started by this supervisor."""
        if self.controller.stop():
            logger.info("Nginx stopped")
