"""Settings classes for the egress supervisor."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

LIVENESS_STRATEGIES = ('handle', 'pidfile')
VALIDATION_MODES = ('required', 'optional', 'disabled')
STORE_TYPES = ('sqlite', 'static')


class SettingsError(ValueError):
    """Raised when the settings file contains invalid values."""


@dataclass
class NginxSettings:
    """Relay binary and filesystem locations."""
    binary: str = 'nginx'
    config_path: str = '/tmp/nginx-rtmp.conf'
    pid_file: str = '/tmp/nginx.pid'
    ffmpeg_binary: str = 'ffmpeg'
    validate_timeout: float = 10.0
    stop_timeout: float = 5.0

    def __post_init__(self):
        """Validate relay settings."""
        if not self.binary:
            raise SettingsError("Nginx binary cannot be empty")
        if not self.config_path:
            raise SettingsError("Nginx config path cannot be empty")
        if self.validate_timeout <= 0:
            raise SettingsError("Validate timeout must be positive")
        if self.stop_timeout <= 0:
            raise SettingsError("Stop timeout must be positive")

    def build_run_command(self) -> List[str]:
        """Command that runs the relay in the foreground."""
        return [self.binary, '-c', self.config_path, '-g', 'daemon off;']

    def build_test_command(self, config_path: str) -> List[str]:
        """Command that syntax-checks a configuration file."""
        return [self.binary, '-t', '-c', config_path]


@dataclass
class SupervisorSettings:
    """Reconciliation behaviour."""
    liveness: str = 'handle'
    validation: str = 'required'
    ingest_key_env: str = 'INGEST_KEY'

    def __post_init__(self):
        """Validate supervisor settings."""
        if self.liveness not in LIVENESS_STRATEGIES:
            raise SettingsError(
                f"Liveness must be one of {', '.join(LIVENESS_STRATEGIES)}"
            )
        if self.validation not in VALIDATION_MODES:
            raise SettingsError(
                f"Validation must be one of {', '.join(VALIDATION_MODES)}"
            )
        if not self.ingest_key_env:
            raise SettingsError("Ingest key variable cannot be empty")


@dataclass
class StoreSettings:
    """Where the desired state is read from."""
    type: str = 'sqlite'
    path: Optional[str] = None
    template_file: Optional[str] = None
    destinations: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        """Validate store settings."""
        if self.type not in STORE_TYPES:
            raise SettingsError(
                f"Store type must be one of {', '.join(STORE_TYPES)}"
            )
        if self.type == 'sqlite' and not self.path:
            raise SettingsError("SQLite store requires a database path")
        if self.type == 'static' and not self.template_file:
            raise SettingsError("Static store requires a template file")
        if self.destinations is None:
            self.destinations = []


@dataclass
class MetricsSettings:
    """Prometheus exporter settings."""
    port: int = 8000
    interval: float = 5.0

    def __post_init__(self):
        """Validate metrics settings."""
        if not 0 < self.port < 65536:
            raise SettingsError("Metrics port must be between 1 and 65535")
        if self.interval <= 0:
            raise SettingsError("Metrics interval must be positive")


def _section(value: Any, section_cls: type, name: str) -> Any:
    if value is None:
        return section_cls()
    if isinstance(value, section_cls):
        return value
    if isinstance(value, dict):
        try:
            return section_cls(**value)
        except TypeError as e:
            raise SettingsError(f"Invalid '{name}' section: {e}") from e
    raise SettingsError(
        f"'{name}' configuration must be a dict or {section_cls.__name__}"
    )


@dataclass
class Settings:
    """Top-level supervisor settings."""
    nginx: NginxSettings
    supervisor: SupervisorSettings
    store: StoreSettings
    metrics: MetricsSettings

    def __init__(self, **kwargs):
        """Initialize settings.

        Args:
            **kwargs: Sections 'nginx', 'supervisor', 'store' and 'metrics',
                each a dict or the matching settings object

        Raises:
            SettingsError: If a section is missing, malformed or invalid
        """
        self.nginx = _section(kwargs.get('nginx'), NginxSettings, 'nginx')
        self.supervisor = _section(
            kwargs.get('supervisor'), SupervisorSettings, 'supervisor'
        )
        store = kwargs.get('store')
        if store is None:
            raise SettingsError("A 'store' section is required")
        self.store = _section(store, StoreSettings, 'store')
        self.metrics = _section(
            kwargs.get('metrics'), MetricsSettings, 'metrics'
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> 'Settings':
        """Load settings from a YAML file.

        Relative store paths are resolved against the file's directory.

        Args:
            config_path: Path to YAML settings file

        Returns:
            Settings object

        Raises:
            FileNotFoundError: If settings file not found
            SettingsError: If settings file is invalid
        """
        if not os.path.isfile(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise SettingsError(
                    f"Failed to parse config file {config_path}: {e}"
                ) from e
        if not isinstance(data, dict):
            raise SettingsError(f"Config file must be a mapping: {config_path}")

        settings = cls(**data)
        base_dir = os.path.dirname(os.path.abspath(config_path))
        for attr in ('path', 'template_file'):
            value = getattr(settings.store, attr)
            if value and not os.path.isabs(value):
                setattr(settings.store, attr, os.path.join(base_dir, value))
        return settings
