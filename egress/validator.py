"""Syntax checking of rendered configuration files."""

from dataclasses import dataclass
import logging
import subprocess

from egress.config import NginxSettings
from egress.errors import ValidatorUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a syntax check."""
    valid: bool
    diagnostics: str = ''


class ConfigValidator:
    """Runs the relay's built-in syntax check against a config file."""

    def __init__(self, settings: NginxSettings) -> None:
        """Initialize validator.

        Args:
            settings: Relay settings holding the binary and timeout
        """
        self.settings = settings

    def validate(self, config_path: str) -> ValidationResult:
        """Check a configuration file without touching the running relay.

        Args:
            config_path: File to check

        Returns:
            Validation result with stdout and stderr as diagnostics

        Raises:
            ValidatorUnavailableError: If the relay binary cannot be run
        """
        cmd = self.settings.build_test_command(config_path)
        logger.debug("Validating config: %s", ' '.join(cmd))

        try:
            completed = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.settings.validate_timeout,
                check=False
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ValidatorUnavailableError(
                f"Cannot run {self.settings.binary}: {e}"
            ) from e
        except subprocess.TimeoutExpired:
            logger.error(
                "Config validation timed out after %ss",
                self.settings.validate_timeout
            )
            return ValidationResult(
                valid=False,
                diagnostics=(
                    f"{self.settings.binary} -t timed out after "
                    f"{self.settings.validate_timeout}s"
                )
            )

        diagnostics = ((completed.stdout or '') +
                       (completed.stderr or '')).strip()
        if completed.returncode != 0:
            logger.error(
                "Config validation failed with return code %d",
                completed.returncode
            )
            return ValidationResult(valid=False, diagnostics=diagnostics)

        logger.info("Config validation passed for %s", config_path)
        return ValidationResult(valid=True, diagnostics=diagnostics)
