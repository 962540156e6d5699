"""Unit tests for validator module."""

import subprocess
import unittest
from unittest.mock import patch

from egress.config import NginxSettings
from egress.errors import ValidatorUnavailableError
from egress.validator import ConfigValidator


class TestConfigValidator(unittest.TestCase):
    """Test cases for ConfigValidator class."""

    def setUp(self):
        """Set up test fixtures."""
        self.settings = NginxSettings(binary='/usr/sbin/nginx',
                                      validate_timeout=2)
        self.validator = ConfigValidator(self.settings)

    @patch('subprocess.run')
    def test_valid_config(self, mock_run):
        """Test a zero exit marks the config valid."""
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout='',
            stderr='nginx: configuration file /tmp/x.conf test is successful\n'
        )

        result = self.validator.validate('/tmp/x.conf')

        self.assertTrue(result.valid)
        self.assertEqual(
            result.diagnostics,
            'nginx: configuration file /tmp/x.conf test is successful'
        )
        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ['/usr/sbin/nginx', '-t', '-c', '/tmp/x.conf'])
        self.assertEqual(kwargs['timeout'], 2)

    @patch('subprocess.run')
    def test_invalid_config_concatenates_output(self, mock_run):
        """Test a non-zero exit returns stdout and stderr as diagnostics."""
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=1, stdout='out\n',
            stderr='nginx: [emerg] unknown directive "pusj"\n'
        )

        result = self.validator.validate('/tmp/x.conf')

        self.assertFalse(result.valid)
        self.assertEqual(result.diagnostics,
                         'out\nnginx: [emerg] unknown directive "pusj"')

    @patch('subprocess.run')
    def test_missing_binary(self, mock_run):
        """Test a missing binary is reported as unavailable, not invalid."""
        mock_run.side_effect = FileNotFoundError(2, 'No such file')

        with self.assertRaises(ValidatorUnavailableError):
            self.validator.validate('/tmp/x.conf')

    @patch('subprocess.run')
    def test_timeout_is_invalid(self, mock_run):
        """Test a hung syntax check is reported as a failed validation."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd='nginx', timeout=2)

        result = self.validator.validate('/tmp/x.conf')

        self.assertFalse(result.valid)
        self.assertIn('timed out', result.diagnostics)


if __name__ == '__main__':
    unittest.main()
