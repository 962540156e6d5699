"""Unit tests for configuration module."""

import os
import shutil
import tempfile
import unittest

from egress.config import NginxSettings, Settings, SettingsError


class TestSettings(unittest.TestCase):
    """Test cases for Settings class."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _write(self, text):
        config_path = os.path.join(self.test_dir, 'egress.yaml')
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write(text)
        return config_path

    def test_load_settings_from_file(self):
        """Test loading settings from YAML file."""
        config_path = self._write(
            '''
nginx:
  binary: /usr/sbin/nginx
  config_path: /var/run/egress/nginx.conf
  validate_timeout: 3
supervisor:
  liveness: pidfile
  validation: optional
store:
  type: static
  template_file: template.conf
  destinations:
    - target_url: rtmp://a/b
      secret_key: s1
'''
        )

        settings = Settings.from_yaml(config_path)
        self.assertEqual(settings.nginx.binary, '/usr/sbin/nginx')
        self.assertEqual(settings.nginx.config_path,
                         '/var/run/egress/nginx.conf')
        self.assertEqual(settings.nginx.validate_timeout, 3)
        self.assertEqual(settings.nginx.pid_file, '/tmp/nginx.pid')
        self.assertEqual(settings.supervisor.liveness, 'pidfile')
        self.assertEqual(settings.supervisor.validation, 'optional')
        self.assertEqual(settings.store.template_file,
                         os.path.join(self.test_dir, 'template.conf'))
        self.assertEqual(len(settings.store.destinations), 1)
        self.assertEqual(settings.metrics.port, 8000)

    def test_relative_sqlite_path_resolved(self):
        """Test relative store paths resolve against the settings file."""
        config_path = self._write('store:\n  type: sqlite\n  path: data/db.sqlite\n')
        settings = Settings.from_yaml(config_path)
        self.assertEqual(settings.store.path,
                         os.path.join(self.test_dir, 'data', 'db.sqlite'))

    def test_load_settings_missing_file(self):
        """Test loading settings from non-existent file."""
        with self.assertRaises(FileNotFoundError):
            Settings.from_yaml('/nonexistent/egress.yaml')

    def test_store_section_required(self):
        """Test settings without a store are rejected."""
        with self.assertRaises(SettingsError):
            Settings(nginx={'binary': 'nginx'})

    def test_invalid_liveness_strategy(self):
        """Test an unknown liveness strategy is rejected."""
        with self.assertRaises(SettingsError):
            Settings(
                supervisor={'liveness': 'guess'},
                store={'type': 'sqlite', 'path': 'db.sqlite'}
            )

    def test_invalid_validation_mode(self):
        """Test an unknown validation mode is rejected."""
        with self.assertRaises(SettingsError):
            Settings(
                supervisor={'validation': 'sometimes'},
                store={'type': 'sqlite', 'path': 'db.sqlite'}
            )

    def test_unknown_key_rejected(self):
        """Test unknown keys in a section raise SettingsError."""
        with self.assertRaises(SettingsError):
            Settings(
                nginx={'bianry': 'nginx'},
                store={'type': 'sqlite', 'path': 'db.sqlite'}
            )

    def test_wrong_section_type(self):
        """Test a non-mapping section raises SettingsError."""
        with self.assertRaises(SettingsError):
            Settings(nginx='nginx', store={'type': 'sqlite', 'path': 'x'})

    def test_scalar_section_in_file(self):
        """Test a scalar section in the YAML file raises SettingsError."""
        config_path = self._write("nginx: 5\nstore:\n  type: sqlite\n  path: x\n")
        with self.assertRaises(SettingsError):
            Settings.from_yaml(config_path)

    def test_malformed_yaml(self):
        """Test unparsable YAML raises SettingsError."""
        config_path = self._write("store: [unclosed\n")
        with self.assertRaises(SettingsError):
            Settings.from_yaml(config_path)

    def test_static_store_requires_template(self):
        """Test the static store needs a template file."""
        with self.assertRaises(SettingsError):
            Settings(store={'type': 'static'})


class TestNginxSettings(unittest.TestCase):
    """Test cases for NginxSettings class."""

    def test_build_commands(self):
        """Test relay command lines."""
        settings = NginxSettings(binary='/bin/nginx', config_path='/tmp/a.conf')
        self.assertEqual(
            settings.build_run_command(),
            ['/bin/nginx', '-c', '/tmp/a.conf', '-g', 'daemon off;']
        )
        self.assertEqual(
            settings.build_test_command('/tmp/b.conf'),
            ['/bin/nginx', '-t', '-c', '/tmp/b.conf']
        )

    def test_non_positive_timeout_rejected(self):
        """Test timeouts must be positive."""
        with self.assertRaises(SettingsError):
            NginxSettings(validate_timeout=0)


if __name__ == '__main__':
    unittest.main()
