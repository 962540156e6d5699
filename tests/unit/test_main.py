"""Unit tests for the command line entry point."""

import io
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

import egress_supervisor_main


class TestMain(unittest.TestCase):
    """Test cases for the CLI."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()
        self.nginx_conf = os.path.join(self.test_dir, 'nginx-rtmp.conf')
        template_file = os.path.join(self.test_dir, 'template.conf')
        with open(template_file, 'w', encoding='utf-8') as f:
            f.write('app {{INGEST_KEY}} {\n{{PUSH_DESTINATIONS}}\n}\n')
        self.settings_file = os.path.join(self.test_dir, 'egress.yaml')
        with open(self.settings_file, 'w', encoding='utf-8') as f:
            f.write(
                f'''
nginx:
  binary: /usr/sbin/nginx
  config_path: {self.nginx_conf}
supervisor:
  validation: disabled
store:
  type: static
  template_file: template.conf
  destinations:
    - target_url: rtmp://a/b
      secret_key: s1
'''
            )

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _run(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = egress_supervisor_main.main(
                ['--config', self.settings_file, *argv]
            )
        return code, out.getvalue()

    def test_missing_settings_file(self):
        """Test a missing settings file returns a failure code."""
        code = egress_supervisor_main.main(
            ['--config', '/nonexistent/egress.yaml', 'status']
        )
        self.assertEqual(code, 1)

    def _overwrite_settings(self, text):
        with open(self.settings_file, 'w', encoding='utf-8') as f:
            f.write(text)

    def test_scalar_section_returns_failure(self):
        """Test a scalar settings section fails without a traceback."""
        self._overwrite_settings('nginx: 5\nstore:\n  type: sqlite\n  path: x\n')
        code, _ = self._run('status')
        self.assertEqual(code, 1)

    def test_malformed_yaml_returns_failure(self):
        """Test an unparsable settings file fails without a traceback."""
        self._overwrite_settings('store: [unclosed\n')
        code, _ = self._run('status')
        self.assertEqual(code, 1)

    def test_show_without_config(self):
        """Test show reports when nothing has been applied."""
        code, out = self._run('show')
        self.assertEqual(code, 0)
        self.assertIn('No config found', out)

    def test_status_stopped(self):
        """Test status exits non-zero when nginx is not running."""
        code, out = self._run('status')
        self.assertEqual(code, egress_supervisor_main.EXIT_NOT_RUNNING)
        self.assertEqual(out.strip(), 'stopped')

    def test_apply_without_ingest_key(self):
        """Test apply fails cleanly when the ingest key is unset."""
        code, _ = self._run('apply')
        self.assertEqual(code, 1)
        self.assertFalse(os.path.exists(self.nginx_conf))

    @patch('subprocess.Popen')
    def test_apply_spawns(self, mock_popen):
        """Test apply writes the config and starts nginx."""
        mock_popen.return_value.pid = 4242
        mock_popen.return_value.wait.return_value = 0

        with patch.dict(os.environ, {'INGEST_KEY': 'live'}):
            code, out = self._run('apply')

        self.assertEqual(code, 0)
        self.assertIn('app live {', out)
        self.assertIn('push "rtmp://a/b/s1";', out)
        mock_popen.assert_called_once()
        with open(self.nginx_conf, 'r', encoding='utf-8') as f:
            self.assertIn('push "rtmp://a/b/s1";', f.read())


if __name__ == '__main__':
    unittest.main()
