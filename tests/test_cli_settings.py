"""
Tests for the command line, settings and logging layers

Tests for:
- Settings defaults, environment overrides and validation
- Logger factory handler setup and JSON formatting
- treeforge CLI exit codes, layout selection and dry runs
"""

import unittest
from contextlib import redirect_stdout
from io import StringIO
from pathlib import Path
from unittest.mock import patch
import json
import logging
import os
import tempfile
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pydantic import ValidationError

from treeforge.cli import EXIT_FILESYSTEM_ERROR, EXIT_LAYOUT_ERROR, EXIT_OK, main
from treeforge.utils.logger import JsonFormatter, build_formatter, get_logger
from treeforge.utils.settings import Settings, get_settings


def make_record(message="hello %s", args=("world",)):
    return logging.LogRecord("tests", logging.INFO, __file__, 10, message, args, None)


def drop_handlers(name):
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestSettings(unittest.TestCase):
    """Test settings defaults and validation."""

    def test_defaults(self):
        app_settings = Settings()

        self.assertEqual(app_settings.layout_name, "react_dashboard")
        self.assertIsNone(app_settings.layout_path)
        self.assertEqual(app_settings.log_format, "plain")
        self.assertIsNone(app_settings.log_file)
        self.assertTrue(app_settings.base_path.is_absolute())

    def test_environment_overrides(self):
        """Test that TREEFORGE_* variables configure the run."""
        with tempfile.TemporaryDirectory() as temp_dir:
            env = {
                "TREEFORGE_BASE_PATH": temp_dir,
                "TREEFORGE_LAYOUT_NAME": "data_pipeline",
                "TREEFORGE_LOG_FORMAT": "json",
                "TREEFORGE_LOG_LEVEL": "debug",
            }
            with patch.dict(os.environ, env):
                app_settings = Settings()

            self.assertEqual(app_settings.base_path, Path(temp_dir))
            self.assertEqual(app_settings.layout_name, "data_pipeline")
            self.assertEqual(app_settings.log_format, "json")
            self.assertEqual(app_settings.log_level, "DEBUG")

    def test_invalid_environment(self):
        with self.assertRaises(ValidationError):
            Settings(environment="qa")

    def test_invalid_log_level(self):
        with self.assertRaises(ValidationError):
            Settings(log_level="LOUD")

    def test_invalid_log_format(self):
        with self.assertRaises(ValidationError):
            Settings(log_format="xml")

    def test_singleton(self):
        self.assertIs(get_settings(), get_settings())


class TestLogger(unittest.TestCase):
    """Test logger factory and formatters."""

    def test_json_formatter(self):
        """Test structured record fields."""
        formatter = JsonFormatter(Settings(project_name="Demo"))

        payload = json.loads(formatter.format(make_record()))

        self.assertEqual(payload["message"], "hello world")
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["project"], "Demo")
        self.assertEqual(payload["environment"], "development")
        self.assertIn("timestamp", payload)

    def test_plain_formatter_is_message_only(self):
        formatter = build_formatter(Settings(log_format="plain"))
        self.assertEqual(formatter.format(make_record()), "hello world")

    def test_handlers_attached_once(self):
        """Test that repeated lookups share one handler set on the package logger."""
        self.addCleanup(drop_handlers, "dedupe_pkg")

        first = get_logger("dedupe_pkg.module_a", Settings())
        second = get_logger("dedupe_pkg.module_b", Settings())
        third = get_logger("dedupe_pkg.module_c")

        self.assertEqual(first.name, "dedupe_pkg.module_a")
        self.assertEqual(second.name, "dedupe_pkg.module_b")
        self.assertEqual(third.name, "dedupe_pkg.module_c")
        self.assertEqual(len(logging.getLogger("dedupe_pkg").handlers), 2)

    def test_explicit_settings_rebuild_handlers(self):
        """Test that injected settings replace handlers built from earlier ones."""
        self.addCleanup(drop_handlers, "rebuild_pkg")
        get_logger("rebuild_pkg", Settings(log_format="plain"))

        get_logger("rebuild_pkg.sub", Settings(log_format="json"))
        get_logger("rebuild_pkg.other")

        handlers = logging.getLogger("rebuild_pkg").handlers
        self.assertEqual(len(handlers), 2)
        for handler in handlers:
            self.assertIsInstance(handler.formatter, JsonFormatter)

    def test_errors_routed_to_stderr(self):
        """Test that stdout carries only records below WARNING."""
        self.addCleanup(drop_handlers, "route_pkg")
        get_logger("route_pkg", Settings())

        handlers = {handler.stream: handler for handler in logging.getLogger("route_pkg").handlers}
        info_record = make_record("File created: /tmp/x/c.txt", ())
        error_record = logging.LogRecord("tests", logging.ERROR, __file__, 10, "boom", (), None)

        self.assertTrue(handlers[sys.stdout].filter(info_record))
        self.assertFalse(handlers[sys.stdout].filter(error_record))
        self.assertEqual(handlers[sys.stderr].level, logging.WARNING)

    def test_log_file_handler(self):
        """Test that a configured log file receives JSON records."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "logs" / "treeforge.log"
            self.addCleanup(drop_handlers, "filelog_pkg")

            logger = get_logger("filelog_pkg", Settings(log_file=log_file))
            logger.info("Directory created: /tmp/x/a")
            drop_handlers("filelog_pkg")

            lines = log_file.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 1)
            self.assertEqual(json.loads(lines[0])["message"], "Directory created: /tmp/x/a")


class TestCli(unittest.TestCase):
    """Test the treeforge command."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.settings = Settings(base_path=self.root)

    def tearDown(self):
        """Clean up test fixtures."""
        # Swap any handlers bound to the temporary directory for default ones
        get_logger("treeforge", get_settings())
        self.temp_dir.cleanup()

    def write_layout(self, content='{"a": {"b.txt": ""}, "c.txt": ""}'):
        layout_file = self.root / "layout.json"
        layout_file.write_text(content, encoding="utf-8")
        return layout_file

    def test_zero_arguments_uses_default_layout(self):
        """Test that a bare invocation scaffolds the bundled default layout."""
        exit_code = main([], app_settings=self.settings)

        self.assertEqual(exit_code, EXIT_OK)
        self.assertTrue((self.root / "src" / "App.jsx").is_file())
        self.assertTrue((self.root / "src" / "components" / "common" / "Button").is_dir())

    def test_rerun_succeeds(self):
        self.assertEqual(main([], app_settings=self.settings), EXIT_OK)
        self.assertEqual(main([], app_settings=self.settings), EXIT_OK)

    def test_layout_file_and_base_path(self):
        layout_file = self.write_layout()
        target = self.root / "target"
        target.mkdir()

        exit_code = main(["--layout", str(layout_file), "--base-path", str(target)])

        self.assertEqual(exit_code, EXIT_OK)
        self.assertTrue((target / "a" / "b.txt").is_file())
        self.assertTrue((target / "c.txt").is_file())

    def test_bundled_option(self):
        exit_code = main(["--bundled", "data_pipeline"], app_settings=self.settings)

        self.assertEqual(exit_code, EXIT_OK)
        self.assertTrue((self.root / "src" / "ingestion").is_dir())

    def test_layout_path_setting(self):
        """Test that a configured layout file wins over the bundled name."""
        layout_file = self.write_layout('{"only": {}}')
        app_settings = Settings(base_path=self.root, layout_path=layout_file)

        self.assertEqual(main([], app_settings=app_settings), EXIT_OK)
        self.assertTrue((self.root / "only").is_dir())
        self.assertFalse((self.root / "src").exists())

    def test_dry_run_writes_nothing(self):
        layout_file = self.write_layout()
        output = StringIO()

        with redirect_stdout(output):
            exit_code = main(["--layout", str(layout_file), "--dry-run"], app_settings=self.settings)

        self.assertEqual(exit_code, EXIT_OK)
        self.assertIn(f"Would create directory: {self.root / 'a'}", output.getvalue())
        self.assertFalse((self.root / "a").exists())

    def test_list_layouts(self):
        output = StringIO()

        with redirect_stdout(output):
            exit_code = main(["--list-layouts"], app_settings=self.settings)

        self.assertEqual(exit_code, EXIT_OK)
        self.assertEqual(output.getvalue().split(), ["data_pipeline", "react_dashboard"])

    def test_layout_error_exit_code(self):
        layout_file = self.write_layout('{"a": 42}')
        self.assertEqual(main(["--layout", str(layout_file)], app_settings=self.settings), EXIT_LAYOUT_ERROR)

    def test_unknown_bundled_exit_code(self):
        self.assertEqual(main(["--bundled", "nope"], app_settings=self.settings), EXIT_LAYOUT_ERROR)

    def test_filesystem_error_exit_code(self):
        """Test that a collision aborts with a non-zero status."""
        (self.root / "src").write_text("in the way")

        self.assertEqual(main([], app_settings=self.settings), EXIT_FILESYSTEM_ERROR)

    def test_injected_settings_configure_logging(self):
        """Test that settings passed to main() drive the log file and format."""
        layout_file = self.write_layout()
        target = self.root / "target"
        target.mkdir()
        log_file = self.root / "logs" / "run.log"
        app_settings = Settings(base_path=target, log_format="json", log_file=log_file)

        exit_code = main(["--layout", str(layout_file)], app_settings=app_settings)
        drop_handlers("treeforge")

        self.assertEqual(exit_code, EXIT_OK)
        messages = [json.loads(line)["message"] for line in log_file.read_text(encoding="utf-8").splitlines()]
        self.assertEqual(messages, [
            f"Directory created: {target / 'a'}",
            f"File created: {target / 'a' / 'b.txt'}",
            f"File created: {target / 'c.txt'}",
        ])

    def test_dry_run_conflict_exit_code(self):
        """Test that a dry run reports the collision a real run would hit."""
        layout_file = self.write_layout()
        (self.root / "a").write_text("in the way")
        output = StringIO()

        with redirect_stdout(output):
            exit_code = main(["--layout", str(layout_file), "--dry-run"], app_settings=self.settings)

        self.assertEqual(exit_code, EXIT_FILESYSTEM_ERROR)
        self.assertNotIn("Would create", output.getvalue())
        self.assertFalse((self.root / "c.txt").exists())

    def test_layout_sources_exclusive(self):
        with self.assertRaises(SystemExit) as ctx:
            main(["--layout", "x.json", "--bundled", "data_pipeline"], app_settings=self.settings)
        self.assertEqual(ctx.exception.code, 2)


def run_tests():
    """Run all tests with verbose output."""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestSettings))
    suite.addTests(loader.loadTestsFromTestCase(TestLogger))
    suite.addTests(loader.loadTestsFromTestCase(TestCli))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


if __name__ == "__main__":
    success = run_tests()
    sys.exit(0 if success else 1)
