"""
Unit tests for config_loader module.
"""

import logging
import shutil
import tempfile
from pathlib import Path

import pytest

from form_engine.config_loader import (
    deep_merge,
    get_config_value,
    get_default_config,
    get_logging_level,
    load_config,
    validate_config,
)
from form_engine.exceptions import ConfigurationLoadError


class TestConfigLoader:
    """Test cases for configuration loading functionality."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "config.yaml"

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def _write(self, text):
        with open(self.config_path, 'w', encoding='utf-8') as f:
            f.write(text)

    def test_missing_file_returns_defaults(self):
        assert load_config(self.config_path) == get_default_config()

    def test_user_values_merged_over_defaults(self):
        self._write(
            "store:\n"
            "  schema_path: data/form.yaml\n"
            "workflow:\n"
            "  auto_approve_roles: []\n"
        )

        config = load_config(self.config_path)

        assert config['store']['schema_path'] == 'data/form.yaml'
        assert config['store']['tickets_path'] == 'tickets/tickets.jsonl'
        assert config['workflow']['auto_approve_roles'] == []
        assert config['workflow']['roles'] == ['student', 'class-representative', 'admin']

    def test_empty_file_returns_defaults(self):
        self._write("")
        assert load_config(self.config_path) == get_default_config()

    def test_invalid_yaml_falls_back(self):
        self._write("store: [unclosed\n")
        assert load_config(self.config_path) == get_default_config()

    def test_invalid_yaml_strict_raises(self):
        self._write("store: [unclosed\n")

        with pytest.raises(ConfigurationLoadError) as exc_info:
            load_config(self.config_path, strict=True)

        assert exc_info.value.config_path == self.config_path

    def test_non_mapping_strict_raises(self):
        self._write("- just\n- a list\n")

        assert load_config(self.config_path) == get_default_config()
        with pytest.raises(ConfigurationLoadError):
            load_config(self.config_path, strict=True)


class TestConfigHelpers:
    """Test merge, validation and lookup helpers."""

    def test_deep_merge_does_not_mutate(self):
        base = {'a': {'x': 1, 'y': 2}}
        merged = deep_merge(base, {'a': {'y': 3}, 'b': 4})

        assert merged == {'a': {'x': 1, 'y': 3}, 'b': 4}
        assert base == {'a': {'x': 1, 'y': 2}}

    def test_defaults_are_valid(self):
        assert validate_config(get_default_config()) == []

    def test_validate_reports_problems(self):
        config = get_default_config()
        config['store']['tickets_path'] = ''
        config['workflow']['editor_roles'] = ['superuser']
        del config['ui']

        problems = validate_config(config)

        assert "Missing required configuration section: ui" in problems
        assert "store.tickets_path must be a non-empty string" in problems
        assert any('superuser' in p for p in problems)

    def test_validate_empty_roles(self):
        config = get_default_config()
        config['workflow']['roles'] = []
        assert "workflow.roles must be a non-empty list" in validate_config(config)

    def test_get_config_value(self):
        config = get_default_config()

        assert get_config_value(config, 'ui', 'form_title') == 'Report an Issue'
        assert get_config_value(config, 'ui', 'missing', 'x') == 'x'
        assert get_config_value(config, 'nope', 'key', 5) == 5
        assert get_config_value({'ui': 'broken'}, 'ui', 'form_title', 'y') == 'y'

    @pytest.mark.parametrize("name,level", [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("bogus", logging.INFO),
    ])
    def test_get_logging_level(self, name, level):
        assert get_logging_level(name) == level
