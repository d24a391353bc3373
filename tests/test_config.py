"""Unit tests for EngineConfig (scaffold_engine.config).

Tests cover:
- Defaults and field validation
- save / load round trip
- from_env with every recognised variable
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from scaffold_engine.config import DEFAULT_MARKER, EngineConfig


class TestEngineConfig:
    @pytest.mark.unit
    def test_defaults(self):
        config = EngineConfig()
        assert config.templates_root == Path("./templates")
        assert config.workspace_root == Path(".")
        assert config.max_concurrency == 64
        assert config.lock_timeout == 30.0
        assert config.operation_timeout is None
        assert config.default_marker == DEFAULT_MARKER == "@scaffold-generated"
        assert config.lock_dir == Path(tempfile.gettempdir()) / "scaffold-engine-locks"

    @pytest.mark.unit
    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            EngineConfig(max_concurrency=0)

    @pytest.mark.unit
    def test_operation_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            EngineConfig(operation_timeout=0)

    @pytest.mark.unit
    def test_save_and_load(self, tmp_path: Path):
        config = EngineConfig(
            templates_root=tmp_path / "templates",
            max_concurrency=4,
            operation_timeout=12.5,
        )
        saved = config.save(tmp_path / "nested" / "config.json")
        assert saved.exists()

        loaded = EngineConfig.load(saved)
        assert loaded == config


class TestFromEnv:
    @pytest.mark.unit
    def test_empty_environment_uses_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            config = EngineConfig.from_env()
        assert config.templates_root == Path("./templates")
        assert config.operation_timeout is None

    @pytest.mark.unit
    def test_all_variables(self, tmp_path: Path):
        env = {
            "SCAFFOLD_TEMPLATES_PATH": str(tmp_path / "tpl"),
            "SCAFFOLD_WORKSPACE_ROOT": str(tmp_path / "ws"),
            "SCAFFOLD_MAX_CONCURRENCY": "16",
            "SCAFFOLD_LOCK_TIMEOUT": "2.5",
            "SCAFFOLD_LOCK_DIR": str(tmp_path / "locks"),
            "SCAFFOLD_OPERATION_TIMEOUT": "90",
            "SCAFFOLD_MARKER": "@custom",
        }
        with patch.dict("os.environ", env, clear=True):
            config = EngineConfig.from_env()

        assert config.templates_root == tmp_path / "tpl"
        assert config.workspace_root == tmp_path / "ws"
        assert config.max_concurrency == 16
        assert config.lock_timeout == 2.5
        assert config.lock_dir == tmp_path / "locks"
        assert config.operation_timeout == 90.0
        assert config.default_marker == "@custom"

    @pytest.mark.unit
    def test_invalid_value_rejected(self):
        with patch.dict("os.environ", {"SCAFFOLD_MAX_CONCURRENCY": "0"}, clear=True):
            with pytest.raises(ValidationError):
                EngineConfig.from_env()
