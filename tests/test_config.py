#!/usr/bin/env python3
"""
Unit tests for engine configuration loading and structured errors
"""

import logging
import pytest
import tempfile
import shutil
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from dose_engine.config import load_engine_config
from dose_engine.errors import DoseEngineError, ErrorCode, ErrorLogger
from dose_engine.schema import EngineConfig

PROJECT_CONFIG = Path(__file__).parent.parent / "config" / "dose_engine.yaml"


class TestLoadEngineConfig:
    """Test the runtime_config loader"""

    def setup_method(self):
        """Set up test fixtures"""
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        """Clean up test fixtures"""
        shutil.rmtree(self.temp_dir)

    def _write(self, text):
        path = self.temp_dir / "dose_engine.yaml"
        path.write_text(text, encoding='utf-8')
        return path

    def test_project_config_matches_defaults(self):
        """Test the shipped config file restates the defaults"""
        assert load_engine_config(PROJECT_CONFIG) == EngineConfig()

    def test_overrides(self):
        """Test values in runtime_config override defaults"""
        path = self._write("runtime_config:\n  gfr_cap: 130\n  elderly_dose_factor: 0.8\n  dose_decimals: 0\n")
        config = load_engine_config(path)

        assert config.gfr_cap == 130
        assert config.elderly_dose_factor == 0.8
        assert config.dose_decimals == 0
        assert config.bsa_cap_threshold == 2.0

    def test_missing_file_uses_defaults(self):
        """Test missing file falls back to defaults"""
        assert load_engine_config(self.temp_dir / "absent.yaml") == EngineConfig()

    def test_empty_file_uses_defaults(self):
        """Test an empty file or section keeps defaults"""
        assert load_engine_config(self._write("")) == EngineConfig()
        assert load_engine_config(self._write("runtime_config:\n")) == EngineConfig()

    def test_unreadable_yaml_uses_defaults(self):
        """Test YAML syntax errors fall back to defaults"""
        assert load_engine_config(self._write("runtime_config: [gfr_cap: 1")) == EngineConfig()

    def test_invalid_value_raises(self):
        """Test values failing validation raise a config error"""
        path = self._write("runtime_config:\n  gfr_cap: plenty\n")
        with pytest.raises(DoseEngineError) as exc_info:
            load_engine_config(path)

        assert exc_info.value.error_code == ErrorCode.CFG_INVALID_CONFIG
        assert exc_info.value.details["path"] == str(path)


class TestDoseEngineError:
    """Test structured error records"""

    def test_to_dict(self):
        """Test the audit record carries code, category, details and cause"""
        error = DoseEngineError(ErrorCode.REG_INVALID_ENTRY, "bad entry", details={"section": "interactions"},
                                original_exception=ValueError("boom"))
        record = error.to_dict()

        assert str(error) == "[REG_003] bad entry"
        assert record["error_code"] == "REG_003"
        assert record["category"] == "Reference data entry failed validation"
        assert record["detail_section"] == "interactions"
        assert record["cause"] == "ValueError: boom"
        assert len(record["trace_id"]) == 8

    def test_no_cause(self):
        """Test errors without an original exception omit the cause"""
        assert "cause" not in DoseEngineError(ErrorCode.CFG_FILE_NOT_FOUND, "missing").to_dict()

    def test_descriptions(self):
        """Test every error code has a description"""
        for code in ErrorCode:
            assert code.description

    def test_logged_record(self, caplog):
        """Test the logger writes code, description and trace id with the audit record attached"""
        error = DoseEngineError(ErrorCode.SAFETY_CHECK_FAILED, "Safety check failed for regimen AC")

        with caplog.at_level(logging.ERROR, logger="dose_engine.tests"):
            ErrorLogger("dose_engine.tests").log_error(error)

        record = caplog.records[-1]
        assert "SAFETY_001 Safety check orchestration fault" in record.getMessage()
        assert error.trace_id in record.getMessage()
        assert record.dose_engine_error["message"] == "Safety check failed for regimen AC"
