#!/usr/bin/env python3
"""
Unit tests for reference registry loading
"""

import pytest
import yaml
import tempfile
import shutil
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from dose_engine.errors import DoseEngineError, ErrorCode
from dose_engine.registry import (DATA_DIR, LIMITS_FILE, SAFETY_FILE, build_registry, get_registry,
                                  load_registry)
from dose_engine.schema import DoseLimit, EngineConfig, InteractionSeverity


class TestPackagedRegistry:
    """Test the registry built from packaged data"""

    def setup_method(self):
        """Set up test fixtures"""
        self.registry = get_registry()

    def test_loaded_once(self):
        """Test the process-wide registry is shared"""
        assert get_registry() is self.registry

    def test_dose_limits(self):
        """Test dose limit lookups"""
        doxorubicin = self.registry.dose_limit("Doxorubicin")
        assert doxorubicin.max_per_cycle == 75
        assert doxorubicin.max_cumulative == 550
        assert self.registry.dose_limit("doxorubicin") == doxorubicin
        assert self.registry.dose_limit("Unknown") is None

    def test_renal_rules(self):
        """Test renal rules carry ordered tiers"""
        rule = self.registry.renal_rule("Cisplatin")
        assert rule.crcl_threshold == 60
        assert [t.factor for t in rule.tiers] == [0.5, 0]
        assert self.registry.renal_rule("Gemcitabine") is None

    def test_hepatic_rule_is_reference_only(self):
        """Test hepatic rules are loaded as reference data"""
        assert self.registry.dose_limit("Docetaxel").hepatic_adjustment.bilirubin_threshold == 1.5

    def test_age_sensitive(self):
        """Test age-sensitive allow-list"""
        assert self.registry.is_age_sensitive("Carboplatin")
        assert not self.registry.is_age_sensitive("Gemcitabine")

    def test_interaction_symmetric(self):
        """Test interaction lookup ignores pair order"""
        forward = self.registry.interaction_between("Warfarin", "Capecitabine")
        backward = self.registry.interaction_between("capecitabine", "warfarin")
        assert forward is backward
        assert forward.severity == InteractionSeverity.MAJOR
        assert self.registry.interaction_between("Warfarin", "Gemcitabine") is None

    def test_relations(self):
        """Test contraindication, prerequisite and monitoring lookups"""
        assert len(self.registry.contraindications_for("Cisplatin")) == 2
        assert self.registry.prerequisites_for("Trastuzumab")[0].biomarker == "HER2"
        assert [m.parameter for m in self.registry.monitoring_for("Cisplatin")] == ["Creatinine", "Magnesium"]
        assert self.registry.is_dextrose_only("Oxaliplatin")
        assert self.registry.is_cardiotoxic("Epirubicin")
        assert self.registry.nephrotoxic_rule("Cisplatin").crcl_below == 60

    def test_immutable(self):
        """Test registries cannot be mutated"""
        with pytest.raises(TypeError):
            self.registry.dose_limits["cisplatin"] = None
        with pytest.raises(AttributeError):
            self.registry.interactions = ()

    def test_dose_sanity_rules(self):
        """Test dose plausibility thresholds"""
        rules = self.registry.dose_sanity
        assert (rules.critical_ratio, rules.elevated_ratio, rules.low_ratio) == (2.0, 1.5, 0.5)
        assert self.registry.high_dose_threshold("doxorubicin") == 100
        assert self.registry.high_dose_threshold("Epirubicin") is None
        assert self.registry.is_calvert_checked("CARBOPLATIN")
        assert not self.registry.is_calvert_checked("Cisplatin")

    def test_gfr_cap_is_engine_config_only(self):
        """Test dose limits carry no GFR cap of their own"""
        assert "gfr_cap" not in DoseLimit.model_fields
        assert EngineConfig().gfr_cap == 125


class TestRegistryLoading:
    """Test loading from a data directory"""

    def setup_method(self):
        """Set up test fixtures"""
        self.data_dir = Path(tempfile.mkdtemp())
        shutil.copy(DATA_DIR / LIMITS_FILE, self.data_dir / LIMITS_FILE)
        shutil.copy(DATA_DIR / SAFETY_FILE, self.data_dir / SAFETY_FILE)

    def teardown_method(self):
        """Clean up test fixtures"""
        shutil.rmtree(self.data_dir)

    def _rewrite_safety(self, mutate):
        path = self.data_dir / SAFETY_FILE
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        mutate(data)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, allow_unicode=True)

    def test_load_copy(self):
        """Test a copied data directory loads the same registry"""
        registry = load_registry(self.data_dir)
        assert registry.dose_limit("Paclitaxel") == get_registry().dose_limit("Paclitaxel")

    def test_missing_file(self):
        """Test missing data file raises a registry error"""
        (self.data_dir / SAFETY_FILE).unlink()
        with pytest.raises(DoseEngineError) as exc_info:
            load_registry(self.data_dir)
        assert exc_info.value.error_code == ErrorCode.REG_FILE_NOT_FOUND

    def test_invalid_yaml(self):
        """Test unparseable YAML raises a registry error"""
        (self.data_dir / LIMITS_FILE).write_text("dose_limits: [unclosed", encoding='utf-8')
        with pytest.raises(DoseEngineError) as exc_info:
            load_registry(self.data_dir)
        assert exc_info.value.error_code == ErrorCode.REG_INVALID_YAML

    def test_invalid_entry(self):
        """Test an entry failing validation names its section"""
        self._rewrite_safety(lambda d: d['interactions'].append({'drug1': 'A', 'drug2': 'B', 'severity': 'severe'}))
        with pytest.raises(DoseEngineError) as exc_info:
            load_registry(self.data_dir)
        assert exc_info.value.error_code == ErrorCode.REG_INVALID_ENTRY
        assert exc_info.value.details['section'] == 'interactions'

    def test_unknown_condition(self):
        """Test contraindications must reference a known predicate"""
        self._rewrite_safety(lambda d: d['contraindications'].append({
            'drug': 'Gemcitabine', 'condition': 'full_moon', 'severity': 'relative', 'description': 'x'
        }))
        with pytest.raises(DoseEngineError) as exc_info:
            load_registry(self.data_dir)
        assert exc_info.value.error_code == ErrorCode.REG_UNKNOWN_CONDITION

    def test_build_from_dicts(self):
        """Test building a registry from in-memory data"""
        registry = build_registry(
            {'dose_limits': {'Testdrug': {'max_per_cycle': 10, 'unit': 'mg'}}},
            {}
        )
        assert registry.dose_limit("TESTDRUG").max_per_cycle == 10
        assert registry.interactions == ()
