#!/usr/bin/env python3
"""
Unit tests for the age and renal adjustment pipeline
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from dose_engine.adjustments import (apply_age_adjustment, apply_renal_adjustment, apply_adjustments,
                                     matching_renal_tier)
from dose_engine.registry import get_registry
from dose_engine.schema import EngineConfig, PatientProfile


class TestAgeAdjustment:
    """Test elderly dose reduction"""

    def test_elderly_age_sensitive_drug(self):
        """Test 15% reduction above 70 for an age-sensitive agent"""
        assert apply_age_adjustment(108, 75, "Doxorubicin") == pytest.approx(91.8)

    def test_younger_patient_unchanged(self):
        """Test no reduction below the threshold"""
        assert apply_age_adjustment(108, 50, "Doxorubicin") == 108

    def test_threshold_is_exclusive(self):
        """Test no reduction at exactly 70"""
        assert apply_age_adjustment(108, 70, "Doxorubicin") == 108

    def test_non_sensitive_drug_unchanged(self):
        """Test drugs outside the age-sensitive set are not reduced"""
        assert apply_age_adjustment(100, 80, "Gemcitabine") == 100

    def test_case_insensitive_name(self):
        """Test drug names match regardless of case"""
        assert apply_age_adjustment(100, 80, "paclitaxel") == pytest.approx(85)

    def test_config_override(self):
        """Test threshold and factor come from config"""
        config = EngineConfig(elderly_age_threshold=65, elderly_dose_factor=0.8)
        assert apply_age_adjustment(100, 68, "Cisplatin", config=config) == pytest.approx(80)


class TestRenalAdjustment:
    """Test renal tier adjustments"""

    @pytest.mark.parametrize("crcl,expected", [
        (90, 100),
        (60, 100),
        (59.9, 50),
        (45, 50),
        (30, 50),
        (29.9, 0),
        (25, 0),
    ])
    def test_cisplatin(self, crcl, expected):
        """Test cisplatin halving and contraindication tiers"""
        assert apply_renal_adjustment(100, crcl, "Cisplatin") == pytest.approx(expected)

    @pytest.mark.parametrize("crcl,expected", [(55, 100), (40, 75), (30, 75), (20, 100)])
    def test_capecitabine(self, crcl, expected):
        """Test capecitabine reduction only inside its tier"""
        assert apply_renal_adjustment(100, crcl, "Capecitabine") == pytest.approx(expected)

    @pytest.mark.parametrize("crcl,expected", [(50, 100), (45, 100), (44, 0), (10, 0)])
    def test_pemetrexed(self, crcl, expected):
        """Test pemetrexed contraindicated below 45"""
        assert apply_renal_adjustment(100, crcl, "Pemetrexed") == pytest.approx(expected)

    @pytest.mark.parametrize("crcl,expected", [(70, 100), (50, 75), (40, 75), (30, 100)])
    def test_topotecan(self, crcl, expected):
        """Test topotecan reduction between 40 and 60"""
        assert apply_renal_adjustment(100, crcl, "Topotecan") == pytest.approx(expected)

    def test_drug_without_rule(self):
        """Test drugs without a renal rule are unchanged"""
        assert apply_renal_adjustment(100, 10, "Gemcitabine") == 100

    def test_matching_tier(self):
        """Test tier lookup honours the rule threshold"""
        rule = get_registry().renal_rule("Cisplatin")
        assert matching_renal_tier(rule, 70) is None
        assert matching_renal_tier(rule, 45).factor == 0.5
        assert matching_renal_tier(rule, 10).factor == 0
        assert matching_renal_tier(None, 10) is None


class TestAdjustmentPipeline:
    """Test ordered application of adjustments"""

    def test_age_then_renal(self):
        """Test both adjustments multiply in order"""
        patient = PatientProfile(age_years=75, creatinine_clearance=45)
        assert apply_adjustments(100, patient, "Cisplatin") == pytest.approx(42.5)

    def test_contraindicated_is_zero(self):
        """Test renal contraindication forces 0"""
        patient = PatientProfile(age_years=60, creatinine_clearance=25)
        assert apply_adjustments(100, patient, "Cisplatin") == 0

    def test_normal_patient_unchanged(self):
        """Test normal renal function and age leave the dose unchanged"""
        patient = PatientProfile(age_years=50, creatinine_clearance=90)
        assert apply_adjustments(100, patient, "Cisplatin") == 100
