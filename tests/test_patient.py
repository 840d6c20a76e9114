#!/usr/bin/env python3
"""
Unit tests for patient intake, derived parameters and validation
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from dose_engine.messages import MessageCode
from dose_engine.patient import (build_patient_profile, calculate_bsa, calculate_creatinine_clearance,
                                 creatinine_to_mg_dl, safe_float, to_cm, to_kg, validate_patient_data)


class TestUnits:
    """Test numeric coercion and unit conversion"""

    @pytest.mark.parametrize("value,expected", [
        (70, 70.0),
        ("72.5", 72.5),
        ("80kg", 80.0),
        ("  1.2 mg/dL", 1.2),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
    ])
    def test_safe_float(self, value, expected):
        """Test leading numeric prefix parsing"""
        assert safe_float(value) == expected

    def test_conversions(self):
        """Test lbs, inches and µmol/L conversion"""
        assert to_kg(154, "lbs") == pytest.approx(69.853, abs=0.001)
        assert to_kg(70) == 70
        assert to_cm(65, "inches") == pytest.approx(165.1)
        assert creatinine_to_mg_dl(88.4, "μmol/L") == pytest.approx(1.0)
        assert creatinine_to_mg_dl(1.1) == 1.1


class TestDerivedParameters:
    """Test BSA and creatinine clearance"""

    def test_bsa_dubois(self):
        """Test DuBois BSA for a 70 kg, 170 cm adult"""
        assert calculate_bsa(70, 170) == pytest.approx(1.81, abs=0.01)

    @pytest.mark.parametrize("weight,height", [(0, 170), (70, 0), (None, 170), ("abc", "def")])
    def test_bsa_missing_input(self, weight, height):
        """Test missing inputs give 0"""
        assert calculate_bsa(weight, height) == 0

    def test_creatinine_clearance_male(self):
        """Test Cockcroft-Gault for a male patient"""
        assert calculate_creatinine_clearance(60, 70, 1.0, "male") == pytest.approx(77.78)

    def test_creatinine_clearance_female(self):
        """Test the female multiplier"""
        assert calculate_creatinine_clearance(60, 70, 1.0, "female") == pytest.approx(66.11)

    def test_creatinine_clearance_missing_creatinine(self):
        """Test missing creatinine gives 0"""
        assert calculate_creatinine_clearance(60, 70, 0) == 0


class TestBuildPatientProfile:
    """Test profile construction from form data"""

    def test_derives_bsa_and_crcl(self):
        """Test BSA and CrCl are derived from raw inputs"""
        patient = build_patient_profile({
            "weight": 154, "weight_unit": "lbs", "height": 165, "age": 68,
            "sex": "female", "creatinine": 0.9
        })

        assert patient.weight_kg == pytest.approx(69.85, abs=0.01)
        assert patient.bsa == pytest.approx(1.77, abs=0.01)
        assert 60 < patient.creatinine_clearance < 70

    def test_supplied_values_win(self):
        """Test explicit BSA and CrCl are not recomputed"""
        patient = build_patient_profile({
            "weight": 70, "height": 170, "age": 60, "creatinine": 1.0,
            "bsa": 2.0, "creatinine_clearance": 45, "biomarkers": {"HER2": "positive"}
        })

        assert patient.bsa == 2.0
        assert patient.creatinine_clearance == 45
        assert patient.biomarkers == {"HER2": "positive"}

    def test_empty_form(self):
        """Test empty input gives a zeroed profile"""
        patient = build_patient_profile({})
        assert patient.bsa == 0
        assert patient.creatinine_clearance == 0
        assert patient.sex is None


class TestValidatePatientData:
    """Test physiologic range validation"""

    def test_valid_adult(self):
        """Test typical adult passes without warnings"""
        result = validate_patient_data({"weight": 70, "height": 170, "age": 55, "creatinine": 1.0})
        assert result.is_valid
        assert result.errors == ()
        assert result.warnings == ()

    def test_invalid_number(self):
        """Test non-numeric input is an error"""
        result = validate_patient_data({"weight": "heavy"})
        assert not result.is_valid
        assert result.errors[0].code == MessageCode.FIELD_INVALID_NUMBER
        assert result.errors[0].text == "Weight must be a valid number"

    def test_out_of_range(self):
        """Test range errors name the limit"""
        result = validate_patient_data({"weight": 600, "height": 40, "age": 130})
        assert [e.code for e in result.errors] == [
            MessageCode.FIELD_ABOVE_MAX, MessageCode.FIELD_BELOW_MIN, MessageCode.FIELD_ABOVE_MAX
        ]
        assert result.errors[0].text == "Weight cannot exceed 500 kg"
        assert result.errors[1].text == "Height must be at least 50 cm"

    def test_weight_checked_in_kg(self):
        """Test pound input is converted before range checks"""
        result = validate_patient_data({"weight": 400, "weight_unit": "lbs"})
        assert result.is_valid
        assert [w.code for w in result.warnings] == [MessageCode.HIGH_WEIGHT]

    def test_warnings(self):
        """Test advisory warnings do not invalidate"""
        result = validate_patient_data({
            "weight": 8, "age": 80, "bsa": 0.4, "creatinine_clearance": 25, "creatinine": 20
        })

        assert result.is_valid
        assert [w.code for w in result.warnings] == [
            MessageCode.PEDIATRIC_WEIGHT,
            MessageCode.ELDERLY_AGE,
            MessageCode.BSA_LOW,
            MessageCode.CRCL_MODERATE_SEVERE,
            MessageCode.CREATININE_HIGH,
        ]

    @pytest.mark.parametrize("crcl,code", [
        (4, MessageCode.CRCL_SEVERE),
        (29, MessageCode.CRCL_MODERATE_SEVERE),
        (45, MessageCode.CRCL_MILD_MODERATE),
    ])
    def test_renal_warning_tiers(self, crcl, code):
        """Test CrCl warning tiers"""
        result = validate_patient_data({"creatinine_clearance": crcl})
        assert [w.code for w in result.warnings] == [code]

    def test_missing_fields_skipped(self):
        """Test absent fields are not validated"""
        result = validate_patient_data({"weight": "", "age": None})
        assert result.is_valid
        assert result.warnings == ()
