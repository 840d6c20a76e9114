#!/usr/bin/env python3
"""
Unit tests for concentration and solvent validation
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from dose_engine.compatibility import (validate_concentration, validate_solvent_compatibility,
                                       compatible_solvents, normalize_solvent, is_dextrose)
from dose_engine.messages import MessageCode
from dose_engine.schema import DoseSpecification


class TestConcentration:
    """Test dose/volume bounds"""

    def test_paclitaxel_too_concentrated(self):
        """Test concentration above 1.2 mg/mL"""
        message = validate_concentration("Paclitaxel", 300, 200)
        assert message.code == MessageCode.CONCENTRATION_TOO_HIGH
        assert "1.50" in message.text

    def test_paclitaxel_too_dilute(self):
        """Test concentration below 0.3 mg/mL"""
        message = validate_concentration("Paclitaxel", 100, 500)
        assert message.code == MessageCode.CONCENTRATION_TOO_LOW

    def test_paclitaxel_in_range(self):
        """Test concentration inside bounds"""
        assert validate_concentration("Paclitaxel", 300, 500) is None

    def test_oxaliplatin_minimum_volume(self):
        """Test oxaliplatin needs at least 250 mL"""
        message = validate_concentration("Oxaliplatin", 150, 100)
        assert message.code == MessageCode.VOLUME_TOO_LOW
        assert "250" in message.text
        assert validate_concentration("Oxaliplatin", 150, 250) is None

    @pytest.mark.parametrize("volume", [0, None, -10])
    def test_no_volume_skips(self, volume):
        """Test missing volume skips the check"""
        assert validate_concentration("Paclitaxel", 300, volume) is None

    def test_drug_without_bounds(self):
        """Test drugs without bounds are never flagged"""
        assert validate_concentration("Gemcitabine", 5000, 10) is None


class TestSolventCompatibility:
    """Test solvent matching"""

    def test_normalization(self):
        """Test case and punctuation are ignored"""
        assert normalize_solvent("Normal Saline 0.9%") == "normalsaline09"
        assert normalize_solvent("NS") == "normalsaline09"
        assert normalize_solvent("D5W") == "dextrose5"
        assert is_dextrose("Glucose 5%")
        assert not is_dextrose("NS")

    def test_oxaliplatin_requires_dextrose(self):
        """Test NS for oxaliplatin names dextrose 5% as required"""
        drug = DoseSpecification(name="Oxaliplatin", dosage="85", unit="mg/m²")
        message = validate_solvent_compatibility(drug, "NS")

        assert message is not None
        assert message.code == MessageCode.SOLVENT_DEXTROSE_ONLY
        assert message.params["required_solvent"] == "Dextrose 5%"
        assert "Dextrose 5%" in message.text

    def test_dextrose_only_independent_of_list(self):
        """Test the dextrose rule holds even when the line lists saline"""
        drug = DoseSpecification(name="Oxaliplatin", dosage="85", unit="mg/m²",
                                 available_solvents=["Dextrose 5%", "Normal Saline 0.9%"])
        message = validate_solvent_compatibility(drug, "Normal Saline 0.9%")
        assert message.code == MessageCode.SOLVENT_DEXTROSE_ONLY

    @pytest.mark.parametrize("solvent", ["Dextrose 5%", "D5W", "glucose 5%"])
    def test_oxaliplatin_dextrose_accepted(self, solvent):
        """Test dextrose spellings are accepted for oxaliplatin"""
        drug = DoseSpecification(name="Oxaliplatin", dosage="85", unit="mg/m²")
        assert validate_solvent_compatibility(drug, solvent) is None

    def test_list_mismatch(self):
        """Test mismatch names the allowed solvents"""
        drug = DoseSpecification(name="Gemcitabine", dosage="1000", unit="mg/m²")
        message = validate_solvent_compatibility(drug, "Dextrose 5%")

        assert message.code == MessageCode.SOLVENT_INCOMPATIBLE
        assert "Normal Saline 0.9%" in message.text

    def test_line_solvents_override_defaults(self):
        """Test solvents listed on the drug line replace the registry defaults"""
        drug = DoseSpecification(name="Gemcitabine", dosage="1000", unit="mg/m²",
                                 available_solvents=["Dextrose 5%"])
        assert compatible_solvents(drug) == ("Dextrose 5%",)
        assert validate_solvent_compatibility(drug, "dextrose 5 %") is None

    def test_no_solvent_selected(self):
        """Test no selection means no issue"""
        drug = DoseSpecification(name="Oxaliplatin", dosage="85", unit="mg/m²")
        assert validate_solvent_compatibility(drug, None) is None
        assert validate_solvent_compatibility(drug, "") is None

    def test_unknown_drug_without_list(self):
        """Test drugs without any solvent list are not flagged"""
        drug = DoseSpecification(name="Pembrolizumab", dosage="200", unit="mg")
        assert validate_solvent_compatibility(drug, "Ringer") is None
