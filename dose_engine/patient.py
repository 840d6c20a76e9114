"""
Patient intake: unit conversion, derived BSA and creatinine clearance, and
physiologic range validation of raw form data.
"""

import logging
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .messages import ClinicalMessage, MessageCode, make_message
from .schema import PatientProfile
from .units import creatinine_to_mg_dl, safe_float, to_cm, to_kg

logger = logging.getLogger(__name__)

__all__ = [
    "safe_float", "to_kg", "to_cm", "creatinine_to_mg_dl",
    "calculate_bsa", "calculate_creatinine_clearance",
    "build_patient_profile", "validate_patient_data",
    "PatientValidation", "VALIDATION_RULES",
]

VALIDATION_RULES = {
    "weight": {"min": 1, "max": 500, "unit": "kg"},
    "height": {"min": 50, "max": 250, "unit": "cm"},
    "age": {"min": 0, "max": 120, "unit": "years"},
    "bsa": {"min": 0.5, "max": 3.5, "unit": "m²"},
    "creatinine_clearance": {"min": 5, "max": 200, "unit": "mL/min"},
    "creatinine": {"min": 0.1, "max": 15, "unit": "mg/dL"},
}

PEDIATRIC_WEIGHT_KG = 10
HIGH_WEIGHT_KG = 150
PEDIATRIC_AGE = 18
ELDERLY_AGE = 75


class PatientValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: Tuple[ClinicalMessage, ...] = ()
    warnings: Tuple[ClinicalMessage, ...] = ()


def calculate_bsa(weight_kg: Any, height_cm: Any) -> float:
    """DuBois formula, rounded to 2 decimals; 0 when weight or height is missing"""
    weight = safe_float(weight_kg)
    height = safe_float(height_cm)
    if weight <= 0 or height <= 0:
        return 0.0
    return round(0.007184 * height ** 0.725 * weight ** 0.425, 2)


def calculate_creatinine_clearance(age: Any, weight_kg: Any, creatinine_mg_dl: Any,
                                   sex: Optional[str] = None) -> float:
    """Cockcroft-Gault, rounded to 2 decimals; 0 when creatinine or weight is missing"""
    age = safe_float(age)
    weight = safe_float(weight_kg)
    creatinine = safe_float(creatinine_mg_dl)
    if creatinine <= 0 or weight <= 0:
        return 0.0

    sex_multiplier = 0.85 if (sex or "").strip().lower() == "female" else 1.0
    crcl = (140 - age) * weight * sex_multiplier / (72 * creatinine)
    return max(round(crcl, 2), 0.0)


def build_patient_profile(data: Mapping[str, Any]) -> PatientProfile:
    """
    Build a PatientProfile from raw form data.
    Accepts weight in kg or lbs, height in cm or inches and creatinine in mg/dL or µmol/L;
    BSA and creatinine clearance are derived unless supplied.
    """
    weight_kg = to_kg(data.get("weight"), data.get("weight_unit") or "kg")
    height_cm = to_cm(data.get("height"), data.get("height_unit") or "cm")
    age = safe_float(data.get("age"))
    creatinine = creatinine_to_mg_dl(data.get("creatinine"), data.get("creatinine_unit") or "mg/dL")
    sex = data.get("sex") or None

    bsa = safe_float(data.get("bsa"))
    if bsa <= 0:
        bsa = calculate_bsa(weight_kg, height_cm)

    crcl = safe_float(data.get("creatinine_clearance"))
    if crcl <= 0:
        crcl = calculate_creatinine_clearance(age, weight_kg, creatinine, sex)

    return PatientProfile(
        weight_kg=weight_kg,
        height_cm=height_cm,
        age_years=age,
        sex=sex,
        creatinine_mg_dl=creatinine,
        creatinine_clearance=crcl,
        bsa=bsa,
        biomarkers=data.get("biomarkers") or {}
    )


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _check_range(field: str, label: str, value: float, errors: List[ClinicalMessage]):
    rule = VALIDATION_RULES[field]
    if value < rule["min"]:
        errors.append(make_message(MessageCode.FIELD_BELOW_MIN, field=label, limit=rule["min"], unit=rule["unit"]))
    elif value > rule["max"]:
        errors.append(make_message(MessageCode.FIELD_ABOVE_MAX, field=label, limit=rule["max"], unit=rule["unit"]))


def validate_patient_data(data: Mapping[str, Any]) -> PatientValidation:
    """Range-check raw physiologic input; errors block, warnings advise"""
    errors: List[ClinicalMessage] = []
    warnings: List[ClinicalMessage] = []

    if _present(data.get("weight")):
        weight = safe_float(data["weight"], default=None)
        if weight is None:
            errors.append(make_message(MessageCode.FIELD_INVALID_NUMBER, field="Weight"))
        else:
            weight_kg = to_kg(weight, data.get("weight_unit") or "kg")
            _check_range("weight", "Weight", weight_kg, errors)
            if weight_kg < PEDIATRIC_WEIGHT_KG:
                warnings.append(make_message(MessageCode.PEDIATRIC_WEIGHT))
            elif weight_kg > HIGH_WEIGHT_KG:
                warnings.append(make_message(MessageCode.HIGH_WEIGHT))

    if _present(data.get("height")):
        height = safe_float(data["height"], default=None)
        if height is None:
            errors.append(make_message(MessageCode.FIELD_INVALID_NUMBER, field="Height"))
        else:
            _check_range("height", "Height", to_cm(height, data.get("height_unit") or "cm"), errors)

    if _present(data.get("age")):
        age = safe_float(data["age"], default=None)
        if age is None:
            errors.append(make_message(MessageCode.FIELD_INVALID_NUMBER, field="Age"))
        else:
            _check_range("age", "Age", age, errors)
            if age < PEDIATRIC_AGE:
                warnings.append(make_message(MessageCode.PEDIATRIC_AGE))
            elif age > ELDERLY_AGE:
                warnings.append(make_message(MessageCode.ELDERLY_AGE))

    bsa = safe_float(data.get("bsa"))
    if bsa:
        if bsa < VALIDATION_RULES["bsa"]["min"]:
            warnings.append(make_message(MessageCode.BSA_LOW))
        elif bsa > VALIDATION_RULES["bsa"]["max"]:
            warnings.append(make_message(MessageCode.BSA_HIGH))

    crcl = safe_float(data.get("creatinine_clearance"))
    if crcl:
        if crcl < VALIDATION_RULES["creatinine_clearance"]["min"]:
            warnings.append(make_message(MessageCode.CRCL_SEVERE))
        elif crcl < 30:
            warnings.append(make_message(MessageCode.CRCL_MODERATE_SEVERE))
        elif crcl < 60:
            warnings.append(make_message(MessageCode.CRCL_MILD_MODERATE))

    if _present(data.get("creatinine")):
        creatinine = safe_float(data["creatinine"], default=None)
        if creatinine is None:
            errors.append(make_message(MessageCode.FIELD_INVALID_NUMBER, field="Creatinine"))
        else:
            creatinine_mg_dl = creatinine_to_mg_dl(creatinine, data.get("creatinine_unit") or "mg/dL")
            if creatinine_mg_dl < VALIDATION_RULES["creatinine"]["min"]:
                warnings.append(make_message(MessageCode.CREATININE_LOW))
            elif creatinine_mg_dl > VALIDATION_RULES["creatinine"]["max"]:
                warnings.append(make_message(MessageCode.CREATININE_HIGH))

    if errors:
        logger.warning(f"Patient data failed validation: {'; '.join(e.text for e in errors)}")

    return PatientValidation(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))
