"""
Base dose resolution
Dosing text and unit tags are turned into a DoseFormula once; doses are then
computed from the formula and the patient profile.
"""

import logging
import re
from functools import lru_cache
from typing import Optional, Tuple

from .messages import ClinicalMessage, MessageCode, make_message
from .schema import (AUCTargetFormula, BodySurfaceAreaFormula, BodyWeightFormula, DoseFormula,
                     DoseSpecification, DoseUnit, EngineConfig, FixedFormula, InvalidFormula,
                     PatientProfile)
from .units import safe_float

logger = logging.getLogger(__name__)

_AUC_PREFIX = re.compile(r"^\s*AUC\s*", re.IGNORECASE)
_RANGE_SEPARATORS = ("-", "–")


def parse_auc_value(dosage: Optional[str]) -> float:
    """Numeric AUC target from text such as "AUC5", "AUC 6" or "5"; 0 when unparseable"""
    return safe_float(_AUC_PREFIX.sub("", dosage or "", count=1))


def validate_auc_format(dosage: Optional[str]) -> Tuple[bool, Optional[ClinicalMessage]]:
    """
    Accept a single AUC value, optionally prefixed with the AUC marker.
    Ranges such as "AUC5-6" are rejected: only one target can be dosed.
    """
    text = dosage or ""
    if parse_auc_value(text) <= 0:
        return False, make_message(MessageCode.AUC_INVALID_FORMAT, dosage=text)

    if any(sep in text for sep in _RANGE_SEPARATORS):
        return False, make_message(MessageCode.AUC_MULTIPLE_VALUES, dosage=text)

    return True, None


def is_auc_dosed(dosage: Optional[str], unit: Optional[str]) -> bool:
    return (DoseUnit.from_label(unit) is DoseUnit.AUC
            or (dosage or "").strip().lower().startswith("auc"))


@lru_cache(maxsize=512)
def parse_dose_formula(dosage: str, unit: str) -> DoseFormula:
    """Decide the formula class of a dosing line"""
    if is_auc_dosed(dosage, unit):
        is_valid, message = validate_auc_format(dosage)
        if not is_valid:
            return InvalidFormula(dosage=dosage, message=message)
        return AUCTargetFormula(value=parse_auc_value(dosage))

    value = safe_float(dosage, default=None)
    if value is None:
        return InvalidFormula(
            dosage=dosage,
            message=make_message(MessageCode.DOSAGE_NOT_NUMERIC, dosage=dosage)
        )

    dose_unit = DoseUnit.from_label(unit)
    if dose_unit is DoseUnit.BODY_SURFACE_AREA:
        return BodySurfaceAreaFormula(value=value)
    if dose_unit is DoseUnit.BODY_WEIGHT:
        return BodyWeightFormula(value=value)
    return FixedFormula(value=value)


def formula_for(drug: DoseSpecification) -> DoseFormula:
    return parse_dose_formula(drug.dosage, drug.unit)


def calculate_auc_dose(target_auc: float, gfr: float, cap: bool = True, gfr_cap: float = 125.0) -> float:
    """Calvert formula: dose (mg) = AUC x (GFR + 25), GFR capped unless disabled"""
    effective_gfr = min(gfr, gfr_cap) if cap else gfr
    return target_auc * (effective_gfr + 25)


def dose_from_formula(
    formula: DoseFormula,
    patient: PatientProfile,
    config: Optional[EngineConfig] = None,
    cap_gfr: Optional[bool] = None
) -> float:
    config = config or EngineConfig()

    if isinstance(formula, InvalidFormula):
        return 0.0

    if isinstance(formula, AUCTargetFormula):
        cap = config.cap_gfr if cap_gfr is None else cap_gfr
        return calculate_auc_dose(formula.value, patient.creatinine_clearance, cap, config.gfr_cap)

    if isinstance(formula, BodyWeightFormula):
        dose = formula.value * patient.weight_kg
    elif isinstance(formula, BodySurfaceAreaFormula):
        dose = formula.value * patient.bsa
    else:
        dose = formula.value

    return max(dose, 0.0)


def resolve_base_dose(
    drug: DoseSpecification,
    patient: PatientProfile,
    config: Optional[EngineConfig] = None,
    cap_gfr: Optional[bool] = None
) -> float:
    """Unadjusted dose for one drug line; never negative, 0 for unusable dosing text"""
    config = config or EngineConfig()
    formula = formula_for(drug)

    if isinstance(formula, InvalidFormula):
        logger.warning(f"Unusable dosing text for {drug.name}: {formula.message.text}")
        return 0.0

    dose = max(dose_from_formula(formula, patient, config, cap_gfr), 0.0)

    if isinstance(formula, AUCTargetFormula):
        cap = config.cap_gfr if cap_gfr is None else cap_gfr
        logger.info(
            f"Calvert dose for {drug.name}: AUC {formula.value:g} x "
            f"(GFR {patient.creatinine_clearance:g}{' capped' if cap else ''} + 25) = {dose:.1f} mg"
        )

    return dose
