"""
Ordered clinical dose adjustments: age first, then renal function.
The order is part of the contract; both steps are multiplicative.
"""

import logging
from typing import Optional

from .registry import ReferenceRegistry, get_registry
from .schema import EngineConfig, PatientProfile, RenalRule, RenalTier

logger = logging.getLogger(__name__)


def apply_age_adjustment(
    dose: float,
    age: float,
    drug_name: str,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None
) -> float:
    """Elderly reduction for age-sensitive agents; strictly above the age threshold"""
    registry = registry or get_registry()
    config = config or EngineConfig()

    if age > config.elderly_age_threshold and registry.is_age_sensitive(drug_name):
        return dose * config.elderly_dose_factor
    return dose


def matching_renal_tier(rule: Optional[RenalRule], creatinine_clearance: float) -> Optional[RenalTier]:
    """Tier whose [min, max) interval holds the CrCl, evaluated only below the rule threshold"""
    if rule is None or creatinine_clearance >= rule.crcl_threshold:
        return None

    for tier in rule.tiers:
        if tier.min_crcl <= creatinine_clearance < tier.max_crcl:
            return tier
    return None


def apply_renal_adjustment(
    dose: float,
    creatinine_clearance: float,
    drug_name: str,
    registry: Optional[ReferenceRegistry] = None
) -> float:
    registry = registry or get_registry()

    tier = matching_renal_tier(registry.renal_rule(drug_name), creatinine_clearance)
    if tier is None:
        return dose

    if tier.factor == 0:
        logger.warning(f"{drug_name} contraindicated at CrCl {creatinine_clearance:g} mL/min, dose set to 0")
    return dose * tier.factor


def apply_adjustments(
    base_dose: float,
    patient: PatientProfile,
    drug_name: str,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None
) -> float:
    registry = registry or get_registry()

    dose = apply_age_adjustment(base_dose, patient.age_years, drug_name, registry, config)
    dose = apply_renal_adjustment(dose, patient.creatinine_clearance, drug_name, registry)
    return max(dose, 0.0)
