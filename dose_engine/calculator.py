"""
Complete per-drug dose calculation
Base dose -> adjustments -> limit, concentration and solvent validation.
"""

import logging
from typing import Dict, Optional

from .adjustments import apply_adjustments, matching_renal_tier
from .compatibility import validate_concentration, validate_solvent_compatibility
from .formula import formula_for, resolve_base_dose
from .limits import check_limit, dose_in_limit_units
from .messages import MessageCode, make_message
from .registry import ReferenceRegistry, get_registry
from .schema import (DoseCalculationResult, DoseSpecification, EngineConfig, InvalidFormula,
                     PatientProfile, Regimen)
from .units import round_half_up

logger = logging.getLogger(__name__)


def calculate_complete_dose(
    drug: DoseSpecification,
    patient: PatientProfile,
    schedule: Optional[str] = None,
    volume: Optional[float] = None,
    solvent: Optional[str] = None,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None,
    cap_gfr: Optional[bool] = None
) -> DoseCalculationResult:
    """
    Calculate the administered dose for one drug line.

    Schedule, volume and solvent default to the values carried on the drug line.
    Never raises for bad input: unusable dosing text or a renal contraindication
    yields final_dose 0 with a companion alert.
    """
    registry = registry or get_registry()
    config = config or EngineConfig()

    schedule = schedule or drug.schedule
    volume = volume if volume is not None else drug.volume
    solvent = solvent or drug.solvent

    formula = formula_for(drug)
    formula_alert = formula.message if isinstance(formula, InvalidFormula) else None

    base_dose = resolve_base_dose(drug, patient, config, cap_gfr)
    calculated_dose = apply_adjustments(base_dose, patient, drug.name, registry, config)

    adjustment_alert = None
    rule = registry.renal_rule(drug.name)
    tier = matching_renal_tier(rule, patient.creatinine_clearance)
    if tier is not None and tier.factor == 0:
        adjustment_alert = make_message(
            MessageCode.RENAL_CONTRAINDICATED,
            drug=drug.name, crcl=patient.creatinine_clearance, threshold=tier.max_crcl
        )

    reduction_percentage = 0.0
    if base_dose > 0:
        reduction_percentage = round_half_up((1 - calculated_dose / base_dose) * 100, 1)

    limit_check = check_limit(
        drug.name,
        dose_in_limit_units(calculated_dose, registry.dose_limit(drug.name), patient, formula),
        schedule,
        registry
    )

    concentration_alert = validate_concentration(drug.name, calculated_dose, volume, registry)
    if concentration_alert is None:
        concentration_alert = validate_solvent_compatibility(drug, solvent, registry)

    return DoseCalculationResult(
        drug=drug.name,
        base_dose=base_dose,
        calculated_dose=calculated_dose,
        final_dose=round_half_up(calculated_dose, config.dose_decimals),
        reduction_percentage=reduction_percentage,
        dose_alert=limit_check if limit_check.is_exceeded else None,
        concentration_alert=concentration_alert,
        formula_alert=formula_alert,
        adjustment_alert=adjustment_alert
    )


def calculate_regimen_doses(
    regimen: Regimen,
    patient: PatientProfile,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None,
    cap_gfr: Optional[bool] = None
) -> Dict[str, DoseCalculationResult]:
    """
    Calculate every drug line of a regimen.
    Keys are drug names; a repeated drug line is keyed "<name> #2", "<name> #3", ...
    """
    registry = registry or get_registry()
    results: Dict[str, DoseCalculationResult] = {}
    seen: Dict[str, int] = {}

    for drug in regimen.drugs:
        seen[drug.name] = seen.get(drug.name, 0) + 1
        key = drug.name if seen[drug.name] == 1 else f"{drug.name} #{seen[drug.name]}"

        results[key] = calculate_complete_dose(
            drug, patient,
            schedule=drug.schedule or regimen.schedule,
            registry=registry,
            config=config,
            cap_gfr=cap_gfr
        )

    logger.info(f"Calculated {len(results)} doses for regimen {regimen.name or regimen.id}")
    return results
