"""
Per-cycle and lifetime cumulative dose limit checks
"""

import logging
from typing import Any, Dict, Optional

from .messages import MessageCode, make_message
from .registry import ReferenceRegistry, get_registry
from .schema import (AUCTargetFormula, CumulativeCheck, DoseFormula, DoseLimit, DoseUnit, LimitCheck,
                     PatientProfile)
from .units import non_negative

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE_KEY = "q3w"

# normalized schedule bucket -> substrings that select it
SCHEDULE_ALIASES = {
    "weekly": ("weekly", "qw", "every week", "q7d", "7 days"),
    "q14d": ("q14d", "q2w", "every 2 weeks", "every two weeks", "14 days", "biweekly"),
    "q3w": ("q3w", "q21d", "every 3 weeks", "every three weeks", "21 days"),
}


def normalize_schedule(schedule: Optional[str]) -> Optional[str]:
    """Map free-text schedule onto weekly / q14d / q3w, None when no bucket matches"""
    text = (schedule or "").strip().lower()
    if not text:
        return None

    # longer cycles first so "every 3 weeks" does not fall into a weekly bucket
    for key in ("q3w", "q14d", "weekly"):
        if any(alias in text for alias in SCHEDULE_ALIASES[key]):
            return key
    return None


def resolve_max_per_cycle(limit: DoseLimit, schedule: Optional[str] = None) -> Optional[float]:
    """
    Applicable per-cycle maximum.
    Schedule-keyed limits try an exact key first (e.g. "bolus", "loading"), then the
    normalized bucket, then the every-3-weeks bucket, then the first listed value.
    """
    max_per_cycle = limit.max_per_cycle
    if max_per_cycle is None:
        return None
    if not isinstance(max_per_cycle, dict):
        return float(max_per_cycle)

    buckets: Dict[str, float] = {k.lower(): v for k, v in max_per_cycle.items()}
    text = (schedule or "").strip().lower()

    if text in buckets:
        return buckets[text]

    key = normalize_schedule(text)
    if key in buckets:
        return buckets[key]

    if text:
        logger.warning(f"No {limit.drug} limit bucket for schedule '{schedule}', using default")

    if DEFAULT_SCHEDULE_KEY in buckets:
        return buckets[DEFAULT_SCHEDULE_KEY]
    return next(iter(buckets.values()))


def check_limit(
    drug_name: str,
    dose: float,
    schedule: Optional[str] = None,
    registry: Optional[ReferenceRegistry] = None
) -> LimitCheck:
    registry = registry or get_registry()

    limit = registry.dose_limit(drug_name)
    if limit is None:
        return LimitCheck()

    max_dose = resolve_max_per_cycle(limit, schedule)
    if max_dose is None or dose <= max_dose:
        return LimitCheck(max_dose=max_dose)

    if limit.warnings:
        action = make_message(MessageCode.DOSE_LIMIT_NOTE, drug=drug_name, note=limit.warnings)
    else:
        action = make_message(MessageCode.DOSE_LIMIT_GENERIC_ACTION, drug=drug_name)

    return LimitCheck(
        is_exceeded=True,
        max_dose=max_dose,
        warning=make_message(
            MessageCode.DOSE_LIMIT_EXCEEDED,
            drug=drug_name, dose=dose, unit=limit.unit, limit=max_dose
        ),
        suggested_action=action
    )


def check_cumulative(
    drug_name: str,
    dose_per_cycle: Any,
    cycles_completed: Any,
    registry: Optional[ReferenceRegistry] = None
) -> CumulativeCheck:
    """
    Lifetime total across cycles; never exceeded when no cumulative maximum is configured.
    Unparseable or negative inputs count as 0.
    """
    registry = registry or get_registry()

    cumulative_dose = non_negative(dose_per_cycle) * non_negative(cycles_completed)
    limit = registry.dose_limit(drug_name)

    if limit is None or limit.max_cumulative is None:
        return CumulativeCheck(cumulative_dose=cumulative_dose)

    if cumulative_dose <= limit.max_cumulative:
        return CumulativeCheck(cumulative_dose=cumulative_dose, max_cumulative=limit.max_cumulative)

    return CumulativeCheck(
        cumulative_dose=cumulative_dose,
        is_limit_exceeded=True,
        max_cumulative=limit.max_cumulative,
        warning=make_message(
            MessageCode.CUMULATIVE_LIMIT_EXCEEDED,
            drug=drug_name, cumulative_dose=cumulative_dose, unit=limit.unit, limit=limit.max_cumulative
        )
    )


def dose_in_limit_units(
    dose: float,
    limit: Optional[DoseLimit],
    patient: PatientProfile,
    formula: Optional[DoseFormula] = None
) -> float:
    """
    Express an absolute dose in the unit its limit is stated in:
    per m² limits compare dose / BSA, per kg limits dose / weight and AUC limits the AUC target.
    """
    if limit is None:
        return dose

    limit_unit = DoseUnit.from_label(limit.unit)
    if limit_unit is DoseUnit.AUC:
        return formula.value if isinstance(formula, AUCTargetFormula) else dose
    if limit_unit is DoseUnit.BODY_SURFACE_AREA and patient.bsa > 0:
        return dose / patient.bsa
    if limit_unit is DoseUnit.BODY_WEIGHT and patient.weight_kg > 0:
        return dose / patient.weight_kg
    return dose
