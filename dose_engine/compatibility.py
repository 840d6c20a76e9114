"""
Concentration and solvent compatibility validation
Validators return None when there is no issue and a ClinicalMessage otherwise.
"""

import re
from typing import Optional, Sequence, Tuple

from .messages import ClinicalMessage, MessageCode, make_message
from .registry import ReferenceRegistry, get_registry
from .schema import DoseSpecification

REQUIRED_DEXTROSE_SOLVENT = "Dextrose 5%"
_DEXTROSE_MARKERS = ("d5w", "dextrose", "glucose")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")

# common abbreviations, keyed by normalized spelling
_SOLVENT_SYNONYMS = {
    "d5w": "dextrose5",
    "glucose5": "dextrose5",
    "ns": "normalsaline09",
    "nacl09": "normalsaline09",
    "saline09": "normalsaline09",
}


def normalize_solvent(name: Optional[str]) -> str:
    normalized = _NON_ALPHANUMERIC.sub("", (name or "").lower())
    return _SOLVENT_SYNONYMS.get(normalized, normalized)


def is_dextrose(solvent: Optional[str]) -> bool:
    normalized = normalize_solvent(solvent)
    return any(marker in normalized for marker in _DEXTROSE_MARKERS)


def validate_concentration(
    drug_name: str,
    dose: float,
    volume: Optional[float],
    registry: Optional[ReferenceRegistry] = None
) -> Optional[ClinicalMessage]:
    if not volume or volume <= 0:
        return None

    registry = registry or get_registry()
    limit = registry.dose_limit(drug_name)
    if limit is None:
        return None

    if limit.min_volume is not None and volume < limit.min_volume:
        return make_message(MessageCode.VOLUME_TOO_LOW, drug=drug_name, min_volume=limit.min_volume)

    concentration = dose / volume
    if limit.max_concentration is not None and concentration > limit.max_concentration:
        return make_message(
            MessageCode.CONCENTRATION_TOO_HIGH,
            drug=drug_name, concentration=concentration, limit=limit.max_concentration
        )
    if limit.min_concentration is not None and concentration < limit.min_concentration:
        return make_message(
            MessageCode.CONCENTRATION_TOO_LOW,
            drug=drug_name, concentration=concentration, limit=limit.min_concentration
        )
    return None


def compatible_solvents(
    drug: DoseSpecification,
    registry: Optional[ReferenceRegistry] = None
) -> Tuple[str, ...]:
    """Solvents listed on the drug line, else the registry defaults for the drug"""
    if drug.available_solvents:
        return tuple(drug.available_solvents)
    registry = registry or get_registry()
    return registry.solvents_for(drug.name)


def validate_solvent_compatibility(
    drug: DoseSpecification,
    selected_solvent: Optional[str],
    registry: Optional[ReferenceRegistry] = None
) -> Optional[ClinicalMessage]:
    if not selected_solvent:
        return None

    registry = registry or get_registry()

    if registry.is_dextrose_only(drug.name) and not is_dextrose(selected_solvent):
        return make_message(
            MessageCode.SOLVENT_DEXTROSE_ONLY,
            drug=drug.name, required_solvent=REQUIRED_DEXTROSE_SOLVENT
        )

    allowed: Sequence[str] = compatible_solvents(drug, registry)
    if not allowed:
        return None

    if normalize_solvent(selected_solvent) not in {normalize_solvent(s) for s in allowed}:
        return make_message(
            MessageCode.SOLVENT_INCOMPATIBLE,
            drug=drug.name, allowed=list(allowed), allowed_display=", ".join(allowed)
        )
    return None
