"""
Reference registries: dose limits, adjustment rules, solvents and safety relations.
Loaded once from the packaged YAML files, frozen, and exposed only through read accessors.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from .conditions import CONDITION_PREDICATES
from .errors import DoseEngineError, ErrorCode, handle_registry_entry_error
from .schema import (BiomarkerPrerequisite, ContraindicationRule, DoseLimit, DoseSanityRules, DrugInteraction,
                     MonitoringRequirement, NephrotoxicRule, RegimenCombination, RenalRule)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
LIMITS_FILE = "drug_limits.yaml"
SAFETY_FILE = "safety_rules.yaml"


def normalize_drug_name(name: Optional[str]) -> str:
    return (name or "").strip().casefold()


@dataclass(frozen=True)
class ReferenceRegistry:
    """Immutable lookup tables keyed by normalized drug name"""
    dose_limits: Mapping[str, DoseLimit] = field(default_factory=lambda: MappingProxyType({}))
    age_sensitive_agents: FrozenSet[str] = frozenset()
    solvent_compatibility: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    dextrose_only_agents: FrozenSet[str] = frozenset()
    interactions: Tuple[DrugInteraction, ...] = ()
    contraindications: Tuple[ContraindicationRule, ...] = ()
    biomarker_prerequisites: Tuple[BiomarkerPrerequisite, ...] = ()
    nephrotoxic_agents: Mapping[str, NephrotoxicRule] = field(default_factory=lambda: MappingProxyType({}))
    cardiotoxic_agents: FrozenSet[str] = frozenset()
    regimen_combinations: Tuple[RegimenCombination, ...] = ()
    monitoring: Mapping[str, Tuple[MonitoringRequirement, ...]] = field(default_factory=lambda: MappingProxyType({}))
    default_monitoring: Tuple[MonitoringRequirement, ...] = ()
    dose_sanity: DoseSanityRules = field(default_factory=DoseSanityRules)

    def dose_limit(self, drug_name: str) -> Optional[DoseLimit]:
        return self.dose_limits.get(normalize_drug_name(drug_name))

    def renal_rule(self, drug_name: str) -> Optional[RenalRule]:
        limit = self.dose_limit(drug_name)
        return limit.renal_adjustment if limit else None

    def is_age_sensitive(self, drug_name: str) -> bool:
        return normalize_drug_name(drug_name) in self.age_sensitive_agents

    def solvents_for(self, drug_name: str) -> Tuple[str, ...]:
        return self.solvent_compatibility.get(normalize_drug_name(drug_name), ())

    def is_dextrose_only(self, drug_name: str) -> bool:
        return normalize_drug_name(drug_name) in self.dextrose_only_agents

    def interaction_between(self, drug_a: str, drug_b: str) -> Optional[DrugInteraction]:
        a, b = normalize_drug_name(drug_a), normalize_drug_name(drug_b)
        for interaction in self.interactions:
            pair = (normalize_drug_name(interaction.drug1), normalize_drug_name(interaction.drug2))
            if pair == (a, b) or pair == (b, a):
                return interaction
        return None

    def contraindications_for(self, drug_name: str) -> Tuple[ContraindicationRule, ...]:
        key = normalize_drug_name(drug_name)
        return tuple(c for c in self.contraindications if normalize_drug_name(c.drug) == key)

    def prerequisites_for(self, drug_name: str) -> Tuple[BiomarkerPrerequisite, ...]:
        key = normalize_drug_name(drug_name)
        return tuple(p for p in self.biomarker_prerequisites if normalize_drug_name(p.drug) == key)

    def nephrotoxic_rule(self, drug_name: str) -> Optional[NephrotoxicRule]:
        return self.nephrotoxic_agents.get(normalize_drug_name(drug_name))

    def is_cardiotoxic(self, drug_name: str) -> bool:
        return normalize_drug_name(drug_name) in self.cardiotoxic_agents

    def monitoring_for(self, drug_name: str) -> Tuple[MonitoringRequirement, ...]:
        return self.monitoring.get(normalize_drug_name(drug_name), ())

    def high_dose_threshold(self, drug_name: str) -> Optional[float]:
        key = normalize_drug_name(drug_name)
        for name, threshold in self.dose_sanity.high_dose_agents.items():
            if normalize_drug_name(name) == key:
                return threshold
        return None

    def is_calvert_checked(self, drug_name: str) -> bool:
        key = normalize_drug_name(drug_name)
        return any(normalize_drug_name(name) == key for name in self.dose_sanity.calvert_agents)


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise DoseEngineError(
            ErrorCode.REG_FILE_NOT_FOUND,
            f"Reference data file {path} not found",
            details={"path": str(path)}
        )
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise DoseEngineError(
            ErrorCode.REG_INVALID_YAML,
            f"Reference data file {path} is not valid YAML",
            details={"path": str(path)},
            original_exception=e
        )


def _parse(model, section: str, key: str, payload: Dict[str, Any]):
    try:
        return model(**payload)
    except (ValidationError, TypeError) as e:
        raise handle_registry_entry_error(section, key, e)


def build_registry(limits_data: Dict[str, Any], safety_data: Dict[str, Any]) -> ReferenceRegistry:
    """Validate raw reference data and freeze it into a registry"""
    dose_limits = {}
    for drug, entry in (limits_data.get('dose_limits') or {}).items():
        dose_limits[normalize_drug_name(drug)] = _parse(DoseLimit, 'dose_limits', drug, {'drug': drug, **entry})

    solvents = {
        normalize_drug_name(drug): tuple(names)
        for drug, names in (limits_data.get('solvent_compatibility') or {}).items()
    }

    interactions = tuple(
        _parse(DrugInteraction, 'interactions', f"{i.get('drug1')}+{i.get('drug2')}", i)
        for i in safety_data.get('interactions') or []
    )

    contraindications = []
    for entry in safety_data.get('contraindications') or []:
        rule = _parse(ContraindicationRule, 'contraindications', str(entry.get('drug')), entry)
        if rule.condition not in CONDITION_PREDICATES:
            raise DoseEngineError(
                ErrorCode.REG_UNKNOWN_CONDITION,
                f"Unknown contraindication condition '{rule.condition}' for {rule.drug}",
                details={"drug": rule.drug, "condition": rule.condition}
            )
        contraindications.append(rule)

    prerequisites = tuple(
        _parse(BiomarkerPrerequisite, 'biomarker_prerequisites', str(p.get('drug')), p)
        for p in safety_data.get('biomarker_prerequisites') or []
    )

    nephrotoxic = {}
    for entry in safety_data.get('nephrotoxic_agents') or []:
        rule = _parse(NephrotoxicRule, 'nephrotoxic_agents', str(entry.get('drug')), entry)
        nephrotoxic[normalize_drug_name(rule.drug)] = rule

    combinations = tuple(
        _parse(RegimenCombination, 'regimen_combinations', str(c.get('id')), c)
        for c in safety_data.get('regimen_combinations') or []
    )

    monitoring = {}
    for drug, entries in (safety_data.get('monitoring') or {}).items():
        monitoring[normalize_drug_name(drug)] = tuple(
            _parse(MonitoringRequirement, 'monitoring', drug, {'drug': drug, **m}) for m in entries
        )

    default_monitoring = tuple(
        _parse(MonitoringRequirement, 'chemotherapy_default_monitoring', 'default', {'drug': '', **m})
        for m in safety_data.get('chemotherapy_default_monitoring') or []
    )

    dose_sanity = _parse(DoseSanityRules, 'dose_sanity', 'thresholds', safety_data.get('dose_sanity') or {})

    return ReferenceRegistry(
        dose_limits=MappingProxyType(dose_limits),
        age_sensitive_agents=frozenset(normalize_drug_name(d) for d in limits_data.get('age_sensitive_agents') or []),
        solvent_compatibility=MappingProxyType(solvents),
        dextrose_only_agents=frozenset(normalize_drug_name(d) for d in limits_data.get('dextrose_only_agents') or []),
        interactions=interactions,
        contraindications=tuple(contraindications),
        biomarker_prerequisites=prerequisites,
        nephrotoxic_agents=MappingProxyType(nephrotoxic),
        cardiotoxic_agents=frozenset(normalize_drug_name(d) for d in safety_data.get('cardiotoxic_agents') or []),
        regimen_combinations=combinations,
        monitoring=MappingProxyType(monitoring),
        default_monitoring=default_monitoring,
        dose_sanity=dose_sanity
    )


def load_registry(data_dir: Optional[Path] = None) -> ReferenceRegistry:
    """Load and freeze the reference registries from a data directory"""
    data_dir = Path(data_dir) if data_dir else DATA_DIR

    registry = build_registry(
        _read_yaml(data_dir / LIMITS_FILE),
        _read_yaml(data_dir / SAFETY_FILE)
    )

    logger.info(
        f"Reference registries loaded from {data_dir}: "
        f"{len(registry.dose_limits)} dose limits, {len(registry.interactions)} interactions, "
        f"{len(registry.contraindications)} contraindications, "
        f"{len(registry.biomarker_prerequisites)} biomarker prerequisites"
    )
    return registry


@lru_cache(maxsize=1)
def get_registry() -> ReferenceRegistry:
    """Process-wide registry built from the packaged data; read-only after first call"""
    return load_registry()
