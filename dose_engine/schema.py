"""
Pydantic schemas for dose engine components
"""

from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .messages import ClinicalMessage, MessageCode
from .units import non_negative, safe_float


class DoseUnit(str, Enum):
    BODY_SURFACE_AREA = "mg/m²"
    BODY_WEIGHT = "mg/kg"
    AUC = "AUC"
    FIXED = "mg"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "DoseUnit":
        """
        Map a catalog unit label onto the closed set.
        Anything expressed per m² (mg or g, per day or not) is body-surface-area scaled.
        """
        key = (label or "").strip().lower().replace(" ", "")
        if key.startswith("auc"):
            return cls.AUC
        if "/m²" in key or "/m2" in key:
            return cls.BODY_SURFACE_AREA
        if key.endswith("/kg"):
            return cls.BODY_WEIGHT
        return cls.FIXED


class DrugClass(str, Enum):
    CHEMOTHERAPY = "chemotherapy"
    TARGETED = "targeted"
    IMMUNOTHERAPY = "immunotherapy"
    HORMONE = "hormone"
    SUPPORTIVE = "supportive"


class Severity(str, Enum):
    """Single alert taxonomy, declared most severe first"""
    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)


class AlertType(str, Enum):
    INTERACTION = "interaction"
    CONTRAINDICATION = "contraindication"
    PREREQUISITE = "prerequisite"
    MONITORING = "monitoring"
    DOSING = "dosing"


class InteractionSeverity(str, Enum):
    MAJOR = "major"
    MODERATE = "moderate"
    MINOR = "minor"

    def to_alert_severity(self) -> Severity:
        return {
            InteractionSeverity.MAJOR: Severity.CRITICAL,
            InteractionSeverity.MODERATE: Severity.MODERATE,
            InteractionSeverity.MINOR: Severity.LOW,
        }[self]


class ContraindicationSeverity(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


# ---------------------------------------------------------------------------
# Dosing formula variants
# ---------------------------------------------------------------------------

class BodySurfaceAreaFormula(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["bsa"] = "bsa"
    value: float


class BodyWeightFormula(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["weight"] = "weight"
    value: float


class AUCTargetFormula(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["auc"] = "auc"
    value: float


class FixedFormula(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["fixed"] = "fixed"
    value: float


class InvalidFormula(BaseModel):
    """Dosing text that cannot produce a dose; resolves to 0 with its message"""
    model_config = ConfigDict(frozen=True)
    kind: Literal["invalid"] = "invalid"
    dosage: str
    message: ClinicalMessage


DoseFormula = Union[BodySurfaceAreaFormula, BodyWeightFormula, AUCTargetFormula,
                    FixedFormula, InvalidFormula]


# ---------------------------------------------------------------------------
# Caller-supplied data
# ---------------------------------------------------------------------------

class DoseSpecification(BaseModel):
    """One drug line of a regimen as supplied by the regimen catalog"""
    model_config = ConfigDict(frozen=True)

    name: str
    dosage: str = ""
    unit: str = "mg"
    route: str = "IV"
    day: Optional[str] = None
    drug_class: Optional[DrugClass] = None
    available_solvents: Tuple[str, ...] = ()
    available_volumes: Tuple[float, ...] = ()
    schedule: Optional[str] = None
    solvent: Optional[str] = None
    volume: Optional[float] = None

    @field_validator("dosage", mode="before")
    @classmethod
    def _dosage_as_text(cls, value):
        return "" if value is None else str(value)

    @property
    def dose_unit(self) -> DoseUnit:
        return DoseUnit.from_label(self.unit)


class Regimen(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    drugs: Tuple[DoseSpecification, ...] = ()
    schedule: Optional[str] = None
    cycles: Optional[Union[int, str]] = None


class PatientProfile(BaseModel):
    """
    Physiologic parameters feeding calculations.
    Numeric fields are coerced and clamped to >= 0; invalid input becomes 0.
    """
    model_config = ConfigDict(frozen=True)

    weight_kg: float = 0.0
    height_cm: float = 0.0
    age_years: float = 0.0
    sex: Optional[str] = None
    creatinine_mg_dl: float = 0.0
    creatinine_clearance: float = 0.0  # mL/min, GFR surrogate
    bsa: float = 0.0  # m²
    biomarkers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("weight_kg", "height_cm", "age_years", "creatinine_mg_dl",
                     "creatinine_clearance", "bsa", mode="before")
    @classmethod
    def _clamp_non_negative(cls, value):
        return non_negative(value)

    @field_validator("biomarkers", mode="before")
    @classmethod
    def _biomarkers_or_empty(cls, value):
        return value or {}


class ClinicalData(BaseModel):
    """Optional clinical findings used by contraindication predicates"""
    model_config = ConfigDict(frozen=True)

    ejection_fraction: Optional[float] = None
    her2_status: Optional[str] = None
    biomarkers: Dict[str, str] = Field(default_factory=dict)
    comorbidities: Tuple[str, ...] = ()
    allergies: Tuple[str, ...] = ()

    @field_validator("ejection_fraction", mode="before")
    @classmethod
    def _parse_ejection_fraction(cls, value):
        if value is None or value == "":
            return None
        return safe_float(value, default=None)


# ---------------------------------------------------------------------------
# Reference registry records
# ---------------------------------------------------------------------------

class RenalTier(BaseModel):
    """Half-open CrCl interval [min_crcl, max_crcl) with its dose factor; 0 = contraindicated"""
    model_config = ConfigDict(frozen=True)
    min_crcl: float = 0.0
    max_crcl: float
    factor: float


class RenalRule(BaseModel):
    model_config = ConfigDict(frozen=True)
    crcl_threshold: float
    adjustment: str
    tiers: Tuple[RenalTier, ...] = ()


class HepaticRule(BaseModel):
    model_config = ConfigDict(frozen=True)
    bilirubin_threshold: float
    adjustment: str


class DoseLimit(BaseModel):
    model_config = ConfigDict(frozen=True)

    drug: str
    max_per_cycle: Optional[Union[float, Dict[str, float]]] = None
    max_cumulative: Optional[float] = None
    unit: str
    max_concentration: Optional[float] = None
    min_concentration: Optional[float] = None
    concentration_unit: Optional[str] = None
    min_volume: Optional[float] = None
    warnings: Optional[str] = None
    renal_adjustment: Optional[RenalRule] = None
    hepatic_adjustment: Optional[HepaticRule] = None


class DrugInteraction(BaseModel):
    model_config = ConfigDict(frozen=True)
    drug1: str
    drug2: str
    severity: InteractionSeverity
    mechanism: str
    effect: str
    management: str
    references: Tuple[str, ...] = ()


class ContraindicationRule(BaseModel):
    model_config = ConfigDict(frozen=True)
    drug: str
    condition: str
    severity: ContraindicationSeverity
    description: str
    alternative: Optional[str] = None


class BiomarkerPrerequisite(BaseModel):
    model_config = ConfigDict(frozen=True)
    drug: str
    biomarker: str
    required_status: Tuple[str, ...]
    description: str
    testing_method: str


class NephrotoxicRule(BaseModel):
    model_config = ConfigDict(frozen=True)
    drug: str
    crcl_below: float
    recommendation: str


class RegimenCombination(BaseModel):
    """Flag regimens containing a member of every group"""
    model_config = ConfigDict(frozen=True)
    id: str
    combination: str
    groups: Tuple[Tuple[str, ...], ...]
    severity: Severity
    description: str
    recommendation: str


class MonitoringRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)
    drug: str
    parameter: str
    frequency: str
    threshold: str
    action: str


class DoseSanityRules(BaseModel):
    """
    Plausibility thresholds for a calculated dose.
    Ratios compare the dose per m², per kg or per administration with the prescribed dosage.
    """
    model_config = ConfigDict(frozen=True)
    critical_ratio: float = 2.0
    elevated_ratio: float = 1.5
    low_ratio: float = 0.5
    high_dose_agents: Dict[str, float] = Field(default_factory=dict)  # mg per administration
    calvert_agents: Tuple[str, ...] = ()
    default_auc_target: float = 5.0
    calvert_tolerance: float = 0.2


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class LimitCheck(BaseModel):
    model_config = ConfigDict(frozen=True)
    is_exceeded: bool = False
    max_dose: Optional[float] = None
    warning: Optional[ClinicalMessage] = None
    suggested_action: Optional[ClinicalMessage] = None


class CumulativeCheck(BaseModel):
    model_config = ConfigDict(frozen=True)
    cumulative_dose: float
    is_limit_exceeded: bool = False
    max_cumulative: Optional[float] = None
    warning: Optional[ClinicalMessage] = None


class DoseCalculationResult(BaseModel):
    """
    Per-drug calculation outcome.
    final_dose is the authoritative administered amount; it is never negative.
    """
    model_config = ConfigDict(frozen=True)

    drug: str
    base_dose: float
    calculated_dose: float
    final_dose: float
    reduction_percentage: float = 0.0
    dose_alert: Optional[LimitCheck] = None
    concentration_alert: Optional[ClinicalMessage] = None
    formula_alert: Optional[ClinicalMessage] = None
    adjustment_alert: Optional[ClinicalMessage] = None


class SafetyAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    severity: Severity
    type: AlertType
    code: MessageCode
    params: Dict[str, Any] = Field(default_factory=dict)
    title: str
    message: str
    recommendation: str
    can_override: bool
    requires_justification: bool
    references: Tuple[str, ...] = ()
    drug_names: Tuple[str, ...] = ()


class SafetyCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    alerts: Tuple[SafetyAlert, ...] = ()
    monitoring: Tuple[MonitoringRequirement, ...] = ()
    calculations: Dict[str, float] = Field(default_factory=dict)


class EngineConfig(BaseModel):
    """Configuration for the dose engine"""

    # Calvert formula
    gfr_cap: float = 125.0
    cap_gfr: bool = True

    # Age adjustment
    elderly_age_threshold: float = 70.0
    elderly_dose_factor: float = 0.85

    # Dosing-safety heuristics
    bsa_cap_threshold: float = 2.0
    geriatric_monitoring_age: float = 65.0

    # Patient profile checks
    pediatric_age: float = 18.0
    elderly_patient_age: float = 75.0
    high_bsa_threshold: float = 2.2
    low_bsa_threshold: float = 1.0
    severe_renal_crcl: float = 30.0
    moderate_renal_crcl: float = 60.0

    # Rounding of the administered dose
    dose_decimals: int = 1
