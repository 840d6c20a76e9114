"""
Safety alert engine
Stateless checks over a regimen and patient: drug interactions, contraindications,
biomarker prerequisites and dosing-safety heuristics, plus regimen combination and
patient-profile checks. Alerts are returned sorted most severe first.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .conditions import CONDITION_PREDICATES
from .errors import DoseEngineError, ErrorCode, ErrorLogger, handle_safety_check_error
from .formula import calculate_auc_dose, formula_for
from .messages import MessageCode, render_alert_text
from .registry import ReferenceRegistry, get_registry, normalize_drug_name
from .schema import (AlertType, AUCTargetFormula, BodySurfaceAreaFormula, BodyWeightFormula, ClinicalData,
                     ContraindicationSeverity, DoseSpecification, DoseUnit, DrugClass, EngineConfig,
                     InteractionSeverity, InvalidFormula, MonitoringRequirement, PatientProfile, Regimen,
                     SafetyAlert, SafetyCheckResult, Severity)
from .units import safe_float

logger = logging.getLogger(__name__)

SAFETY_CHECK_ERROR_ID = "safety_check_error"


def _alert(
    alert_id: str,
    severity: Severity,
    alert_type: AlertType,
    code: MessageCode,
    params: Dict[str, Any],
    can_override: bool,
    requires_justification: bool,
    references: Iterable[str] = (),
    drug_names: Iterable[str] = ()
) -> SafetyAlert:
    title, message, recommendation = render_alert_text(code, params)
    return SafetyAlert(
        id=alert_id,
        severity=severity,
        type=alert_type,
        code=code,
        params=params,
        title=title,
        message=message,
        recommendation=recommendation,
        can_override=can_override,
        requires_justification=requires_justification,
        references=tuple(references),
        drug_names=tuple(drug_names)
    )


def _unique_names(names: Iterable[str]) -> List[str]:
    """Drug names in first-seen order, duplicates dropped case-insensitively"""
    seen = set()
    unique = []
    for name in names:
        key = normalize_drug_name(name)
        if key and key not in seen:
            seen.add(key)
            unique.append(name.strip())
    return unique


def _unique_drugs(drugs: Sequence[DoseSpecification]) -> List[DoseSpecification]:
    seen = set()
    unique = []
    for drug in drugs:
        key = normalize_drug_name(drug.name)
        if key not in seen:
            seen.add(key)
            unique.append(drug)
    return unique


def _lookup_status(biomarker_status: Mapping[str, str], biomarker: str) -> Optional[str]:
    wanted = biomarker.strip().upper()
    for name, status in biomarker_status.items():
        if name.strip().upper() == wanted and status and str(status).strip():
            return str(status).strip()
    return None


def sort_alerts(alerts: Iterable[SafetyAlert]) -> List[SafetyAlert]:
    """Most severe first; stable, so equal severities keep generation order"""
    return sorted(alerts, key=lambda alert: alert.severity.rank)


def check_drug_interactions(
    drugs: Sequence[DoseSpecification],
    current_medications: Optional[Sequence[str]] = None,
    registry: Optional[ReferenceRegistry] = None
) -> List[SafetyAlert]:
    """Every unordered pair drawn from regimen drugs plus current medications"""
    registry = registry or get_registry()
    names = _unique_names([d.name for d in drugs] + list(current_medications or []))

    alerts = []
    for i in range(len(names)):
        for j in range(i + 1, len(names)):
            interaction = registry.interaction_between(names[i], names[j])
            if interaction is None:
                continue

            alerts.append(_alert(
                f"interaction_{i}_{j}",
                interaction.severity.to_alert_severity(),
                AlertType.INTERACTION,
                MessageCode.INTERACTION,
                {
                    "drug1": interaction.drug1,
                    "drug2": interaction.drug2,
                    "effect": interaction.effect,
                    "mechanism": interaction.mechanism,
                    "management": interaction.management,
                },
                can_override=interaction.severity is not InteractionSeverity.MAJOR,
                requires_justification=True,
                references=interaction.references,
                drug_names=(names[i], names[j])
            ))
    return alerts


def check_contraindications(
    drugs: Sequence[DoseSpecification],
    patient: PatientProfile,
    clinical_data: Optional[ClinicalData] = None,
    registry: Optional[ReferenceRegistry] = None
) -> List[SafetyAlert]:
    registry = registry or get_registry()
    clinical_data = clinical_data or ClinicalData()

    alerts = []
    for drug in _unique_drugs(drugs):
        for rule in registry.contraindications_for(drug.name):
            predicate = CONDITION_PREDICATES.get(rule.condition)
            if predicate is None:
                raise DoseEngineError(
                    ErrorCode.SAFETY_UNKNOWN_CONDITION,
                    f"No predicate registered for condition '{rule.condition}'",
                    details={"drug": drug.name, "condition": rule.condition}
                )

            if not predicate(patient, clinical_data):
                continue

            absolute = rule.severity is ContraindicationSeverity.ABSOLUTE
            alerts.append(_alert(
                f"contraindication_{drug.name}_{rule.condition}",
                Severity.CRITICAL if absolute else Severity.HIGH,
                AlertType.CONTRAINDICATION,
                MessageCode.CONTRAINDICATION,
                {
                    "drug": drug.name,
                    "condition": rule.condition,
                    "description": rule.description,
                    "alternative": rule.alternative or "Consider alternative therapy",
                },
                can_override=not absolute,
                requires_justification=True,
                drug_names=(drug.name,)
            ))
    return alerts


def check_biomarker_prerequisites(
    drugs: Sequence[DoseSpecification],
    biomarker_status: Optional[Mapping[str, str]] = None,
    registry: Optional[ReferenceRegistry] = None
) -> List[SafetyAlert]:
    """Missing or non-matching biomarker status is critical and never overridable"""
    registry = registry or get_registry()
    biomarker_status = biomarker_status or {}

    alerts = []
    for drug in _unique_drugs(drugs):
        for prereq in registry.prerequisites_for(drug.name):
            status = _lookup_status(biomarker_status, prereq.biomarker)

            if status is None:
                alerts.append(_alert(
                    f"missing_biomarker_{drug.name}_{prereq.biomarker}",
                    Severity.CRITICAL,
                    AlertType.PREREQUISITE,
                    MessageCode.BIOMARKER_MISSING,
                    {
                        "drug": drug.name,
                        "biomarker": prereq.biomarker,
                        "testing_method": prereq.testing_method,
                    },
                    can_override=False,
                    requires_justification=False,
                    drug_names=(drug.name,)
                ))
            elif status.lower() not in {s.lower() for s in prereq.required_status}:
                alerts.append(_alert(
                    f"biomarker_mismatch_{drug.name}_{prereq.biomarker}",
                    Severity.CRITICAL,
                    AlertType.PREREQUISITE,
                    MessageCode.BIOMARKER_MISMATCH,
                    {
                        "drug": drug.name,
                        "biomarker": prereq.biomarker,
                        "status": status,
                        "required_status": list(prereq.required_status),
                        "required_display": " or ".join(prereq.required_status),
                    },
                    can_override=False,
                    requires_justification=False,
                    drug_names=(drug.name,)
                ))
    return alerts


def check_dosing_safety(
    drugs: Sequence[DoseSpecification],
    patient: PatientProfile,
    calculated_doses: Optional[Mapping[str, float]] = None,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None
) -> List[SafetyAlert]:
    registry = registry or get_registry()
    config = config or EngineConfig()
    calculated_doses = calculated_doses or {}

    alerts = []
    for drug in _unique_drugs(drugs):
        dose = calculated_doses.get(drug.name)

        if drug.dose_unit is DoseUnit.BODY_SURFACE_AREA and patient.bsa > config.bsa_cap_threshold:
            alerts.append(_alert(
                f"bsa_cap_{drug.name}",
                Severity.MODERATE,
                AlertType.DOSING,
                MessageCode.BSA_CAP,
                {"drug": drug.name, "bsa": patient.bsa, "cap": config.bsa_cap_threshold, "dose": dose},
                can_override=True,
                requires_justification=True,
                drug_names=(drug.name,)
            ))

        nephrotoxic = registry.nephrotoxic_rule(drug.name)
        if nephrotoxic is not None and patient.creatinine_clearance < nephrotoxic.crcl_below:
            alerts.append(_alert(
                f"renal_adjustment_{drug.name}",
                Severity.HIGH,
                AlertType.DOSING,
                MessageCode.RENAL_DOSE_ADJUSTMENT,
                {
                    "drug": drug.name,
                    "crcl": patient.creatinine_clearance,
                    "recommendation": nephrotoxic.recommendation,
                    "dose": dose,
                },
                can_override=True,
                requires_justification=True,
                drug_names=(drug.name,)
            ))

        if patient.age_years >= config.geriatric_monitoring_age and registry.is_cardiotoxic(drug.name):
            alerts.append(_alert(
                f"geriatric_{drug.name}",
                Severity.INFO,
                AlertType.DOSING,
                MessageCode.GERIATRIC_CARDIOTOXICITY,
                {"drug": drug.name, "age": patient.age_years},
                can_override=True,
                requires_justification=False,
                drug_names=(drug.name,)
            ))
    return alerts


def _dose_ratio(drug: DoseSpecification, dose: float, patient: PatientProfile) -> Optional[float]:
    """Dose per m², per kg or per administration relative to the prescribed dosage"""
    formula = formula_for(drug)
    if isinstance(formula, (InvalidFormula, AUCTargetFormula)) or formula.value <= 0:
        return None

    if isinstance(formula, BodySurfaceAreaFormula):
        scale = patient.bsa
    elif isinstance(formula, BodyWeightFormula):
        scale = patient.weight_kg
    else:
        scale = 1.0

    if scale <= 0:
        return None
    return dose / (formula.value * scale)


def check_dose_sanity(
    drugs: Sequence[DoseSpecification],
    patient: PatientProfile,
    calculated_doses: Optional[Mapping[str, float]] = None,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None
) -> List[SafetyAlert]:
    """
    Plausibility of each calculated dose: zero or negative doses, doses far from
    the prescribed dosage, high single doses of listed agents and platinum doses
    that stray from the Calvert dose. Drugs without a calculated dose are skipped.
    """
    registry = registry or get_registry()
    config = config or EngineConfig()
    calculated_doses = calculated_doses or {}
    rules = registry.dose_sanity

    alerts = []

    def add(alert_id, severity, alert_type, code, params, drug_name):
        alerts.append(_alert(
            alert_id, severity, alert_type, code, params,
            can_override=severity is not Severity.CRITICAL,
            requires_justification=severity in (Severity.CRITICAL, Severity.HIGH),
            drug_names=(drug_name,)
        ))

    for drug in _unique_drugs(drugs):
        if drug.name not in calculated_doses:
            continue
        dose = safe_float(calculated_doses[drug.name])

        if dose <= 0:
            add(f"dose_zero_{drug.name}", Severity.CRITICAL, AlertType.DOSING,
                MessageCode.DOSE_NOT_POSITIVE, {"drug": drug.name, "dose": dose}, drug.name)
            continue

        ratio = _dose_ratio(drug, dose, patient)
        if ratio is not None:
            params = {"drug": drug.name, "dose": dose, "percent": ratio * 100}
            if ratio > rules.critical_ratio:
                add(f"dose_high_{drug.name}", Severity.CRITICAL, AlertType.DOSING,
                    MessageCode.DOSE_FAR_ABOVE_STANDARD, params, drug.name)
            elif ratio > rules.elevated_ratio:
                add(f"dose_elevated_{drug.name}", Severity.HIGH, AlertType.DOSING,
                    MessageCode.DOSE_ABOVE_STANDARD, params, drug.name)
            if ratio < rules.low_ratio:
                add(f"dose_low_{drug.name}", Severity.HIGH, AlertType.DOSING,
                    MessageCode.DOSE_BELOW_STANDARD, params, drug.name)

        threshold = registry.high_dose_threshold(drug.name)
        if threshold is not None and dose > threshold:
            add(f"high_dose_{drug.name}", Severity.MODERATE, AlertType.MONITORING,
                MessageCode.HIGH_SINGLE_DOSE, {"drug": drug.name, "dose": dose, "threshold": threshold},
                drug.name)

        if registry.is_calvert_checked(drug.name):
            formula = formula_for(drug)
            auc = formula.value if isinstance(formula, AUCTargetFormula) else rules.default_auc_target
            calvert_dose = calculate_auc_dose(auc, patient.creatinine_clearance, config.cap_gfr, config.gfr_cap)
            if calvert_dose > 0 and abs(dose - calvert_dose) > calvert_dose * rules.calvert_tolerance:
                add(f"calvert_{drug.name}", Severity.MODERATE, AlertType.DOSING,
                    MessageCode.CALVERT_DEVIATION,
                    {"drug": drug.name, "dose": dose, "calvert_dose": calvert_dose, "auc": auc},
                    drug.name)

    return alerts


def check_patient_profile(
    patient: PatientProfile,
    config: Optional[EngineConfig] = None
) -> List[SafetyAlert]:
    """Regimen-independent alerts on age, BSA and renal function"""
    config = config or EngineConfig()
    alerts = []

    def add(alert_id, severity, alert_type, code, params):
        alerts.append(_alert(
            alert_id, severity, alert_type, code, params,
            can_override=severity is not Severity.CRITICAL,
            requires_justification=severity in (Severity.CRITICAL, Severity.HIGH)
        ))

    if patient.age_years < config.pediatric_age:
        add("pediatric_patient", Severity.HIGH, AlertType.CONTRAINDICATION,
            MessageCode.PEDIATRIC_PATIENT, {"age": patient.age_years})
    elif patient.age_years > config.elderly_patient_age:
        add("elderly_patient", Severity.MODERATE, AlertType.MONITORING,
            MessageCode.ELDERLY_PATIENT, {"age": patient.age_years})

    if patient.bsa > config.high_bsa_threshold:
        add("high_bsa", Severity.MODERATE, AlertType.DOSING,
            MessageCode.HIGH_BSA_PATIENT, {"bsa": patient.bsa, "cap": config.high_bsa_threshold})
    elif patient.bsa < config.low_bsa_threshold:
        add("low_bsa", Severity.MODERATE, AlertType.DOSING,
            MessageCode.LOW_BSA_PATIENT, {"bsa": patient.bsa})

    if patient.creatinine_clearance < config.severe_renal_crcl:
        add("severe_renal_impairment", Severity.CRITICAL, AlertType.CONTRAINDICATION,
            MessageCode.SEVERE_RENAL_IMPAIRMENT, {"crcl": patient.creatinine_clearance})
    elif patient.creatinine_clearance < config.moderate_renal_crcl:
        add("moderate_renal_impairment", Severity.HIGH, AlertType.MONITORING,
            MessageCode.MODERATE_RENAL_IMPAIRMENT, {"crcl": patient.creatinine_clearance})

    return alerts


def check_regimen_combinations(
    drugs: Sequence[DoseSpecification],
    registry: Optional[ReferenceRegistry] = None
) -> List[SafetyAlert]:
    """Flag combinations where every group of the rule has a drug in the regimen"""
    registry = registry or get_registry()
    names = [d.name for d in drugs]

    alerts = []
    for combination in registry.regimen_combinations:
        matched = []
        for group in combination.groups:
            members = [n for n in names if any(term.lower() in n.lower() for term in group)]
            if not members:
                break
            matched.extend(members)
        else:
            alerts.append(_alert(
                combination.id,
                combination.severity,
                AlertType.MONITORING,
                MessageCode.REGIMEN_COMBINATION,
                {
                    "combination": combination.combination,
                    "description": combination.description,
                    "recommendation": combination.recommendation,
                },
                can_override=True,
                requires_justification=False,
                drug_names=_unique_names(matched)
            ))
    return alerts


def get_monitoring_requirements(
    drugs: Sequence[DoseSpecification],
    registry: Optional[ReferenceRegistry] = None
) -> List[MonitoringRequirement]:
    """Registered monitoring per drug; chemotherapy drugs without an entry get the CBC default"""
    registry = registry or get_registry()

    monitoring = []
    for drug in _unique_drugs(drugs):
        specific = registry.monitoring_for(drug.name)
        if specific:
            monitoring.extend(m.model_copy(update={"drug": drug.name}) for m in specific)
        elif drug.drug_class is DrugClass.CHEMOTHERAPY:
            monitoring.extend(m.model_copy(update={"drug": drug.name}) for m in registry.default_monitoring)
    return monitoring


def safety_check_error_alert() -> SafetyAlert:
    return _alert(
        SAFETY_CHECK_ERROR_ID,
        Severity.CRITICAL,
        AlertType.MONITORING,
        MessageCode.SAFETY_CHECK_FAILED,
        {},
        can_override=False,
        requires_justification=False
    )


def _regimen_label(regimen: Any) -> str:
    return str(getattr(regimen, "name", None) or getattr(regimen, "id", None) or "unknown")


def _report_fault(error: Exception, regimen: Any) -> SafetyAlert:
    # the trace id stays in the log record; the alert carries no per-call data
    engine_error = handle_safety_check_error(error, _regimen_label(regimen))
    ErrorLogger(__name__).log_error(engine_error)
    return safety_check_error_alert()


def _core_alerts(
    regimen: Regimen,
    patient: PatientProfile,
    calculated_doses: Optional[Mapping[str, float]],
    biomarker_status: Optional[Mapping[str, str]],
    current_medications: Optional[Sequence[str]],
    clinical_data: Optional[ClinicalData],
    registry: Optional[ReferenceRegistry],
    config: Optional[EngineConfig]
) -> List[SafetyAlert]:
    registry = registry or get_registry()
    statuses = {**patient.biomarkers, **(biomarker_status or {})}

    alerts = []
    alerts.extend(check_drug_interactions(regimen.drugs, current_medications, registry))
    alerts.extend(check_contraindications(regimen.drugs, patient, clinical_data, registry))
    alerts.extend(check_biomarker_prerequisites(regimen.drugs, statuses, registry))
    alerts.extend(check_dosing_safety(regimen.drugs, patient, calculated_doses, registry, config))
    return alerts


def perform_comprehensive_safety_check(
    regimen: Regimen,
    patient: PatientProfile,
    calculated_doses: Optional[Mapping[str, float]] = None,
    biomarker_status: Optional[Mapping[str, str]] = None,
    current_medications: Optional[Sequence[str]] = None,
    clinical_data: Optional[ClinicalData] = None,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None
) -> List[SafetyAlert]:
    """
    Run the four core check families and return their alerts sorted by severity.

    Never raises: an internal fault yields a single critical, non-overridable
    alert asking for manual verification.
    """
    try:
        alerts = _core_alerts(regimen, patient, calculated_doses, biomarker_status,
                              current_medications, clinical_data, registry, config)
    except Exception as e:
        return [_report_fault(e, regimen)]

    return sort_alerts(alerts)


def assess_regimen_safety(
    regimen: Regimen,
    patient: PatientProfile,
    calculated_doses: Optional[Mapping[str, float]] = None,
    biomarker_status: Optional[Mapping[str, str]] = None,
    current_medications: Optional[Sequence[str]] = None,
    clinical_data: Optional[ClinicalData] = None,
    registry: Optional[ReferenceRegistry] = None,
    config: Optional[EngineConfig] = None
) -> SafetyCheckResult:
    """
    Full regimen assessment: core checks, dose plausibility, combination and
    patient-profile checks, and monitoring requirements. passed is False when
    any alert is critical.
    """
    monitoring = ()
    calculations = {}
    try:
        registry = registry or get_registry()
        calculations = {name: safe_float(dose) for name, dose in dict(calculated_doses or {}).items()}
        alerts = _core_alerts(regimen, patient, calculations, biomarker_status,
                              current_medications, clinical_data, registry, config)
        alerts.extend(check_dose_sanity(regimen.drugs, patient, calculations, registry, config))
        alerts.extend(check_regimen_combinations(regimen.drugs, registry))
        alerts.extend(check_patient_profile(patient, config))
        alerts = sort_alerts(alerts)
        monitoring = tuple(get_monitoring_requirements(regimen.drugs, registry))
    except Exception as e:
        alerts = [_report_fault(e, regimen)]

    passed = not any(alert.severity is Severity.CRITICAL for alert in alerts)
    if not passed:
        logger.info(f"Regimen {_regimen_label(regimen)} has critical safety alerts")

    return SafetyCheckResult(
        passed=passed,
        alerts=tuple(alerts),
        monitoring=monitoring,
        calculations=calculations
    )
