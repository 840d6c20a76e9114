"""
Structured clinical messages
Every message leaving the engine carries a code and its parameters so that a
localization layer can render it; `text` is only the English default.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field


class MessageCode(str, Enum):
    # Dosing formula
    AUC_INVALID_FORMAT = "auc_invalid_format"
    AUC_MULTIPLE_VALUES = "auc_multiple_values"
    DOSAGE_NOT_NUMERIC = "dosage_not_numeric"

    # Adjustments
    RENAL_CONTRAINDICATED = "renal_contraindicated"

    # Limits
    DOSE_LIMIT_EXCEEDED = "dose_limit_exceeded"
    DOSE_LIMIT_NOTE = "dose_limit_note"
    DOSE_LIMIT_GENERIC_ACTION = "dose_limit_generic_action"
    CUMULATIVE_LIMIT_EXCEEDED = "cumulative_limit_exceeded"

    # Concentration and solvent
    CONCENTRATION_TOO_HIGH = "concentration_too_high"
    CONCENTRATION_TOO_LOW = "concentration_too_low"
    VOLUME_TOO_LOW = "volume_too_low"
    SOLVENT_DEXTROSE_ONLY = "solvent_dextrose_only"
    SOLVENT_INCOMPATIBLE = "solvent_incompatible"

    # Patient intake
    FIELD_INVALID_NUMBER = "field_invalid_number"
    FIELD_BELOW_MIN = "field_below_min"
    FIELD_ABOVE_MAX = "field_above_max"
    PEDIATRIC_WEIGHT = "pediatric_weight"
    HIGH_WEIGHT = "high_weight"
    PEDIATRIC_AGE = "pediatric_age"
    ELDERLY_AGE = "elderly_age"
    BSA_LOW = "bsa_low"
    BSA_HIGH = "bsa_high"
    CRCL_SEVERE = "crcl_severe"
    CRCL_MODERATE_SEVERE = "crcl_moderate_severe"
    CRCL_MILD_MODERATE = "crcl_mild_moderate"
    CREATININE_LOW = "creatinine_low"
    CREATININE_HIGH = "creatinine_high"

    # Safety alerts
    INTERACTION = "interaction"
    CONTRAINDICATION = "contraindication"
    BIOMARKER_MISSING = "biomarker_missing"
    BIOMARKER_MISMATCH = "biomarker_mismatch"
    BSA_CAP = "bsa_cap"
    RENAL_DOSE_ADJUSTMENT = "renal_dose_adjustment"
    GERIATRIC_CARDIOTOXICITY = "geriatric_cardiotoxicity"
    REGIMEN_COMBINATION = "regimen_combination"
    PEDIATRIC_PATIENT = "pediatric_patient"
    ELDERLY_PATIENT = "elderly_patient"
    HIGH_BSA_PATIENT = "high_bsa_patient"
    LOW_BSA_PATIENT = "low_bsa_patient"
    SEVERE_RENAL_IMPAIRMENT = "severe_renal_impairment"
    MODERATE_RENAL_IMPAIRMENT = "moderate_renal_impairment"
    DOSE_NOT_POSITIVE = "dose_not_positive"
    DOSE_FAR_ABOVE_STANDARD = "dose_far_above_standard"
    DOSE_ABOVE_STANDARD = "dose_above_standard"
    DOSE_BELOW_STANDARD = "dose_below_standard"
    HIGH_SINGLE_DOSE = "high_single_dose"
    CALVERT_DEVIATION = "calvert_deviation"
    SAFETY_CHECK_FAILED = "safety_check_failed"


MESSAGE_TEMPLATES: Dict[MessageCode, str] = {
    MessageCode.AUC_INVALID_FORMAT: "Invalid AUC format: {dosage}",
    MessageCode.AUC_MULTIPLE_VALUES: "Multiple AUC values not allowed: {dosage}",
    MessageCode.DOSAGE_NOT_NUMERIC: "Dosage is not a number: {dosage!r}",
    MessageCode.RENAL_CONTRAINDICATED: (
        "{drug} is contraindicated at CrCl {crcl:g} mL/min (threshold {threshold:g} mL/min)"
    ),
    MessageCode.DOSE_LIMIT_EXCEEDED: (
        "Calculated dose of {drug} ({dose:.1f} {unit}) exceeds the recommended limit of {limit:g} {unit}"
    ),
    MessageCode.DOSE_LIMIT_NOTE: "{note}",
    MessageCode.DOSE_LIMIT_GENERIC_ACTION: (
        "Verify the dose and consider a reduction or consult local guidelines"
    ),
    MessageCode.CUMULATIVE_LIMIT_EXCEEDED: (
        "Cumulative dose of {drug} ({cumulative_dose:.1f} {unit}) exceeds the lifetime limit of {limit:g} {unit}"
    ),
    MessageCode.CONCENTRATION_TOO_HIGH: (
        "{drug} concentration ({concentration:.2f} mg/mL) exceeds the limit of {limit:g} mg/mL"
    ),
    MessageCode.CONCENTRATION_TOO_LOW: (
        "{drug} concentration ({concentration:.2f} mg/mL) is below the minimum of {limit:g} mg/mL"
    ),
    MessageCode.VOLUME_TOO_LOW: "Minimum volume for {drug} is {min_volume:g} mL",
    MessageCode.SOLVENT_DEXTROSE_ONLY: "{drug}: only {required_solvent} (D5W) for stability",
    MessageCode.SOLVENT_INCOMPATIBLE: (
        "Incompatible solvent for {drug}. Allowed solvents: {allowed_display}"
    ),
    MessageCode.FIELD_INVALID_NUMBER: "{field} must be a valid number",
    MessageCode.FIELD_BELOW_MIN: "{field} must be at least {limit:g} {unit}",
    MessageCode.FIELD_ABOVE_MAX: "{field} cannot exceed {limit:g} {unit}",
    MessageCode.PEDIATRIC_WEIGHT: "Pediatric weight detected - verify dosing protocols",
    MessageCode.HIGH_WEIGHT: "High weight - consider dose capping for BSA > 2.2 m²",
    MessageCode.PEDIATRIC_AGE: (
        "Pediatric patient - verify dosing protocols and consider pediatric-specific regimens"
    ),
    MessageCode.ELDERLY_AGE: "Elderly patient - consider dose reduction and enhanced monitoring",
    MessageCode.BSA_LOW: "Low BSA detected - verify calculations and consider pediatric protocols",
    MessageCode.BSA_HIGH: "High BSA detected - consider dose capping at 2.2 m² for some agents",
    MessageCode.CRCL_SEVERE: (
        "Severe renal impairment - consider dose reduction or nephrotoxic drug avoidance"
    ),
    MessageCode.CRCL_MODERATE_SEVERE: (
        "Moderate-severe renal impairment - dose adjustment may be required"
    ),
    MessageCode.CRCL_MILD_MODERATE: "Mild-moderate renal impairment - monitor for nephrotoxicity",
    MessageCode.CREATININE_LOW: "Unusually low creatinine - verify lab values",
    MessageCode.CREATININE_HIGH: "Severely elevated creatinine - consider nephrology consultation",
}

# (title, message, recommendation)
ALERT_TEMPLATES: Dict[MessageCode, Tuple[str, str, str]] = {
    MessageCode.INTERACTION: (
        "Drug interaction: {drug1} + {drug2}",
        "{effect}. Mechanism: {mechanism}",
        "{management}",
    ),
    MessageCode.CONTRAINDICATION: (
        "Contraindication: {drug}",
        "{description}",
        "{alternative}",
    ),
    MessageCode.BIOMARKER_MISSING: (
        "Missing biomarker: {biomarker}",
        "{biomarker} status required before {drug} administration",
        "Order {biomarker} testing via {testing_method}",
    ),
    MessageCode.BIOMARKER_MISMATCH: (
        "Biomarker mismatch: {drug}",
        "{biomarker} is {status}, but {required_display} required",
        "Consider alternative therapy based on biomarker status",
    ),
    MessageCode.BSA_CAP: (
        "BSA cap consideration: {drug}",
        "Patient BSA ({bsa:.2f} m²) exceeds {cap:.1f} m²",
        "Consider capping BSA at {cap:.1f} m² for dose calculation",
    ),
    MessageCode.RENAL_DOSE_ADJUSTMENT: (
        "Renal dose adjustment: {drug}",
        "CrCl {crcl:g} mL/min requires dose adjustment",
        "{recommendation}",
    ),
    MessageCode.GERIATRIC_CARDIOTOXICITY: (
        "Geriatric consideration: {drug}",
        "Patient age {age:g} years - increased cardiotoxicity risk",
        "Consider baseline cardiac function assessment",
    ),
    MessageCode.REGIMEN_COMBINATION: (
        "Combination: {combination}",
        "{description}",
        "{recommendation}",
    ),
    MessageCode.PEDIATRIC_PATIENT: (
        "Pediatric patient",
        "Pediatric patient detected (age {age:g} years)",
        "Verify pediatric-specific dosing protocols and consider pediatric oncology consultation",
    ),
    MessageCode.ELDERLY_PATIENT: (
        "Elderly patient",
        "Elderly patient (age {age:g} years)",
        "Consider dose reduction and enhanced monitoring for toxicity",
    ),
    MessageCode.HIGH_BSA_PATIENT: (
        "High BSA",
        "High BSA detected ({bsa:.2f} m²)",
        "Consider dose capping at BSA {cap:.1f} m² for certain agents",
    ),
    MessageCode.LOW_BSA_PATIENT: (
        "Low BSA",
        "Low BSA detected ({bsa:.2f} m²)",
        "Verify patient parameters and consider pediatric protocols if appropriate",
    ),
    MessageCode.SEVERE_RENAL_IMPAIRMENT: (
        "Severe renal impairment",
        "Severe renal impairment (CrCl: {crcl:g} mL/min)",
        "Avoid nephrotoxic agents and consider dose reduction for renally cleared drugs",
    ),
    MessageCode.MODERATE_RENAL_IMPAIRMENT: (
        "Moderate renal impairment",
        "Moderate renal impairment (CrCl: {crcl:g} mL/min)",
        "Monitor renal function closely and consider dose adjustments",
    ),
    MessageCode.DOSE_NOT_POSITIVE: (
        "Zero dose: {drug}",
        "{drug}: calculated dose is zero or negative ({dose:.1f} mg)",
        "Verify patient parameters and base dose calculation",
    ),
    MessageCode.DOSE_FAR_ABOVE_STANDARD: (
        "Dose above 200% of standard: {drug}",
        "{drug}: dose is {percent:.0f}% of standard ({dose:.1f} mg)",
        "Consider BSA capping or dose reduction protocols",
    ),
    MessageCode.DOSE_ABOVE_STANDARD: (
        "Elevated dose: {drug}",
        "{drug}: dose is {percent:.0f}% of standard ({dose:.1f} mg)",
        "Consider dose capping at BSA 2.2 m² if appropriate",
    ),
    MessageCode.DOSE_BELOW_STANDARD: (
        "Low dose: {drug}",
        "{drug}: dose is {percent:.0f}% of standard ({dose:.1f} mg)",
        "Verify calculation and patient parameters",
    ),
    MessageCode.HIGH_SINGLE_DOSE: (
        "High dose: {drug}",
        "{drug}: high dose detected ({dose:.1f} mg, threshold {threshold:g} mg)",
        "Monitor cumulative dose and cardiac function (ECHO/MUGA)",
    ),
    MessageCode.CALVERT_DEVIATION: (
        "Calvert deviation: {drug}",
        "{drug}: dose {dose:.1f} mg differs from the Calvert dose of {calvert_dose:.1f} mg (AUC {auc:g})",
        "Consider using the Calvert formula for {drug} dosing",
    ),
    MessageCode.SAFETY_CHECK_FAILED: (
        "Safety check error",
        "Error occurred during safety check",
        "Manual verification required - safety check failed",
    ),
}


class ClinicalMessage(BaseModel):
    """Coded message with its parameters and the English default rendering"""
    model_config = ConfigDict(frozen=True)

    code: MessageCode
    params: Dict[str, Any] = Field(default_factory=dict)
    text: str

    def __str__(self) -> str:
        return self.text


def render(template: str, params: Mapping[str, Any]) -> str:
    """Render an English template; lists are joined for display"""
    display = {
        key: ", ".join(str(v) for v in value) if isinstance(value, (list, tuple)) else value
        for key, value in params.items()
    }
    return template.format(**display)


def make_message(code: MessageCode, **params: Any) -> ClinicalMessage:
    return ClinicalMessage(code=code, params=params, text=render(MESSAGE_TEMPLATES[code], params))


def render_alert_text(code: MessageCode, params: Mapping[str, Any]) -> Tuple[str, str, str]:
    title, message, recommendation = ALERT_TEMPLATES[code]
    return render(title, params), render(message, params), render(recommendation, params)
