"""
Contraindication condition predicates
Each predicate is a pure boolean function of the patient profile and clinical data.
"""

from typing import Callable, Dict, Optional

from .schema import ClinicalData, PatientProfile

ConditionPredicate = Callable[[PatientProfile, ClinicalData], bool]


def _status(patient: PatientProfile, clinical_data: ClinicalData, biomarker: str) -> Optional[str]:
    """Biomarker status from clinical data first, then the patient profile"""
    for source in (clinical_data.biomarkers, patient.biomarkers):
        for name, status in source.items():
            if name.strip().upper() == biomarker and status:
                return status.strip().lower()
    return None


def _has_comorbidity(clinical_data: ClinicalData, *terms: str) -> bool:
    comorbidities = [c.lower() for c in clinical_data.comorbidities]
    return any(term in c for c in comorbidities for term in terms)


def baseline_ejection_fraction_low(patient: PatientProfile, clinical_data: ClinicalData) -> bool:
    ef = clinical_data.ejection_fraction
    return bool(ef) and ef < 50


def severe_renal_impairment(patient: PatientProfile, clinical_data: ClinicalData) -> bool:
    return patient.creatinine_clearance < 60


def crcl_below_30(patient: PatientProfile, clinical_data: ClinicalData) -> bool:
    return patient.creatinine_clearance < 30


def her2_negative(patient: PatientProfile, clinical_data: ClinicalData) -> bool:
    if clinical_data.her2_status:
        return clinical_data.her2_status.strip().lower() == "negative"
    return _status(patient, clinical_data, "HER2") == "negative"


def hearing_impairment(patient: PatientProfile, clinical_data: ClinicalData) -> bool:
    return _has_comorbidity(clinical_data, "hearing", "ototox")


def active_autoimmune_disease(patient: PatientProfile, clinical_data: ClinicalData) -> bool:
    return _has_comorbidity(clinical_data, "autoimmune")


CONDITION_PREDICATES: Dict[str, ConditionPredicate] = {
    "baseline_ejection_fraction_low": baseline_ejection_fraction_low,
    "severe_renal_impairment": severe_renal_impairment,
    "crcl_below_30": crcl_below_30,
    "her2_negative": her2_negative,
    "hearing_impairment": hearing_impairment,
    "active_autoimmune_disease": active_autoimmune_disease,
}
