"""
Dose Engine
Chemotherapy dose calculation and safety validation
"""

from .schema import (DoseSpecification, Regimen, PatientProfile, ClinicalData, DoseCalculationResult,
                     SafetyAlert, SafetyCheckResult, Severity, EngineConfig)
from .messages import MessageCode, ClinicalMessage, make_message
from .errors import ErrorCode, DoseEngineError, ErrorLogger
from .registry import ReferenceRegistry, load_registry, get_registry
from .formula import parse_auc_value, validate_auc_format, parse_dose_formula, resolve_base_dose, calculate_auc_dose
from .adjustments import apply_age_adjustment, apply_renal_adjustment, apply_adjustments
from .limits import resolve_max_per_cycle, check_limit, check_cumulative, dose_in_limit_units
from .compatibility import validate_concentration, validate_solvent_compatibility, compatible_solvents
from .calculator import calculate_complete_dose, calculate_regimen_doses
from .safety import (check_drug_interactions, check_contraindications, check_biomarker_prerequisites,
                     check_dosing_safety, check_dose_sanity, perform_comprehensive_safety_check, sort_alerts,
                     check_patient_profile, check_regimen_combinations, get_monitoring_requirements,
                     assess_regimen_safety)
from .patient import calculate_bsa, calculate_creatinine_clearance, build_patient_profile, validate_patient_data
from .config import load_engine_config

__all__ = [
    'DoseSpecification', 'Regimen', 'PatientProfile', 'ClinicalData', 'DoseCalculationResult',
    'SafetyAlert', 'SafetyCheckResult', 'Severity', 'EngineConfig',
    'MessageCode', 'ClinicalMessage', 'make_message',
    'ErrorCode', 'DoseEngineError', 'ErrorLogger',
    'ReferenceRegistry', 'load_registry', 'get_registry',
    'parse_auc_value', 'validate_auc_format', 'parse_dose_formula', 'resolve_base_dose', 'calculate_auc_dose',
    'apply_age_adjustment', 'apply_renal_adjustment', 'apply_adjustments',
    'resolve_max_per_cycle', 'check_limit', 'check_cumulative', 'dose_in_limit_units',
    'validate_concentration', 'validate_solvent_compatibility', 'compatible_solvents',
    'calculate_complete_dose', 'calculate_regimen_doses',
    'check_drug_interactions', 'check_contraindications', 'check_biomarker_prerequisites',
    'check_dosing_safety', 'check_dose_sanity', 'perform_comprehensive_safety_check', 'sort_alerts',
    'check_patient_profile', 'check_regimen_combinations', 'get_monitoring_requirements',
    'assess_regimen_safety',
    'calculate_bsa', 'calculate_creatinine_clearance', 'build_patient_profile', 'validate_patient_data',
    'load_engine_config'
]
