"""
Command line entry point
Reads a JSON case file (patient, regimen and optional safety inputs) and prints
dose calculations or the safety assessment as JSON.
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .calculator import calculate_regimen_doses
from .config import load_engine_config
from .errors import DoseEngineError, ErrorLogger
from .limits import check_cumulative, dose_in_limit_units
from .patient import build_patient_profile, validate_patient_data
from .registry import get_registry
from .safety import assess_regimen_safety
from .schema import ClinicalData, Regimen
from .units import non_negative

logger = logging.getLogger(__name__)


def _load_case(path: str) -> Dict[str, Any]:
    with open(Path(path), 'r', encoding='utf-8') as f:
        return json.load(f)


def run_calculate(case: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    config = load_engine_config(args.config)
    registry = get_registry()

    validation = validate_patient_data(case.get('patient') or {})
    patient = build_patient_profile(case.get('patient') or {})
    regimen = Regimen(**(case.get('regimen') or {}))

    doses = calculate_regimen_doses(regimen, patient, registry, config,
                                    cap_gfr=False if args.no_gfr_cap else None)

    report = {
        'patient': patient.model_dump(mode='json'),
        'validation': validation.model_dump(mode='json'),
        'doses': {name: result.model_dump(mode='json') for name, result in doses.items()},
    }

    cycles = non_negative(case.get('cycles_completed'))
    if cycles:
        report['cumulative'] = {
            name: check_cumulative(
                result.drug,
                dose_in_limit_units(result.final_dose, registry.dose_limit(result.drug), patient),
                cycles,
                registry
            ).model_dump(mode='json')
            for name, result in doses.items()
        }
    return report


def run_safety(case: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    config = load_engine_config(args.config)
    registry = get_registry()

    patient = build_patient_profile(case.get('patient') or {})
    regimen = Regimen(**(case.get('regimen') or {}))
    doses = calculate_regimen_doses(regimen, patient, registry, config)

    result = assess_regimen_safety(
        regimen,
        patient,
        calculated_doses={name: r.final_dose for name, r in doses.items()},
        biomarker_status=case.get('biomarkers') or {},
        current_medications=case.get('current_medications') or [],
        clinical_data=ClinicalData(**(case.get('clinical_data') or {})),
        registry=registry,
        config=config
    )
    return result.model_dump(mode='json')


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog='dose-engine', description='Chemotherapy dose calculation and safety checks')
    parser.add_argument('--config', default=None, help='Engine config YAML (default: config/dose_engine.yaml)')
    parser.add_argument('--verbose', action='store_true', help='Log at INFO level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    calculate = subparsers.add_parser('calculate', help='Calculate doses for every drug of a regimen')
    calculate.add_argument('case', help='JSON case file')
    calculate.add_argument('--no-gfr-cap', action='store_true', help='Disable the Calvert GFR cap')
    calculate.set_defaults(handler=run_calculate)

    safety = subparsers.add_parser('safety', help='Run the full regimen safety assessment')
    safety.add_argument('case', help='JSON case file')
    safety.set_defaults(handler=run_safety)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        case = _load_case(args.case)
        report = args.handler(case, args)
    except DoseEngineError as e:
        ErrorLogger().log_error(e)
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Could not process case file {args.case}: {e}")
        return 1

    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0
