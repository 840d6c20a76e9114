"""
Dose engine error codes
Specific, auditable error codes for registry loading, configuration and safety orchestration.
Calculation paths never raise these for bad patient or dosing input.
"""

from enum import Enum
from typing import Dict, Any, Optional
import logging
import uuid


class ErrorCode(Enum):
    """Specific error codes for dose engine components"""

    # Reference registry errors (REG_xxx)
    REG_FILE_NOT_FOUND = "REG_001"
    REG_INVALID_YAML = "REG_002"
    REG_INVALID_ENTRY = "REG_003"
    REG_UNKNOWN_CONDITION = "REG_004"

    # Safety engine errors (SAFETY_xxx)
    SAFETY_CHECK_FAILED = "SAFETY_001"
    SAFETY_UNKNOWN_CONDITION = "SAFETY_002"

    # Configuration errors (CFG_xxx)
    CFG_INVALID_CONFIG = "CFG_001"
    CFG_FILE_NOT_FOUND = "CFG_002"

    @property
    def description(self) -> str:
        return ERROR_CODE_DESCRIPTIONS[self]


ERROR_CODE_DESCRIPTIONS = {
    ErrorCode.REG_FILE_NOT_FOUND: "Reference data file missing",
    ErrorCode.REG_INVALID_YAML: "Reference data file is not valid YAML",
    ErrorCode.REG_INVALID_ENTRY: "Reference data entry failed validation",
    ErrorCode.REG_UNKNOWN_CONDITION: "Contraindication references an unknown condition",
    ErrorCode.SAFETY_CHECK_FAILED: "Safety check orchestration fault",
    ErrorCode.SAFETY_UNKNOWN_CONDITION: "Contraindication predicate not registered",
    ErrorCode.CFG_INVALID_CONFIG: "Engine configuration is invalid",
    ErrorCode.CFG_FILE_NOT_FOUND: "Engine configuration file missing"
}


class DoseEngineError(Exception):
    """Raised for unusable reference data or configuration, and recorded for safety faults"""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.original_exception = original_exception
        self.trace_id = uuid.uuid4().hex[:8]

        super().__init__(f"[{error_code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Audit record attached to the log entry"""
        record = {
            "error_code": self.error_code.value,
            "category": self.error_code.description,
            "message": self.message,
            "trace_id": self.trace_id,
            **{f"detail_{key}": value for key, value in self.details.items()}
        }
        if self.original_exception is not None:
            record["cause"] = f"{type(self.original_exception).__name__}: {self.original_exception}"
        return record


class ErrorLogger:
    """Logs DoseEngineError audit records; the traceback of the cause goes to DEBUG"""

    def __init__(self, logger_name: str = "dose_engine"):
        self.logger = logging.getLogger(logger_name)

    def log_error(self, error: DoseEngineError, level: int = logging.ERROR):
        record = error.to_dict()
        self.logger.log(
            level,
            f"{error.error_code.value} {error.error_code.description} [{error.trace_id}]: {error.message}",
            extra={"dose_engine_error": record}
        )

        if error.original_exception is not None:
            self.logger.debug(f"Cause of {error.trace_id}", exc_info=error.original_exception)


def handle_safety_check_error(original_error: Exception, regimen_name: str) -> DoseEngineError:
    """Create specific error for a fault inside safety check orchestration"""
    return DoseEngineError(
        error_code=ErrorCode.SAFETY_CHECK_FAILED,
        message=f"Safety check failed for regimen {regimen_name}",
        details={
            "regimen": regimen_name,
            "error_type": type(original_error).__name__,
            "suggested_action": "Manual verification required"
        },
        original_exception=original_error
    )


def handle_registry_entry_error(section: str, key: str, original_error: Exception) -> DoseEngineError:
    """Create specific error for a malformed registry entry"""
    return DoseEngineError(
        error_code=ErrorCode.REG_INVALID_ENTRY,
        message=f"Malformed {section} entry '{key}'",
        details={
            "section": section,
            "key": key,
            "error_type": type(original_error).__name__,
            "suggested_action": "Fix the reference data file"
        },
        original_exception=original_error
    )
