"""
Engine configuration loading
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from .errors import DoseEngineError, ErrorCode, ErrorLogger
from .schema import EngineConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/dose_engine.yaml")


def load_engine_config(config_path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load EngineConfig from the `runtime_config` section of a YAML file.
    A missing or unreadable file falls back to defaults; values that fail
    validation raise DoseEngineError.
    """
    config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not config_file.exists():
        ErrorLogger(__name__).log_error(
            DoseEngineError(
                ErrorCode.CFG_FILE_NOT_FOUND,
                f"Config file {config_file} not found, using defaults",
                details={"path": str(config_file)}
            ),
            level=logging.WARNING
        )
        return EngineConfig()

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config {config_file}: {e}")
        return EngineConfig()

    runtime_config = config_data.get('runtime_config') or {}
    try:
        config = EngineConfig(**runtime_config)
    except ValidationError as e:
        raise DoseEngineError(
            ErrorCode.CFG_INVALID_CONFIG,
            f"Invalid runtime_config in {config_file}",
            details={"path": str(config_file), "errors": e.errors(include_url=False)},
            original_exception=e
        )

    logger.info(f"Engine configuration loaded from {config_file}")
    return config
