"""
Common utility functions for the news explainability engine.

Provides:
- Logging configuration
- Project path management
- Configuration loading (environment variables / .env)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def get_project_root() -> Path:
    """
    Get the project root directory.

    Returns:
        Path to the project root directory.
    """
    return Path(__file__).parent.parent


def get_artifacts_dir(subdir: Optional[str] = None) -> Path:
    """
    Get the artifacts directory path (persisted vocabularies, summaries).

    Args:
        subdir: Optional subdirectory (e.g., 'vocabulary', 'reports')

    Returns:
        Path to the artifacts directory or subdirectory.
    """
    artifacts_dir = get_project_root() / "artifacts"
    if subdir:
        artifacts_dir = artifacts_dir / subdir
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    return artifacts_dir


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for the engine.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional file name, written under <project root>/logs
        format_string: Optional custom format string

    Returns:
        Configured logger instance.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logger = logging.getLogger("newsxai")
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(console_handler)

    if log_file:
        log_path = get_project_root() / "logs"
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(format_string))
        logger.addHandler(file_handler)

    return logger


def load_environment() -> None:
    """
    Load environment variables from .env file.

    Searches for .env file in the project root directory. Variables that are
    already set in the process environment take precedence.
    """
    env_path = get_project_root() / ".env"
    load_dotenv(env_path)


@dataclass(frozen=True)
class EngineSettings:
    """
    Default parameters for the public engine operations.

    Every field can be overridden through an environment variable prefixed
    with ``NEWSXAI_`` (see ``load_settings``). Explicit arguments passed to
    the engine functions always win over these defaults.

    Attributes:
        max_features: Vocabulary size retained by the text pipeline.
        repeats: Permutation repeats per feature.
        ale_bins: Number of quantile bins for ALE profiles.
        lime_samples: Perturbed neighbours per local explanation.
        lime_features: Feature budget (K) of the local surrogate.
        kernel_width: Width of the exponential proximity kernel.
        n_jobs: Parallel workers for units of work (joblib semantics).
        seed: Default random seed.
        log_level: Name of the logging level.
    """

    max_features: int = 500
    repeats: int = 10
    ale_bins: int = 10
    lime_samples: int = 5000
    lime_features: int = 10
    kernel_width: float = 0.75
    n_jobs: int = 1
    seed: int = 42
    log_level: str = "INFO"


_INT_SETTINGS = {
    'max_features': 'NEWSXAI_MAX_FEATURES',
    'repeats': 'NEWSXAI_REPEATS',
    'ale_bins': 'NEWSXAI_ALE_BINS',
    'lime_samples': 'NEWSXAI_LIME_SAMPLES',
    'lime_features': 'NEWSXAI_LIME_FEATURES',
    'n_jobs': 'NEWSXAI_N_JOBS',
    'seed': 'NEWSXAI_SEED',
}


def load_settings() -> EngineSettings:
    """
    Build engine settings from the environment.

    Returns:
        EngineSettings populated from ``NEWSXAI_*`` variables, falling back to
        the dataclass defaults for unset variables.

    Raises:
        ValueError: If a variable is set but cannot be parsed.
    """
    load_environment()
    values = {}

    for field_name, env_name in _INT_SETTINGS.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            values[field_name] = int(raw)
        except ValueError:
            raise ValueError(f"{env_name} must be an integer, got '{raw}'")

    raw_width = os.getenv('NEWSXAI_KERNEL_WIDTH')
    if raw_width:
        try:
            values['kernel_width'] = float(raw_width)
        except ValueError:
            raise ValueError(f"NEWSXAI_KERNEL_WIDTH must be a number, got '{raw_width}'")
        if values['kernel_width'] <= 0:
            raise ValueError("NEWSXAI_KERNEL_WIDTH must be positive")

    raw_level = os.getenv('NEWSXAI_LOG_LEVEL')
    if raw_level:
        level_name = raw_level.strip().upper()
        if not isinstance(logging.getLevelName(level_name), int):
            raise ValueError(f"NEWSXAI_LOG_LEVEL is not a logging level: '{raw_level}'")
        values['log_level'] = level_name

    return EngineSettings(**values)


# Initialize logging when module is imported
logger = setup_logging()
