import os

from spectra.config.config import (
    DEFAULT_SHUTDOWN_TIMEOUT,
    Config,
    SpectraConfig,
    validate_config,
)

__all__ = [
    "DEFAULT_SHUTDOWN_TIMEOUT",
    "Config",
    "SpectraConfig",
    "validate_config",
    "is_tracing_enabled",
    "is_metrics_enabled",
    "is_logs_enabled",
    "should_suppress_warnings",
]


def is_tracing_enabled() -> bool:
    return (os.getenv("SPECTRA_TRACING_ENABLED") or "true").lower() == "true"


def is_metrics_enabled() -> bool:
    return (os.getenv("SPECTRA_METRICS_ENABLED") or "true").lower() == "true"


def is_logs_enabled() -> bool:
    return (os.getenv("SPECTRA_LOGS_ENABLED") or "true").lower() == "true"


def should_suppress_warnings() -> bool:
    return (os.getenv("SPECTRA_SUPPRESS_WARNINGS") or "false").lower() == "true"
