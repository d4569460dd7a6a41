"""
Remote API connection checks
"""

from .probes import ProbeStrategy, PROBES, DEFAULT_PROBE, get_probe
from .validator import (
    ConnectionValidator,
    ConnectionValidationError,
    ValidationOutcome,
    classify_status,
)

__all__ = [
    "ProbeStrategy",
    "PROBES",
    "DEFAULT_PROBE",
    "get_probe",
    "ConnectionValidator",
    "ConnectionValidationError",
    "ValidationOutcome",
    "classify_status",
]
