"""Tokenomics simulator: project price, supply, volume and adoption of a token."""

from .errors import (
    AlreadyRun,
    InsufficientSupply,
    InvalidOptions,
    InvalidToken,
    ReconciliationError,
    SimulationError,
)
from .models import (
    IntervalReport,
    IntervalType,
    Simulation,
    SimulationOptions,
    SimulationReport,
    SimulationStatus,
    Token,
    validate_options,
    validate_token,
)

__version__ = "0.1.0"

__all__ = [
    "AlreadyRun",
    "InsufficientSupply",
    "InvalidOptions",
    "InvalidToken",
    "ReconciliationError",
    "SimulationError",
    "IntervalReport",
    "IntervalType",
    "Simulation",
    "SimulationOptions",
    "SimulationReport",
    "SimulationStatus",
    "Token",
    "validate_options",
    "validate_token",
]
