from .pydantic_models import (
    CustomFee,
    ExponentialValuation,
    IntervalReport,
    IntervalType,
    LinearValuation,
    PercentageFee,
    SimulationOptions,
    SimulationReport,
    Token,
    User,
)
from .market import MarketModel, PriceMove, adoption_target
from .interval import IntervalProcessor
from .aggregator import ReportAggregator
from .simulation import Simulation, SimulationStatus
from .vesting import VestingCliff, VestingSchedule
from .validation import validate_options, validate_token


__all__ = [
    "CustomFee",
    "ExponentialValuation",
    "IntervalReport",
    "IntervalType",
    "LinearValuation",
    "PercentageFee",
    "SimulationOptions",
    "SimulationReport",
    "Token",
    "User",
    "MarketModel",
    "PriceMove",
    "adoption_target",
    "IntervalProcessor",
    "ReportAggregator",
    "Simulation",
    "SimulationStatus",
    "VestingCliff",
    "VestingSchedule",
    "validate_options",
    "validate_token",
]
