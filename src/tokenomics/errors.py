"""Error taxonomy for the simulation engine.

Every error is terminal for the operation that raised it; nothing is retried
internally. Numeric clamps (price floor, balance floor, supply floor) are
policy and never surface here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models.pydantic_models import SimulationReport


class SimulationError(Exception):
    """Base class for all simulation failures."""

    kind: str = "simulation_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class InvalidOptions(SimulationError):
    """A SimulationOptions field is outside its domain."""

    kind = "invalid_options"


class InvalidToken(SimulationError):
    """A Token field is outside its domain."""

    kind = "invalid_token"


class InsufficientSupply(SimulationError):
    """Airdrop or burn demands more supply than is circulating.

    When raised from a run, ``report`` holds the finalized partial report.
    """

    kind = "insufficient_supply"

    def __init__(self, message: str = "", report: Optional["SimulationReport"] = None) -> None:
        super().__init__(message)
        self.report = report


class AlreadyRun(SimulationError):
    """``run()`` was called on a simulation that has already run."""

    kind = "already_run"


class ReconciliationError(SimulationError):
    """Burn accounting does not reconcile with the token supply."""

    kind = "reconciliation_error"
