"""
Simulation driver: owns the configuration, the run state and the report
sequence of exactly one run.

Typical use:

    simulation = Simulation.from_config(
        {"name": "Example", "total_supply": 1_000_000, "airdrop_percentage": 5, "burn_rate": 1},
        {"total_users": 100, "market_volatility": 0.5, "duration": 10},
    )
    report = simulation.run()
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..errors import AlreadyRun, InsufficientSupply
from .aggregator import ReportAggregator
from .interval import IntervalProcessor
from .market import MarketModel
from .numeric import ledger_context
from .pydantic_models import IntervalReport, SimulationOptions, SimulationReport, Token
from .state import SimulationState, initialize_state
from .validation import validate_options, validate_token

logger = logging.getLogger(__name__)


class SimulationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    # Stopped early on InsufficientSupply; the partial report is kept.
    INCOMPLETE = "incomplete"


class Simulation:
    """One tokenomics simulation run.

    Attributes:
        id: Unique identifier of the simulation.
        name: Human-readable name.
        description: Optional free-form description.
        token: Token configuration the run starts from (never mutated).
        options: Run configuration.
        status: Lifecycle status; only a PENDING simulation can run.
        report: Final report, set once the run finishes or stops early.
        error: The error that stopped the run early, if any.
    """

    def __init__(
        self,
        token: Token,
        options: SimulationOptions,
        name: str = "Simulation",
        description: Optional[str] = None,
    ):
        self.id = uuid.uuid4()
        self.name = name
        self.description = description
        self.token = token
        self.options = options
        self.status = SimulationStatus.PENDING
        self.report: Optional[SimulationReport] = None
        self.error: Optional[InsufficientSupply] = None
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at
        self._aggregator: Optional[ReportAggregator] = None
        self._state: Optional[SimulationState] = None

    @classmethod
    def from_config(
        cls,
        token: Union[Mapping[str, Any], Token],
        options: Union[Mapping[str, Any], SimulationOptions],
        name: str = "Simulation",
        description: Optional[str] = None,
    ) -> "Simulation":
        """Validate raw configuration and build a simulation.

        Raises:
            InvalidToken: The token configuration is out of domain.
            InvalidOptions: The options are out of domain.
        """
        return cls(validate_token(token), validate_options(options), name=name, description=description)

    @property
    def interval_reports(self) -> List[IntervalReport]:
        if self._aggregator is None:
            return []
        return list(self._aggregator.reports)

    @property
    def state(self) -> Optional[SimulationState]:
        return self._state

    def update_status(self, status: SimulationStatus) -> None:
        logger.debug("Simulation %s status: %s -> %s", self.name, self.status.value, status.value)
        self.status = status
        self.updated_at = datetime.now(timezone.utc)

    def run(self) -> SimulationReport:
        """Run every interval and return the final report.

        Raises:
            AlreadyRun: The simulation has already run (or is running).
            InvalidToken: The token fails validation; no tick ran.
            InvalidOptions: The options fail validation; no tick ran.
            InsufficientSupply: Supply ran out. The run stops, the partial
                report is stored on ``self.report`` and on the error.
        """
        if self.status is not SimulationStatus.PENDING:
            raise AlreadyRun(f"Simulation {self.name} ({self.id}) has already run")

        token = validate_token(self.token)
        options = validate_options(self.options)

        self.update_status(SimulationStatus.RUNNING)
        precision = options.effective_precision(token)
        self._aggregator = aggregator = ReportAggregator(precision)

        logger.info(
            "Running simulation %s: %d users over %d %s intervals",
            self.name,
            options.total_users,
            options.duration,
            options.interval_type.value,
        )

        with ledger_context():
            try:
                state = initialize_state(token, options)
            except InsufficientSupply as exc:
                self.report = aggregator.finalize(token, [], options)
                raise self._stopped(exc)

            self._state = state
            processor = IntervalProcessor(options, MarketModel(precision))

            for _ in range(options.duration):
                try:
                    report = processor.tick(state)
                except InsufficientSupply as exc:
                    self.report = aggregator.finalize(state.token, state.users, options, state.price)
                    raise self._stopped(exc)
                aggregator.record(report)

            self.report = aggregator.finalize(state.token, state.users, options, state.price)

        self.update_status(SimulationStatus.COMPLETED)
        logger.info(
            "Simulation %s completed: final price %s, burned %s",
            self.name,
            self.report.final_price,
            self.report.total_burned,
        )
        return self.report

    def _stopped(self, error: InsufficientSupply) -> InsufficientSupply:
        error.report = self.report
        self.error = error
        self.update_status(SimulationStatus.INCOMPLETE)
        logger.warning(
            "Simulation %s stopped after %d of %d intervals: %s",
            self.name,
            self.report.duration_run,
            self.options.duration,
            error,
        )
        return error

    def to_dataframe(self) -> pd.DataFrame:
        if self._aggregator is None:
            return ReportAggregator(self.options.decimal_precision).to_dataframe()
        return self._aggregator.to_dataframe()

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the simulation, decimals rendered as floats."""
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "token": self.token.model_dump(mode="json"),
            "options": self.options.model_dump(mode="json"),
            "interval_reports": [report.model_dump(mode="json") for report in self.interval_reports],
            "report": self.report.model_dump(mode="json") if self.report is not None else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
