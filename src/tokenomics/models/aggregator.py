import logging
from decimal import Decimal
from typing import Iterable, List, Optional

import pandas as pd

from ..errors import ReconciliationError
from .market import valuation
from .numeric import ZERO, quantize
from .pydantic_models import IntervalReport, SimulationOptions, SimulationReport, Token, User

logger = logging.getLogger(__name__)


class ReportAggregator:
    """Accumulates interval reports and synthesizes the final SimulationReport.

    Reports must arrive in order: ``interval_index`` 1, 2, 3, ...
    """

    def __init__(self, precision: int):
        self.precision = precision
        self.reports: List[IntervalReport] = []

    def __len__(self) -> int:
        return len(self.reports)

    def record(self, report: IntervalReport) -> None:
        expected = len(self.reports) + 1
        if report.interval_index != expected:
            raise ValueError(f"Expected interval {expected}, got {report.interval_index}")
        self.reports.append(report)

    @property
    def last(self) -> Optional[IntervalReport]:
        return self.reports[-1] if self.reports else None

    def _total(self, values: Iterable[Decimal]) -> Decimal:
        return quantize(sum(values, ZERO), self.precision)

    def _mean(self, values: Iterable[Decimal]) -> Decimal:
        values = list(values)
        if not values:
            return ZERO
        return quantize(sum(values, ZERO) / len(values), self.precision)

    def finalize(
        self,
        token: Token,
        users: List[User],
        options: SimulationOptions,
        initial_price: Optional[Decimal] = None,
    ) -> SimulationReport:
        """Build the final report from the recorded sequence and the final state.

        Args:
            token: Token as it stands at the end of the run.
            users: Final population; snapshotted into the report.
            options: Options of the run (valuation model, duration).
            initial_price: Price used when no interval completed.

        Raises:
            ReconciliationError: The burned total does not explain the gap
                between total and circulating supply.
        """
        total_volume = self._total(report.volume_traded for report in self.reports)
        total_fees = self._total(report.fees_collected for report in self.reports)
        total_burned = self._total(report.burned_amount for report in self.reports)
        final_circulating = quantize(token.circulating_supply, self.precision)
        total_supply = quantize(token.total_supply, self.precision)

        if total_supply - final_circulating != total_burned:
            raise ReconciliationError(
                f"Supply drop {total_supply - final_circulating} does not match burned total {total_burned}"
            )

        last = self.last
        if last is not None:
            final_price = last.price
        else:
            final_price = quantize(token.initial_price if initial_price is None else initial_price, self.precision)

        active_users = sum(1 for user in users if user.active)
        market_cap = quantize(final_price * final_circulating, self.precision)
        duration_run = len(self.reports)
        trades = sum(report.network_activity for report in self.reports)

        report = SimulationReport(
            final_price=final_price,
            total_volume=total_volume,
            total_burned=total_burned,
            total_fees_collected=total_fees,
            final_circulating_supply=final_circulating,
            final_users=[user.model_copy() for user in users],
            duration_run=duration_run,
            successful_trades=sum(report.successful_trades for report in self.reports),
            failed_trades=sum(report.failed_trades for report in self.reports),
            market_cap=market_cap,
            fully_diluted_valuation=quantize(final_price * total_supply, self.precision),
            valuation=valuation(
                options.valuation_model,
                final_price,
                final_circulating,
                active_users,
                token.initial_price,
                self.precision,
            ),
            completed=duration_run == options.duration,
            liquidity=self._mean(report.liquidity for report in self.reports),
            network_activity=trades // duration_run if duration_run else 0,
            user_retention=(
                min(1.0, sum(report.user_retention for report in self.reports) / duration_run) if duration_run else 0.0
            ),
        )
        logger.debug(
            "Finalized %d intervals: volume=%s fees=%s burned=%s",
            duration_run,
            total_volume,
            total_fees,
            total_burned,
        )
        return report

    def to_dataframe(self) -> pd.DataFrame:
        """Interval reports as a DataFrame indexed by interval, decimals as floats."""
        columns = list(IntervalReport.model_fields)
        records = [report.model_dump(mode="json") for report in self.reports]
        results_df = pd.DataFrame(records, columns=columns)
        return results_df.set_index("interval_index")
