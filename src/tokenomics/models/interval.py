"""
One discrete tick of the simulation.

Key steps per interval:
1) Adoption: activate users up to the adoption curve's target.
2) Price: ask the market model for the interval's price.
3) Trades: every active user draws a trade from its own generator, then
   trades are settled against the treasury in user order.
4) Fees: withheld from the credited side of each trade into the fee ledger.
5) Burn: a share of traded volume leaves circulating supply.
6) Report: one immutable IntervalReport.

Ticks are strictly sequential: price and population carry over from one
interval to the next.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, NamedTuple

from ..errors import InsufficientSupply
from .market import MarketModel, adoption_target, generator_for
from .numeric import ZERO, percent_of, quantize, quantize_down
from .pydantic_models import CustomFee, IntervalReport, PercentageFee, SimulationOptions, User
from .state import PRICE_STREAM, TRADE_STREAM, SimulationState

logger = logging.getLogger(__name__)

TRADE_PROBABILITY = 0.5
BUY_PROBABILITY = 0.5
MIN_TRADE_FRACTION = 0.01
MAX_TRADE_FRACTION = 0.10


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TradeDraw(NamedTuple):
    """A user's trade decision for one interval, before settlement."""

    user_index: int
    trades: bool
    side: Side
    fraction: float


@dataclass
class TradeTotals:
    volume: Decimal = ZERO
    fees: Decimal = ZERO
    successful: int = 0
    failed: int = 0


def trade_fraction_range(volatility: float) -> tuple:
    """Bounds of the trade-size fraction; the upper bound widens with volatility."""
    upper = MIN_TRADE_FRACTION + (MAX_TRADE_FRACTION - MIN_TRADE_FRACTION) * volatility
    return MIN_TRADE_FRACTION, upper


def draw_trade(seed: int, interval: int, user_index: int, volatility: float) -> TradeDraw:
    """Draw one user's trade decision.

    The generator is keyed by ``(interval, user_index)`` so the draw does not
    depend on any other user's draw.
    """
    rng = generator_for(seed, TRADE_STREAM, interval, user_index)
    trades = bool(rng.random() < TRADE_PROBABILITY)
    side = Side.BUY if rng.random() < BUY_PROBABILITY else Side.SELL
    low, high = trade_fraction_range(volatility)
    fraction = float(rng.uniform(low, high)) if high > low else low
    return TradeDraw(user_index, trades, side, fraction)


class IntervalProcessor:
    """Advances a SimulationState by one interval.

    Holds configuration only; all run state is passed in.
    """

    def __init__(self, options: SimulationOptions, market: MarketModel):
        self.options = options
        self.market = market

    # 1) Adoption
    def adopt(self, state: SimulationState, interval: int) -> int:
        """Activate the lowest-index inactive users up to the curve's target."""
        target = adoption_target(
            interval, state.bootstrap_users, self.options.total_users, self.options.adoption_rate
        )
        needed = target - state.active_users
        if needed <= 0:
            return 0
        activated = 0
        for user in state.users:
            if activated == needed:
                break
            if not user.active:
                user.active = True
                user.joined_at = interval
                activated += 1
        return activated

    # 3) Trades
    def draw_trades(self, state: SimulationState, interval: int) -> List[TradeDraw]:
        return [
            draw_trade(self.options.random_seed, interval, user.index, self.options.market_volatility)
            for user in state.users
            if user.active
        ]

    # 4) Fees
    def fee_for(self, amount: Decimal, precision: int) -> Decimal:
        policy = self.options.transaction_fee
        if policy is None:
            return ZERO
        if not isinstance(policy, (PercentageFee, CustomFee)):
            raise TypeError(f"Unsupported fee policy: {policy!r}")
        fee = quantize(amount * policy.fraction, precision)
        return min(fee, amount)

    def settle_trades(self, state: SimulationState, draws: List[TradeDraw], price: Decimal) -> TradeTotals:
        """Apply trades in user order.

        Sells are clamped to the seller's balance and buys to the treasury, so
        no balance goes negative. A trade that clamps to zero counts as failed.
        """
        precision = state.precision
        reference_stake = state.token.total_supply / self.options.total_users
        totals = TradeTotals()

        for draw in draws:
            if not draw.trades:
                totals.failed += 1
                continue
            user: User = state.users[draw.user_index]
            fraction = Decimal(repr(draw.fraction))

            if draw.side is Side.BUY:
                wanted = quantize_down(reference_stake * fraction * state.token.initial_price / price, precision)
                amount = min(wanted, state.treasury)
            else:
                amount = min(quantize_down(user.balance * fraction, precision), user.balance)

            if amount <= 0:
                totals.failed += 1
                continue

            fee = self.fee_for(amount, precision)
            if draw.side is Side.BUY:
                state.treasury -= amount
                user.balance += amount - fee
            else:
                user.balance -= amount
                state.treasury += amount - fee
            state.fee_ledger += fee

            totals.volume += amount
            totals.fees += fee
            totals.successful += 1

        return totals

    # 5) Burn
    def apply_burn(self, state: SimulationState, volume: Decimal) -> Decimal:
        """Burn ``burn_rate`` percent of ``volume`` from circulating supply.

        The burn is taken from the treasury first, then the fee ledger, then
        active holders pro rata. It saturates at the circulating supply.

        Raises:
            InsufficientSupply: Circulating supply is already zero while a
                positive burn is requested.
        """
        precision = state.precision
        expected = percent_of(volume, state.token.burn_rate, precision)
        if expected <= 0:
            return ZERO
        circulating = state.circulating_supply
        if circulating <= 0:
            raise InsufficientSupply(
                f"Cannot burn {expected} at interval {state.interval + 1}: circulating supply is exhausted"
            )

        burned = min(expected, circulating)
        if burned < expected:
            logger.debug("Burn of %s clamped to remaining supply %s", expected, burned)

        remaining = burned
        from_treasury = min(remaining, state.treasury)
        state.treasury -= from_treasury
        remaining -= from_treasury

        from_fees = min(remaining, state.fee_ledger)
        state.fee_ledger -= from_fees
        remaining -= from_fees

        if remaining > 0:
            self._burn_from_holders(state, remaining)

        state.token.circulating_supply = circulating - burned
        return burned

    def _burn_from_holders(self, state: SimulationState, amount: Decimal) -> None:
        holders = [user for user in state.users if user.active and user.balance > 0]
        held = sum((user.balance for user in holders), ZERO)
        if amount > held:
            # Holdings always cover the shortfall while the ledger balances.
            raise InsufficientSupply(f"Cannot burn {amount} from holders holding {held}")

        taken = ZERO
        for user in holders:
            share = min(user.balance, quantize_down(user.balance * amount / held, state.precision))
            user.balance -= share
            taken += share

        # Rounding dust, taken in user order.
        dust = amount - taken
        for user in holders:
            if dust <= 0:
                break
            share = min(user.balance, dust)
            user.balance -= share
            dust -= share

    def tick(self, state: SimulationState) -> IntervalReport:
        """Run one interval against ``state`` and return its report.

        The interval is all or nothing: if it raises, ``state`` is rolled back
        to where it was before the call.
        """
        checkpoint = state.checkpoint()
        try:
            return self._advance(state)
        except InsufficientSupply:
            state.restore(checkpoint)
            raise

    def _advance(self, state: SimulationState) -> IntervalReport:
        options = self.options
        interval = state.interval + 1

        new_users = self.adopt(state, interval)
        active_users = state.active_users
        adoption_fraction = active_users / options.total_users

        move = self.market.next_price(
            state.price,
            options.market_volatility,
            adoption_fraction,
            generator_for(options.random_seed, PRICE_STREAM, interval),
            elapsed=interval,
        )

        draws = self.draw_trades(state, interval)
        totals = self.settle_trades(state, draws, move.price)
        burned = self.apply_burn(state, totals.volume)

        state.price = move.price
        state.interval = interval

        logger.debug(
            "Interval %d: price=%s volume=%s fees=%s burned=%s active=%d (+%d)",
            interval,
            move.price,
            totals.volume,
            totals.fees,
            burned,
            active_users,
            new_users,
        )

        precision = state.precision
        trades = totals.successful + totals.failed
        return IntervalReport(
            interval_index=interval,
            timestamp_label=options.interval_type.label(interval, options.start_time),
            price=move.price,
            volume_traded=quantize(totals.volume, precision),
            active_users=active_users,
            new_users=new_users,
            circulating_supply=quantize(state.circulating_supply, precision),
            burned_amount=quantize(burned, precision),
            fees_collected=quantize(totals.fees, precision),
            adoption_fraction=adoption_fraction,
            successful_trades=totals.successful,
            failed_trades=totals.failed,
            treasury_balance=quantize(state.treasury, precision),
            price_floored=move.floored,
            liquidity=quantize(Decimal(trades) / options.interval_type.seconds, precision),
            network_activity=trades,
            user_retention=state.holders / options.total_users,
        )
