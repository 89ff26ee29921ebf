"""
Price formation and user adoption.

The price follows a multiplicative random walk:

    price_t = price_{t-1} * (1 + drift_t + shock_t)

- ``drift_t`` is deterministic: proportional to the adoption fraction and
  damped exponentially with elapsed intervals, so adoption momentum tapers.
- ``shock_t`` is uniform on ``[-v * max_perturbation, v * max_perturbation]``
  for volatility ``v``. Nothing is drawn when ``v == 0``.

Since ``max_perturbation < 1`` the step factor stays positive; the price floor
only catches values that round to zero at the run's precision.

Adoption follows a saturating exponential curve from the bootstrap cohort up to
the whole population. Both curves are pure functions of their inputs plus a
caller-supplied generator.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import NamedTuple, Optional, Union

import numpy as np

from .numeric import quantize, quantum
from .pydantic_models import ExponentialValuation, LinearValuation

logger = logging.getLogger(__name__)

DRIFT_RATE = 0.02
DRIFT_DECAY = 0.05
MAX_PERTURBATION = 0.25


def generator_for(seed: int, *key: int) -> np.random.Generator:
    """Independent generator for ``key`` under the root ``seed``.

    Generators for different keys never share a stream, so draws do not
    depend on the order in which they are requested.
    """
    return np.random.default_rng(np.random.SeedSequence(seed, spawn_key=key))


class PriceMove(NamedTuple):
    price: Decimal
    floored: bool


class MarketModel:
    """Volatility-bounded random walk with an adoption-weighted drift.

    Attributes:
        precision: Fractional digits prices are rounded to.
        drift_rate: Drift per interval at full adoption, before damping.
        drift_decay: Exponential damping of the drift per elapsed interval.
        max_perturbation: Relative shock range at volatility 1.0.
    """

    def __init__(
        self,
        precision: int,
        drift_rate: float = DRIFT_RATE,
        drift_decay: float = DRIFT_DECAY,
        max_perturbation: float = MAX_PERTURBATION,
    ):
        if not 0.0 <= max_perturbation < 1.0:
            raise ValueError("max_perturbation must be in [0, 1)")
        if drift_rate < 0 or drift_decay < 0:
            raise ValueError("drift_rate and drift_decay must be non-negative")
        self.precision = precision
        self.drift_rate = drift_rate
        self.drift_decay = drift_decay
        self.max_perturbation = max_perturbation

    @property
    def min_price(self) -> Decimal:
        """Smallest strictly positive price at this precision."""
        return quantum(self.precision)

    def drift(self, adoption_fraction: float, elapsed: int) -> float:
        return self.drift_rate * adoption_fraction * math.exp(-self.drift_decay * max(0, elapsed - 1))

    def perturbation(self, volatility: float, rng: np.random.Generator) -> float:
        if volatility <= 0.0:
            return 0.0
        return volatility * self.max_perturbation * rng.uniform(-1.0, 1.0)

    def next_price(
        self,
        previous_price: Decimal,
        volatility: float,
        adoption_fraction: float,
        rng: np.random.Generator,
        elapsed: int = 1,
    ) -> PriceMove:
        """Compute the price of the next interval.

        Args:
            previous_price: Price at the end of the previous interval.
            volatility: Market volatility in [0, 1].
            adoption_fraction: Share of the population currently active.
            rng: Generator used for the random shock.
            elapsed: 1-based index of the interval being priced.

        Returns:
            The new price and whether the positive floor was applied.
        """
        step = 1.0 + self.drift(adoption_fraction, elapsed) + self.perturbation(volatility, rng)
        price = quantize(Decimal(previous_price) * Decimal(repr(step)), self.precision)
        if price < self.min_price:
            logger.debug("Price %s floored to %s at interval %d", price, self.min_price, elapsed)
            return PriceMove(self.min_price, True)
        return PriceMove(price, False)


def adoption_target(elapsed: int, bootstrap: int, total_users: int, adoption_rate: float) -> int:
    """Number of users that should be active after ``elapsed`` intervals.

    Saturating curve ``bootstrap + (N - bootstrap) * (1 - exp(-rate * t))``,
    non-decreasing in ``elapsed`` and never above ``total_users``.
    """
    if bootstrap >= total_users:
        return total_users
    remaining = total_users - bootstrap
    adopted = int(round(remaining * (1.0 - math.exp(-adoption_rate * max(0, elapsed)))))
    return min(total_users, bootstrap + adopted)


def valuation(
    model: Optional[Union[LinearValuation, ExponentialValuation]],
    price: Decimal,
    circulating_supply: Decimal,
    active_users: int,
    initial_price: Decimal,
    precision: int,
) -> Decimal:
    """Overall valuation of the token under ``model``.

    Without a model the valuation is the market cap. The exponential model
    falls back to ``initial_price`` when the result is not representable.
    """
    if model is None:
        return quantize(price * circulating_supply, precision)
    if isinstance(model, LinearValuation):
        return quantize(price * active_users, precision)
    try:
        growth = math.exp(active_users / model.factor)
        return quantize(initial_price * Decimal(repr(growth)), precision)
    except (OverflowError, InvalidOperation):
        logger.debug("Exponential valuation overflowed for %d users, using initial price", active_users)
        return quantize(initial_price, precision)
