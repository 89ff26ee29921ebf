from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, model_validator

from .numeric import MAX_AMOUNT_DIGITS, digits_needed, quantize

# Decimal kept exact in Python, rendered as a JSON number on the wire.
Amount = Annotated[Decimal, PlainSerializer(lambda value: float(value), return_type=float, when_used="json")]


class Token(BaseModel):
    """Economic parameters of the simulated token.

    ``circulating_supply`` starts at ``total_supply`` and only ever decreases,
    through burn, so ``total_supply - circulating_supply`` is always the
    burned amount. Amounts must fit in ``MAX_AMOUNT_DIGITS`` digits at the
    token's precision.
    """

    name: str = Field(..., min_length=1, description="Token name")
    symbol: str = Field("TKN", min_length=1, description="Ticker symbol")
    total_supply: Amount = Field(Decimal(1_000_000), ge=0, description="Total minted supply")
    circulating_supply: Optional[Amount] = Field(
        None, ge=0, description="Supply in circulation; starts at total_supply"
    )
    airdrop_percentage: Amount = Field(Decimal(0), ge=0, le=100, description="% of total supply airdropped at t0")
    burn_rate: Amount = Field(Decimal(0), ge=0, le=100, description="% of traded volume burned per interval")
    initial_price: Amount = Field(Decimal(1), gt=0, description="Price at interval 0")
    decimal_precision: int = Field(4, ge=0, le=18, description="Fractional digits of the token")

    @model_validator(mode="after")
    def validate_supply(self):
        for field in ("total_supply", "initial_price"):
            value = getattr(self, field)
            if digits_needed(value, self.decimal_precision) > MAX_AMOUNT_DIGITS:
                raise ValueError(
                    f"{field} ({value}) needs more than {MAX_AMOUNT_DIGITS} digits "
                    f"at decimal_precision {self.decimal_precision}"
                )
        if self.circulating_supply is None:
            self.circulating_supply = self.total_supply
        if self.circulating_supply != self.total_supply:
            raise ValueError(
                f"circulating_supply ({self.circulating_supply}) must start at total_supply ({self.total_supply})"
            )
        return self

    @property
    def burned_to_date(self) -> Decimal:
        return self.total_supply - self.circulating_supply

    def airdrop_amount(self, precision: Optional[int] = None) -> Decimal:
        """Tokens distributed by the airdrop, ``airdrop_percentage`` of ``total_supply``."""
        amount = self.total_supply * self.airdrop_percentage / Decimal(100)
        return quantize(amount, self.decimal_precision if precision is None else precision)


class IntervalType(str, Enum):
    """Real-world duration attached to each tick. Labels only; the loop is the same."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def delta(self) -> timedelta:
        return {
            IntervalType.HOURLY: timedelta(hours=1),
            IntervalType.DAILY: timedelta(days=1),
            IntervalType.WEEKLY: timedelta(weeks=1),
            IntervalType.MONTHLY: timedelta(days=30),
        }[self]

    @property
    def seconds(self) -> int:
        return int(self.delta.total_seconds())

    @property
    def unit(self) -> str:
        return {
            IntervalType.HOURLY: "hour",
            IntervalType.DAILY: "day",
            IntervalType.WEEKLY: "week",
            IntervalType.MONTHLY: "month",
        }[self]

    def label(self, index: int, start_time: Optional[datetime] = None) -> str:
        if start_time is None:
            return f"{self.unit}-{index}"
        return (start_time + self.delta * index).isoformat()


class PercentageFee(BaseModel):
    """Fee charged as a percentage (0-100) of each trade."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["percentage"] = "percentage"
    percentage: Amount = Field(..., ge=0, le=100)

    @property
    def fraction(self) -> Decimal:
        return self.percentage / Decimal(100)


class CustomFee(BaseModel):
    """Fee charged as a raw fraction (0-1) of each trade."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["custom"] = "custom"
    fraction: Amount = Field(..., ge=0, le=1)


TransactionFee = Annotated[Union[PercentageFee, CustomFee], Field(discriminator="kind")]


class LinearValuation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["linear"] = "linear"


class ExponentialValuation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["exponential"] = "exponential"
    factor: float = Field(..., gt=0, description="Active users per e-fold of valuation")


ValuationModel = Annotated[Union[LinearValuation, ExponentialValuation], Field(discriminator="kind")]


class SimulationOptions(BaseModel):
    """Run configuration. Validated once, immutable afterwards."""

    model_config = ConfigDict(frozen=True)

    total_users: int = Field(..., gt=0, description="Size of the simulated population")
    market_volatility: float = Field(0.5, ge=0.0, le=1.0)
    interval_type: IntervalType = Field(IntervalType.DAILY)
    duration: int = Field(7, gt=0, description="Number of intervals to simulate")
    transaction_fee: Optional[TransactionFee] = Field(None)
    decimal_precision: int = Field(4, ge=0, le=18)

    # Adoption curve steepness (exponential factor per interval)
    adoption_rate: float = Field(0.1, gt=0.0, le=10.0)
    valuation_model: Optional[ValuationModel] = Field(None)

    random_seed: int = Field(42, ge=0)
    start_time: Optional[datetime] = Field(None, description="Anchors interval labels to a calendar time")

    def effective_precision(self, token: Token) -> int:
        """Ledger precision of a run: no finer than the token, no finer than requested."""
        return min(self.decimal_precision, token.decimal_precision)


class User(BaseModel):
    """A simulated user. Mutated only by the interval processor during a run."""

    id: UUID
    index: int = Field(..., ge=0)
    balance: Amount = Field(Decimal(0), ge=0)
    active: bool = False
    joined_at: Optional[int] = Field(None, ge=0, description="Interval at which the user activated")


class IntervalReport(BaseModel):
    """Outcome of one tick. Built once, never modified."""

    model_config = ConfigDict(frozen=True)

    interval_index: int = Field(..., ge=1)
    timestamp_label: str
    price: Amount = Field(..., gt=0)
    volume_traded: Amount = Field(..., ge=0)
    active_users: int = Field(..., ge=0)
    new_users: int = Field(..., ge=0)
    circulating_supply: Amount = Field(..., ge=0)
    burned_amount: Amount = Field(..., ge=0)
    fees_collected: Amount = Field(..., ge=0)

    adoption_fraction: float = Field(..., ge=0.0, le=1.0)
    successful_trades: int = Field(0, ge=0)
    failed_trades: int = Field(0, ge=0)
    treasury_balance: Amount = Field(Decimal(0), ge=0)
    price_floored: bool = Field(False, description="Price was clamped to the minimum positive price")

    # Activity metrics
    liquidity: Amount = Field(Decimal(0), ge=0, description="Trades per second of the interval")
    network_activity: int = Field(0, ge=0, description="Trades attempted in the interval")
    user_retention: float = Field(0.0, ge=0.0, le=1.0, description="Share of users holding a positive balance")


class SimulationReport(BaseModel):
    """Summary of a run, synthesized from the interval reports and final state."""

    model_config = ConfigDict(frozen=True)

    final_price: Amount
    total_volume: Amount
    total_burned: Amount
    total_fees_collected: Amount
    final_circulating_supply: Amount
    final_users: list[User]
    duration_run: int = Field(..., ge=0)

    successful_trades: int = 0
    failed_trades: int = 0
    market_cap: Amount = Decimal(0)
    fully_diluted_valuation: Amount = Decimal(0)
    valuation: Amount = Decimal(0)
    completed: bool = True

    # Averages over the interval reports
    liquidity: Amount = Decimal(0)
    network_activity: int = Field(0, ge=0, description="Trades attempted per interval")
    user_retention: float = Field(0.0, ge=0.0, le=1.0)
