from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .numeric import ZERO, quantize_down
from .pydantic_models import Amount, IntervalType


class VestingCliff(BaseModel):
    """One step of a vesting schedule.

    ``allocation`` of the schedule's tokens unlocks once ``duration`` seconds
    have passed since the previous cliff ended. Use ``duration=0`` for an
    unlock at the start.
    """

    model_config = ConfigDict(frozen=True)

    allocation: Amount = Field(..., ge=0, le=1, description="Fraction of the schedule unlocked by this cliff")
    duration: int = Field(..., ge=0, description="Seconds after the previous cliff")


class VestingSchedule(BaseModel):
    """Cliff-based unlock of an allocation of the token supply."""

    model_config = ConfigDict(frozen=True)

    allocation: Amount = Field(..., ge=0, le=1, description="Fraction of the supply under this schedule")
    cliffs: List[VestingCliff] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_cliffs(self):
        unlocked = sum((cliff.allocation for cliff in self.cliffs), ZERO)
        if unlocked > 1:
            raise ValueError(f"cliffs unlock {unlocked} of the allocation, more than all of it")
        return self

    def unlocked_tokens(self, total_tokens: Decimal, elapsed_seconds: int, precision: Optional[int] = None) -> Decimal:
        """Tokens unlocked after ``elapsed_seconds``.

        Cliffs are passed in order; the first cliff not yet reached stops the
        count, so later cliffs never unlock early.
        """
        allocated = Decimal(total_tokens) * self.allocation
        unlocked = ZERO
        cliff_end = 0
        for cliff in self.cliffs:
            cliff_end += cliff.duration
            if elapsed_seconds < cliff_end:
                break
            unlocked += allocated * cliff.allocation
        if precision is None:
            return unlocked
        return quantize_down(unlocked, precision)

    def unlocked_at_interval(
        self, total_tokens: Decimal, interval_type: IntervalType, index: int, precision: Optional[int] = None
    ) -> Decimal:
        """Tokens unlocked at the end of interval ``index`` of a run."""
        return self.unlocked_tokens(total_tokens, interval_type.seconds * index, precision)
