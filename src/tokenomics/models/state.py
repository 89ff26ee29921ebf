import copy
import logging
import uuid
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import List

from ..errors import InsufficientSupply
from .market import generator_for
from .numeric import ZERO, quantize, quantize_down, quantum
from .pydantic_models import SimulationOptions, Token, User

logger = logging.getLogger(__name__)

# Namespaces for generator_for(); keep distinct streams per purpose.
PRICE_STREAM = 0
TRADE_STREAM = 1
IDENTITY_STREAM = 2


@dataclass
class SimulationState:
    """Mutable state of one run, owned by the Simulation.

    Circulating supply is held in three places that always add up:
    ``circulating_supply == treasury + fee_ledger + sum(user balances)``.
    """

    token: Token
    users: List[User]
    price: Decimal
    treasury: Decimal
    fee_ledger: Decimal
    precision: int
    bootstrap_users: int = 0
    interval: int = 0

    @property
    def circulating_supply(self) -> Decimal:
        return self.token.circulating_supply

    @property
    def active_users(self) -> int:
        return sum(1 for user in self.users if user.active)

    @property
    def held_supply(self) -> Decimal:
        return sum((user.balance for user in self.users), ZERO)

    @property
    def holders(self) -> int:
        return sum(1 for user in self.users if user.balance > 0)

    def ledger_balanced(self) -> bool:
        return self.treasury + self.fee_ledger + self.held_supply == self.circulating_supply

    def checkpoint(self) -> "SimulationState":
        return copy.deepcopy(self)

    def restore(self, checkpoint: "SimulationState") -> None:
        """Roll back to ``checkpoint``, discarding everything done since."""
        for field in fields(self):
            setattr(self, field.name, getattr(checkpoint, field.name))


def _user_id(seed: int, index: int) -> uuid.UUID:
    raw = generator_for(seed, IDENTITY_STREAM, index).bytes(16)
    return uuid.UUID(bytes=raw, version=4)


def initialize_state(token: Token, options: SimulationOptions) -> SimulationState:
    """Build the state before tick 1, with the whole supply in circulation.

    Each user receives ``airdrop / total_users`` (rounded down, dust stays in
    the treasury). Airdrop recipients start active at interval 0; everyone
    else starts inactive with a zero balance.

    Raises:
        InsufficientSupply: The airdrop exceeds the circulating supply.
    """
    precision = options.effective_precision(token)
    token = token.model_copy(deep=True)
    token.total_supply = quantize(token.total_supply, precision)
    token.circulating_supply = token.total_supply

    airdrop = token.airdrop_amount(precision)
    if airdrop > token.circulating_supply:
        raise InsufficientSupply(
            f"Airdrop of {airdrop} exceeds circulating supply of {token.circulating_supply}"
        )

    per_user = quantize_down(airdrop / options.total_users, precision) if airdrop > 0 else ZERO
    recipients = per_user > 0
    users = [
        User(
            id=_user_id(options.random_seed, index),
            index=index,
            balance=per_user,
            active=recipients,
            joined_at=0 if recipients else None,
        )
        for index in range(options.total_users)
    ]
    distributed = per_user * options.total_users

    logger.debug(
        "Initialized %d users, airdrop %s (%s per user), treasury %s",
        options.total_users,
        distributed,
        per_user,
        token.circulating_supply - distributed,
    )

    return SimulationState(
        token=token,
        users=users,
        price=max(quantize(token.initial_price, precision), quantum(precision)),
        treasury=token.circulating_supply - distributed,
        fee_ledger=ZERO,
        precision=precision,
        bootstrap_users=options.total_users if recipients else 0,
    )
