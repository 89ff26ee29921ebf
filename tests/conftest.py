import uuid
from decimal import Decimal

import pytest

from tokenomics.models import SimulationOptions, Token, User
from tokenomics.models.state import SimulationState


@pytest.fixture
def token() -> Token:
    return Token(
        name="Test Token",
        symbol="TST",
        total_supply=1_000_000,
        airdrop_percentage=5.0,
        burn_rate=1.0,
    )


@pytest.fixture
def options() -> SimulationOptions:
    return SimulationOptions(total_users=100, market_volatility=0.5, duration=10)


@pytest.fixture
def exhausted_state() -> SimulationState:
    """50 active holders of 100 tokens each, with no circulating supply left to burn."""
    users = [
        User(id=uuid.UUID(int=index + 1), index=index, balance=Decimal(100), active=True, joined_at=0)
        for index in range(50)
    ]
    return SimulationState(
        token=Token(name="T", total_supply=0, burn_rate=50),
        users=users,
        price=Decimal(1),
        treasury=Decimal(0),
        fee_ledger=Decimal(0),
        precision=4,
        bootstrap_users=50,
    )
