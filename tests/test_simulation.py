"""End-to-end tests for Simulation.run()."""

from decimal import Decimal

import pytest

import tokenomics.models.simulation as simulation_module
from tokenomics import (
    AlreadyRun,
    InsufficientSupply,
    InvalidOptions,
    InvalidToken,
    Simulation,
    SimulationStatus,
    Token,
)
from tokenomics.models import SimulationOptions


class TestSimulationRun:
    def test_concrete_scenario(self, token, options):
        simulation = Simulation(token, options, name="scenario")

        report = simulation.run()

        assert simulation.status is SimulationStatus.COMPLETED
        assert len(simulation.interval_reports) == 10
        active = [interval.active_users for interval in simulation.interval_reports]
        assert active == sorted(active)
        assert report.final_circulating_supply < Decimal(1_000_000)
        assert report.total_burned > 0
        assert report.completed
        assert report.duration_run == 10

    def test_supply_conservation(self, token, options):
        simulation = Simulation(token, options)
        report = simulation.run()

        burned = sum(interval.burned_amount for interval in simulation.interval_reports)

        assert token.total_supply - report.final_circulating_supply == report.total_burned == burned
        assert simulation.state.ledger_balanced()

    def test_fee_and_volume_conservation(self, token):
        simulation = Simulation.from_config(
            token,
            {
                "total_users": 100,
                "market_volatility": 0.5,
                "duration": 10,
                "transaction_fee": {"kind": "percentage", "percentage": 1},
            },
        )
        report = simulation.run()

        assert report.total_fees_collected == sum(i.fees_collected for i in simulation.interval_reports)
        assert report.total_volume == sum(i.volume_traded for i in simulation.interval_reports)
        assert report.total_fees_collected > 0
        assert simulation.state.fee_ledger == report.total_fees_collected

    def test_reports_are_ordered_and_priced(self, token, options):
        simulation = Simulation(token, options)
        simulation.run()

        indices = [interval.interval_index for interval in simulation.interval_reports]

        assert indices == list(range(1, 11))
        assert all(interval.price > 0 for interval in simulation.interval_reports)
        assert all(interval.volume_traded >= 0 for interval in simulation.interval_reports)
        assert all(user.balance >= 0 for user in simulation.report.final_users)

    def test_same_seed_same_run(self, token, options):
        first = Simulation(token, options)
        second = Simulation(token, options)

        assert first.run() == second.run()
        assert first.interval_reports == second.interval_reports

    def test_zero_volatility_is_seed_independent(self, token):
        prices = []
        for seed in (1, 2):
            simulation = Simulation.from_config(
                token, {"total_users": 20, "market_volatility": 0.0, "duration": 5, "random_seed": seed}
            )
            simulation.run()
            prices.append([interval.price for interval in simulation.interval_reports])

        assert prices[0] == prices[1]
        assert prices[0] == sorted(prices[0])

    def test_adoption_without_airdrop(self):
        simulation = Simulation.from_config(
            {"name": "T", "burn_rate": 1}, {"total_users": 50, "adoption_rate": 0.3, "duration": 10}
        )
        simulation.run()

        active = [interval.active_users for interval in simulation.interval_reports]

        assert active[0] > 0
        assert active == sorted(active)
        assert active[-1] <= 50
        assert sum(interval.new_users for interval in simulation.interval_reports) == active[-1]

    def test_interval_labels_follow_start_time(self, token):
        simulation = Simulation.from_config(
            token,
            {"total_users": 5, "duration": 2, "interval_type": "hourly", "start_time": "2024-01-01T00:00:00"},
        )
        simulation.run()

        assert [i.timestamp_label for i in simulation.interval_reports] == [
            "2024-01-01T01:00:00",
            "2024-01-01T02:00:00",
        ]

    def test_caller_token_untouched(self, token, options):
        Simulation(token, options).run()

        assert token.circulating_supply == Decimal(1_000_000)


class TestSimulationErrors:
    def test_second_run_rejected(self, token, options):
        simulation = Simulation(token, options)
        report = simulation.run()

        with pytest.raises(AlreadyRun):
            simulation.run()
        assert simulation.report is report
        assert simulation.status is SimulationStatus.COMPLETED

    def test_invalid_token_at_run(self, options):
        unchecked = Token.model_construct(name="T", airdrop_percentage=Decimal(150))
        simulation = Simulation(unchecked, options)

        with pytest.raises(InvalidToken):
            simulation.run()
        assert simulation.status is SimulationStatus.PENDING
        assert simulation.interval_reports == []

    def test_invalid_options_from_config(self, token):
        with pytest.raises(InvalidOptions):
            Simulation.from_config(token, {"total_users": 10, "market_volatility": 2})

    def test_airdrop_beyond_supply_stops_before_first_tick(self, token, options, monkeypatch):
        def short_supply(token, options):
            raise InsufficientSupply("Airdrop exceeds circulating supply")

        monkeypatch.setattr(simulation_module, "initialize_state", short_supply)
        simulation = Simulation(token, options)

        with pytest.raises(InsufficientSupply) as exc_info:
            simulation.run()

        assert simulation.status is SimulationStatus.INCOMPLETE
        assert exc_info.value.report is simulation.report
        assert simulation.report.duration_run == 0
        assert not simulation.report.completed
        assert simulation.error is exc_info.value

    def test_exhausted_supply_keeps_partial_report(self, exhausted_state, monkeypatch):
        options = SimulationOptions(total_users=50, market_volatility=0.5, duration=5)
        monkeypatch.setattr(simulation_module, "initialize_state", lambda token, options: exhausted_state)
        simulation = Simulation(Token(name="T", total_supply=0, burn_rate=50), options)

        with pytest.raises(InsufficientSupply) as exc_info:
            simulation.run()

        report = exc_info.value.report
        assert report.duration_run == 0
        assert not report.completed
        assert simulation.interval_reports == []
        assert simulation.status is SimulationStatus.INCOMPLETE
        assert all(user.balance == Decimal(100) for user in report.final_users)
        assert report.total_volume == 0

    def test_circulating_supply_below_total_rejected(self, options):
        with pytest.raises(InvalidToken):
            Simulation.from_config(
                {"name": "T", "total_supply": 1_000_000, "circulating_supply": 900_000, "burn_rate": 1}, options
            )

    def test_supply_beyond_ledger_digits_rejected(self, options):
        with pytest.raises(InvalidToken):
            Simulation.from_config(
                {"name": "T", "total_supply": 10**12, "decimal_precision": 18},
                {"total_users": 10, "decimal_precision": 18},
            )


class TestLargeSupply:
    def test_largest_supply_runs_and_conserves(self):
        total_supply = Decimal(10**23 - 1)
        simulation = Simulation.from_config(
            {"name": "T", "total_supply": total_supply, "airdrop_percentage": 5, "burn_rate": 1, "initial_price": 1000},
            {"total_users": 20, "duration": 5},
        )

        report = simulation.run()

        assert report.completed
        assert report.final_circulating_supply + report.total_burned == total_supply
        assert report.market_cap > 0
        assert simulation.state.ledger_balanced()


class TestSimulationOutput:
    def test_to_dict(self, token, options):
        simulation = Simulation(token, options, name="dict", description="check")
        simulation.run()

        data = simulation.to_dict()

        assert data["status"] == "completed"
        assert data["name"] == "dict"
        assert len(data["interval_reports"]) == 10
        assert isinstance(data["report"]["final_price"], float)

    def test_to_dataframe(self, token, options):
        simulation = Simulation(token, options)

        assert simulation.to_dataframe().empty
        simulation.run()

        assert len(simulation.to_dataframe()) == options.duration

    def test_activity_metrics(self, token, options):
        simulation = Simulation(token, options)
        report = simulation.run()

        trades = report.successful_trades + report.failed_trades
        assert report.network_activity == trades // options.duration
        assert report.liquidity >= 0
        assert 0.0 < report.user_retention <= 1.0
        assert simulation.to_dataframe()["network_activity"].sum() == trades
