from __future__ import annotations

import argparse
import json
import logging
import sys

import pandas as pd

from tokenomics.errors import SimulationError
from tokenomics.models.pydantic_models import IntervalType, SimulationReport
from tokenomics.models.simulation import Simulation

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tokenomics", description="Run a tokenomics simulation")
    token = parser.add_argument_group("token")
    token.add_argument("-n", "--name", required=True, help="Name of the token")
    token.add_argument("-s", "--symbol", required=True, help="Symbol of the token")
    token.add_argument("-t", "--total-supply", required=True, help="Total supply of the token")
    token.add_argument("-a", "--airdrop-percentage", required=True, help="Airdrop percentage (0-100)")
    token.add_argument("-b", "--burn-rate", required=True, help="Burn rate, percent of volume (0-100)")
    token.add_argument("--initial-price", default="1", help="Price at interval 0 (default: 1)")

    options = parser.add_argument_group("simulation")
    options.add_argument("-u", "--total-users", type=int, required=True, help="Number of simulated users")
    options.add_argument("-v", "--market-volatility", type=float, required=True, help="Volatility (0.0-1.0)")
    options.add_argument("-d", "--duration", type=int, default=7, help="Number of intervals (default: 7)")
    options.add_argument(
        "-i",
        "--interval",
        default=IntervalType.DAILY.value,
        choices=[item.value for item in IntervalType],
        help="Interval label (default: daily)",
    )
    options.add_argument("--fee-percentage", default=None, help="Transaction fee, percent of each trade")
    options.add_argument("--adoption-rate", type=float, default=0.1, help="Adoption curve factor (default: 0.1)")
    options.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    options.add_argument("--precision", type=int, default=4, help="Decimal precision (default: 4)")

    output = parser.add_argument_group("output")
    output.add_argument("--json", action="store_true", help="Print the final report as JSON")
    output.add_argument("--csv", default=None, help="Write interval reports to this CSV file")
    output.add_argument("--plot", default=None, help="Write a price/supply chart to this PNG file")
    output.add_argument(
        "--log-level",
        default="warning",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Log level (default: warning)",
    )
    return parser


def format_report(report: SimulationReport) -> str:
    lines = [
        "Final report",
        f"  intervals run:            {report.duration_run}",
        f"  final price:              {report.final_price}",
        f"  total volume:             {report.total_volume}",
        f"  total fees collected:     {report.total_fees_collected}",
        f"  total burned:             {report.total_burned}",
        f"  final circulating supply: {report.final_circulating_supply}",
        f"  market cap:               {report.market_cap}",
        f"  fully diluted valuation:  {report.fully_diluted_valuation}",
        f"  valuation:                {report.valuation}",
        f"  trades (ok/failed):       {report.successful_trades}/{report.failed_trades}",
        f"  trades per interval:      {report.network_activity}",
        f"  liquidity (trades/s):     {report.liquidity}",
        f"  user retention:           {report.user_retention:.2%}",
        f"  users (active/total):     {sum(1 for u in report.final_users if u.active)}/{len(report.final_users)}",
    ]
    return "\n".join(lines)


def plot_results(results_df: pd.DataFrame, path: str) -> None:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, (price_ax, supply_ax) = plt.subplots(2, 1, figsize=(8, 6), sharex=True)
    price_ax.plot(results_df.index, results_df["price"])
    price_ax.set_title("Token Price")
    price_ax.set_ylabel("Price")
    supply_ax.plot(results_df.index, results_df["circulating_supply"])
    supply_ax.set_title("Circulating Supply")
    supply_ax.set_xlabel("Interval")
    supply_ax.set_ylabel("Tokens")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def main(argv: list[str] | None = None) -> int:
    """Console entry point. Returns 0 on success, 1 on any SimulationError."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    token = {
        "name": args.name,
        "symbol": args.symbol,
        "total_supply": args.total_supply,
        "airdrop_percentage": args.airdrop_percentage,
        "burn_rate": args.burn_rate,
        "initial_price": args.initial_price,
        "decimal_precision": args.precision,
    }
    options = {
        "total_users": args.total_users,
        "market_volatility": args.market_volatility,
        "duration": args.duration,
        "interval_type": args.interval,
        "adoption_rate": args.adoption_rate,
        "random_seed": args.seed,
        "decimal_precision": args.precision,
    }
    if args.fee_percentage is not None:
        options["transaction_fee"] = {"kind": "percentage", "percentage": args.fee_percentage}

    try:
        simulation = Simulation.from_config(token, options, name=args.name, description="CLI simulation")
        report = simulation.run()
    except SimulationError as exc:
        print(f"error ({exc.kind}): {exc}", file=sys.stderr)
        return 1

    if args.csv:
        simulation.to_dataframe().to_csv(args.csv)
    if args.plot:
        plot_results(simulation.to_dataframe(), args.plot)

    if args.json:
        print(json.dumps(report.model_dump(mode="json", exclude={"final_users"}), indent=2))
    else:
        print(format_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
