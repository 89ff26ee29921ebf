import json

import pandas as pd

from tokenomics.main import main

BASE_ARGS = ["-n", "Test Token", "-s", "TST", "-t", "1000000", "-a", "5", "-b", "1", "-u", "50", "-v", "0.5"]


class TestMain:
    def test_prints_final_report(self, capsys):
        assert main(BASE_ARGS + ["-d", "5"]) == 0

        assert capsys.readouterr().out.startswith("Final report")

    def test_json_output(self, capsys):
        assert main(BASE_ARGS + ["-d", "5", "--json", "--fee-percentage", "1"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["duration_run"] == 5
        assert data["completed"] is True
        assert "final_users" not in data

    def test_invalid_token_exits_nonzero(self, capsys):
        args = ["-n", "T", "-s", "T", "-t", "1000", "-a", "150", "-b", "1", "-u", "10", "-v", "0.5"]

        assert main(args) == 1
        assert "invalid_token" in capsys.readouterr().err

    def test_csv_output(self, tmp_path, capsys):
        path = tmp_path / "intervals.csv"

        assert main(BASE_ARGS + ["-d", "4", "--csv", str(path)]) == 0

        results_df = pd.read_csv(path, index_col="interval_index")
        assert list(results_df.index) == [1, 2, 3, 4]

    def test_plot_output(self, tmp_path, capsys):
        path = tmp_path / "chart.png"

        assert main(BASE_ARGS + ["-d", "3", "--plot", str(path)]) == 0
        assert path.stat().st_size > 0

    def test_supply_too_large_exits_nonzero(self, capsys):
        args = ["-n", "T", "-s", "T", "-t", "1e26", "-a", "5", "-b", "1", "-u", "10", "-v", "0.5"]

        assert main(args) == 1
        assert "invalid_token" in capsys.readouterr().err
