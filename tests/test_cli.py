"""
Tests for the command-line interface.
"""
from unittest.mock import patch

import pandas as pd
import pytest

from allocator.cli import DISCLAIMER, format_report, main
from allocator.models import Instrument, Quote
from allocator.ranking import REPORT_FILE, run_ranking_pass

from .conftest import make_series

UNIVERSE = {
    "UP": make_series([100 + i for i in range(30)]),
    "DOWN": make_series([129 - i for i in range(30)]),
}


def fake_fetch_series(provider, symbol, api_key=None, mapper=None):
    return UNIVERSE.get(symbol, [])


@pytest.fixture
def cli_env(clean_env, tmp_path):
    clean_env.chdir(tmp_path)
    with patch("allocator.refresh.fetch_series", side_effect=fake_fetch_series) as mock_fetch, \
            patch("allocator.cli.market_status", return_value="closed"):
        yield mock_fetch


class TestFormatReport:
    @patch("allocator.cli.market_status", return_value="open")
    def test_recommendation(self, mock_status, default_weights):
        instruments = [Instrument("UP", "Rising Corp"), Instrument("DOWN")]
        report = run_ranking_pass(
            UNIVERSE,
            {"UP": Quote(price=1234.5, timestamp="2024-02-01T15:00:00Z")},
            default_weights,
            provider="finnhub",
        )

        text = format_report(report, instruments)

        assert text.startswith("Provider: FINNHUB | US market open")
        assert "This week's recommendation: UP" in text
        assert "Based on " in text
        assert "$1,234.50" in text
        assert "Live" in text
        assert text.rstrip().endswith(DISCLAIMER)

        up_line = next(line for line in text.splitlines() if line.startswith("UP "))
        assert up_line.endswith(" *")
        down_line = next(line for line in text.splitlines() if line.startswith("DOWN "))
        assert not down_line.endswith(" *")
        assert "Close" in down_line

    @patch("allocator.cli.market_status", return_value="closed")
    def test_no_data(self, mock_status, default_weights):
        report = run_ranking_pass({"UP": []}, {}, default_weights, provider="stooq")

        text = format_report(report, [Instrument("UP")], fallback=True)

        assert "(no key -> fallback)" in text
        assert "Fetching data..." in text
        assert "recommendation" not in text

    @patch("allocator.cli.market_status", return_value="closed")
    def test_errors_listed(self, mock_status, default_weights):
        report = run_ranking_pass(
            UNIVERSE, {}, default_weights, errors={"DOWN": "series: timeout"}
        )
        text = format_report(report, [Instrument("UP"), Instrument("DOWN")])
        assert "! DOWN: series: timeout" in text


class TestMain:
    def test_once_prints_recommendation(self, cli_env, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--once", "--no-save", "--tickers", "UP", "DOWN"])

        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "This week's recommendation: UP" in out
        assert "Provider: STOOQ" in out
        requested = [call.args[1] for call in cli_env.call_args_list]
        assert sorted(requested) == ["DOWN", "UP"]

    def test_once_writes_csv(self, cli_env, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(["--once", "--tickers", "UP", "DOWN=Falling Corp", "--output", str(tmp_path / "out")])

        assert exc.value.code == 0
        df = pd.read_csv(tmp_path / "out" / REPORT_FILE, dtype=str, keep_default_na=False)
        assert list(df["Symbol"]) == ["UP", "DOWN"]
        assert list(df["Name"]) == ["", "Falling Corp"]

    def test_keyed_provider_without_key(self, cli_env, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--once", "--no-save", "--provider", "finnhub", "--tickers", "UP"])

        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "(no key -> fallback)" in out
        assert "Provider: STOOQ" in out

    @pytest.mark.parametrize(
        "argv",
        [
            ["--once", "--weights", "0.5,0.5"],
            ["--once", "--weights", "2,0,0"],
            ["--once", "--provider", "yahoo"],
            ["--once", "--interval", "soon"],
        ],
    )
    def test_bad_arguments(self, cli_env, argv):
        with pytest.raises(SystemExit) as exc:
            main(argv)
        assert exc.value.code == 2

    def test_invalid_environment(self, cli_env, clean_env):
        clean_env.setenv("ALLOCATOR_WEIGHT_SLOPE", "7")
        with pytest.raises(SystemExit) as exc:
            main(["--once", "--no-save"])
        assert exc.value.code == 1

    def test_infinite_interval_in_environment(self, cli_env, clean_env, capsys):
        clean_env.setenv("ALLOCATOR_REFRESH_SECONDS", "inf")
        with pytest.raises(SystemExit) as exc:
            main(["--once", "--no-save"])
        assert exc.value.code == 1
        assert "This week's recommendation" not in capsys.readouterr().out
