"""
Tests for settings parsing and environment loading.
"""
import pytest

from allocator.config import (
    DEFAULT_REFRESH_SECONDS,
    MIN_REFRESH_SECONDS,
    Settings,
    clamp_refresh_seconds,
    load_settings,
    parse_instruments,
    parse_weights,
)
from allocator.models import DEFAULT_INSTRUMENTS, Instrument, Provider, Weights
from allocator.utils import UnsupportedProvider


class TestWeights:
    def test_defaults(self):
        assert Weights().as_dict() == {"slope": 0.5, "momentum": 0.35, "recent": 0.15}

    @pytest.mark.parametrize("value", [-0.1, 1.01, float("nan"), float("inf"), "heavy"])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValueError):
            Weights(slope=value)

    def test_bounds_accepted(self):
        weights = Weights(slope=0, momentum=1, recent="0.5")
        assert weights.as_dict() == {"slope": 0.0, "momentum": 1.0, "recent": 0.5}

    def test_replace_validates(self):
        weights = Weights().replace(momentum=0.9)
        assert weights.momentum == 0.9
        with pytest.raises(ValueError):
            Weights().replace(recent=2)

    def test_parse_weights(self):
        assert parse_weights("0.6, 0.3, 0.1") == Weights(0.6, 0.3, 0.1)

    @pytest.mark.parametrize("text", ["0.5,0.5", "a,b,c", "0.5,0.3,1.5", ""])
    def test_parse_weights_invalid(self, text):
        with pytest.raises(ValueError):
            parse_weights(text)


class TestInstruments:
    def test_symbols_and_names(self):
        instruments = parse_instruments(["voo=Vanguard S&P 500 ETF", "NVDA"])
        assert instruments == (
            Instrument("VOO", "Vanguard S&P 500 ETF"),
            Instrument("NVDA", ""),
        )
        assert instruments[1].label == "NVDA"

    def test_comma_string(self):
        instruments = parse_instruments("VOO, brk.b=Berkshire ,")
        assert [i.symbol for i in instruments] == ["VOO", "BRK.B"]

    def test_duplicates_keep_first(self):
        instruments = parse_instruments(["VOO=First", "voo=Second", "NVDA"])
        assert instruments == (Instrument("VOO", "First"), Instrument("NVDA", ""))

    @pytest.mark.parametrize("items", ["", " , ", [], ["=Name only"]])
    def test_empty_rejected(self, items):
        with pytest.raises(ValueError):
            parse_instruments(items)


class TestRefreshInterval:
    @pytest.mark.parametrize(
        "value, expected",
        [(60, 60), (30, 30), (29, 30), (0, 30), (-5, 30), ("120", 120), (45.7, 45)],
    )
    def test_clamp(self, value, expected):
        assert clamp_refresh_seconds(value) == expected

    @pytest.mark.parametrize("value", ["soon", "inf", "-inf", float("inf"), "nan", None])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            clamp_refresh_seconds(value)


class TestLoadSettings:
    def test_defaults(self, clean_env):
        settings = load_settings(dotenv=False)
        assert settings.provider is Provider.STOOQ
        assert settings.refresh_seconds == DEFAULT_REFRESH_SECONDS
        assert settings.weights == Weights()
        assert settings.instruments == DEFAULT_INSTRUMENTS
        assert settings.symbols == ("VOO", "BRK.B", "NVDA")
        assert settings.max_workers == 4
        assert settings.log_level == "INFO"
        assert settings.finnhub_api_key is None

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("ALLOCATOR_PROVIDER", "Finnhub")
        clean_env.setenv("FINNHUB_API_KEY", "fh-key")
        clean_env.setenv("ALLOCATOR_REFRESH_SECONDS", "10")
        clean_env.setenv("ALLOCATOR_WEIGHT_SLOPE", "0.2")
        clean_env.setenv("ALLOCATOR_TICKERS", "QQQ=Invesco QQQ,SPY")
        clean_env.setenv("ALLOCATOR_OUTPUT_DIR", "reports")
        clean_env.setenv("ALLOCATOR_MAX_WORKERS", "2")
        clean_env.setenv("ALLOCATOR_LOG_LEVEL", "debug")

        settings = load_settings(dotenv=False)

        assert settings.provider is Provider.FINNHUB
        assert settings.api_key_for() == "fh-key"
        assert settings.refresh_seconds == MIN_REFRESH_SECONDS
        assert settings.weights == Weights(slope=0.2)
        assert settings.symbols == ("QQQ", "SPY")
        assert settings.output_dir == "reports"
        assert settings.max_workers == 2
        assert settings.log_level == "DEBUG"

    def test_unknown_provider(self, clean_env):
        clean_env.setenv("ALLOCATOR_PROVIDER", "yahoo")
        with pytest.raises(UnsupportedProvider):
            load_settings(dotenv=False)

    @pytest.mark.parametrize(
        "name, value",
        [
            ("ALLOCATOR_WEIGHT_MOMENTUM", "1.5"),
            ("ALLOCATOR_WEIGHT_RECENT", "lots"),
            ("ALLOCATOR_LOG_LEVEL", "VERBOSE"),
            ("ALLOCATOR_MAX_WORKERS", "0"),
            ("ALLOCATOR_MAX_WORKERS", "many"),
            ("ALLOCATOR_REFRESH_SECONDS", "inf"),
        ],
    )
    def test_invalid_values(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValueError):
            load_settings(dotenv=False)

    def test_empty_key_is_none(self, clean_env):
        clean_env.setenv("ALPHAVANTAGE_API_KEY", "")
        assert load_settings(dotenv=False).alphavantage_api_key is None


class TestApiKeyFor:
    def test_keys_by_provider(self):
        settings = Settings(finnhub_api_key="f", alphavantage_api_key="a")
        assert settings.api_key_for() is None
        assert settings.api_key_for(Provider.FINNHUB) == "f"
        assert settings.api_key_for(Provider.ALPHAVANTAGE) == "a"
