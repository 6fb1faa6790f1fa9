"""
Tests for configuration loading and validation.
"""

import pytest

from liqauction.core.config import (
    PRICE_SCALE,
    AuctionConfig,
    EngineParameters,
    FlashloanScope,
    load_config,
)
from liqauction.core.errors import InvalidConfig


ENV_NAMES = [
    "LIQAUCTION_DURATION",
    "LIQAUCTION_MIN_PRICE_FACTOR",
    "LIQAUCTION_LIQUIDATION_BONUS",
    "LIQAUCTION_COMMIT_DURATION",
    "LIQAUCTION_REVEAL_DURATION",
    "LIQAUCTION_FLASHLOAN_THRESHOLD",
    "LIQAUCTION_FLASHLOAN_SCOPE",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every variable these tests touch and restore them afterwards."""
    for name in ENV_NAMES:
        # Registered first so teardown also removes values loaded from a .env file
        monkeypatch.setenv(name, "0")
        monkeypatch.delenv(name)
    return monkeypatch


class TestAuctionConfig:
    """Tests for AuctionConfig.validate."""

    def test_defaults(self):
        cfg = AuctionConfig()
        cfg.validate(require_nonzero=True)

        assert cfg.duration == 3600
        assert cfg.min_price_factor == 5000
        assert cfg.liquidation_bonus == 500

    @pytest.mark.parametrize("kwargs", [
        {"duration": 0},
        {"min_price_factor": 0},
        {"min_price_factor": 10_001},
        {"liquidation_bonus": 10_001},
    ])
    def test_out_of_range(self, kwargs):
        with pytest.raises(InvalidConfig):
            AuctionConfig(**kwargs).validate()

    def test_zero_bonus_allowed_at_construction(self):
        AuctionConfig(liquidation_bonus=0).validate()

    def test_zero_bonus_rejected_on_update(self):
        with pytest.raises(InvalidConfig):
            AuctionConfig(liquidation_bonus=0).validate(require_nonzero=True)


class TestEngineParameters:
    """Tests for EngineParameters.validate."""

    def test_defaults(self):
        params = EngineParameters()
        params.validate()

        assert params.commit_duration == 120
        assert params.reveal_duration == 600
        assert params.min_bid_delay == 12
        assert params.max_price_impact == 500
        assert params.flashloan_threshold == 1_000_000 * PRICE_SCALE
        assert params.flashloan_cooldown_blocks == 5
        assert params.flashloan_scope == FlashloanScope.GLOBAL
        assert params.incentive_per_cleanup == 10**15

    def test_reveal_must_exceed_commit(self):
        with pytest.raises(InvalidConfig):
            EngineParameters(commit_duration=600, reveal_duration=600).validate()

    def test_impact_bounds(self):
        with pytest.raises(InvalidConfig):
            EngineParameters(max_price_impact=10_001).validate()


class TestLoadConfig:
    """Tests for environment loading."""

    def test_defaults_without_env(self, clean_env):
        cfg, params = load_config()

        assert cfg == AuctionConfig()
        assert params == EngineParameters()

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("LIQAUCTION_DURATION", "1800")
        clean_env.setenv("LIQAUCTION_FLASHLOAN_THRESHOLD", "5_000_000")
        clean_env.setenv("LIQAUCTION_FLASHLOAN_SCOPE", "PER_AUCTION")

        cfg, params = load_config()

        assert cfg.duration == 1800
        assert params.flashloan_threshold == 5_000_000
        assert params.flashloan_scope == FlashloanScope.PER_AUCTION

    def test_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LIQAUCTION_MIN_PRICE_FACTOR=7000\nLIQAUCTION_COMMIT_DURATION=60\n")

        cfg, params = load_config(str(env_file))

        assert cfg.min_price_factor == 7000
        assert params.commit_duration == 60

    def test_environment_wins_over_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LIQAUCTION_DURATION=60\n")
        clean_env.setenv("LIQAUCTION_DURATION", "900")

        cfg, _ = load_config(str(env_file))

        assert cfg.duration == 900

    def test_non_integer(self, clean_env):
        clean_env.setenv("LIQAUCTION_DURATION", "one hour")

        with pytest.raises(InvalidConfig):
            load_config()

    def test_unknown_scope(self, clean_env):
        clean_env.setenv("LIQAUCTION_FLASHLOAN_SCOPE", "galaxy")

        with pytest.raises(InvalidConfig):
            load_config()

    def test_loaded_values_validated(self, clean_env):
        clean_env.setenv("LIQAUCTION_REVEAL_DURATION", "60")

        with pytest.raises(InvalidConfig):
            load_config()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
