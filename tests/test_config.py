"""Tests for configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from bank_ledger_recon.config import (
    MatchProfile,
    ReconConfig,
    ScoringWeights,
    generate_default_config,
    get_default_config,
    load_config,
)
from bank_ledger_recon.utils.exceptions import ConfigurationError


class TestDefaults:
    def test_profiles(self):
        config = ReconConfig()

        assert config.matching.strict.amount_tolerance == 0.01
        assert config.matching.strict.amount_tolerance_percent == 0.0
        assert config.matching.strict.date_window_days == 7
        assert config.matching.fuzzy.amount_tolerance_percent == 5.0
        assert config.matching.suggestion_threshold == 0.7
        assert config.matching.match_documents is False

    def test_scoring(self):
        weights = ReconConfig().scoring.weights
        assert (weights.amount, weights.description, weights.date) == (0.5, 0.3, 0.2)

    def test_default_dict_matches_models(self):
        assert ReconConfig(**get_default_config()) == ReconConfig()


class TestValidation:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            ScoringWeights(amount=0.5, description=0.5, date=0.5)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            ScoringWeights(amount=1.2, description=-0.2, date=0.0)

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValidationError):
            MatchProfile(name="bad", amount_tolerance=-1)


class TestLoadConfig:
    def test_missing_path_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.config_file_path is None

    def test_none_uses_defaults(self):
        assert load_config(None) == ReconConfig()

    def test_partial_override_is_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching:\n  strict:\n    date_window_days: 3\n  workers: 2\n")

        config = load_config(path)

        assert config.matching.strict.date_window_days == 3
        assert config.matching.strict.amount_tolerance == 0.01
        assert config.matching.fuzzy.date_window_days == 7
        assert config.matching.workers == 2
        assert config.config_file_path == str(path)

    def test_invalid_weights(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scoring:\n  weights:\n    amount: 0.9\n")

        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError):
            load_config(path)


def test_generate_default_config_round_trips(tmp_path):
    path = tmp_path / "nested" / "config.yaml"

    generate_default_config(path)

    assert yaml.safe_load(path.read_text())["matching"]["fuzzy"]["amount_tolerance_percent"] == 5.0
    assert load_config(path).matching == ReconConfig().matching
