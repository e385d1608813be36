import pytest

from balancer.config import BalancerConfig, load_config
from balancer.errors import ValidationError


def test_defaults_match_operating_band():
    config = load_config(env={})
    assert config.lower_threshold == 0.75
    assert config.upper_threshold == 0.80
    assert config.placement_strategy == "best_fit"
    assert config.max_migrations_per_round is None


def test_yaml_file_and_env_overrides(tmp_path):
    path = tmp_path / "balancer.yaml"
    path.write_text(
        "balancer:\n"
        "  upper_threshold: 0.81\n"
        "  placement_strategy: consolidate\n"
        "  verify_invariants: true\n"
        "  max_migrations_per_round: 5\n"
    )
    config = load_config(str(path), env={"BALANCER_LOWER_THRESHOLD": "0.7"})
    assert config.upper_threshold == 0.81
    assert config.lower_threshold == 0.7
    assert config.placement_strategy == "consolidate"
    assert config.verify_invariants is True
    assert config.max_migrations_per_round == 5


def test_config_path_from_environment(tmp_path):
    path = tmp_path / "other.yaml"
    path.write_text("poll_interval_sec: 0.25\n")
    config = load_config(env={"BALANCER_CONFIG": str(path)})
    assert config.poll_interval_sec == 0.25


@pytest.mark.parametrize("overrides", [
    {"lower_threshold": 0.9, "upper_threshold": 0.8},
    {"upper_threshold": 1.5},
    {"placement_strategy": "random"},
    {"migration_cooldown_rounds": -1},
])
def test_invalid_config_is_rejected(overrides):
    with pytest.raises(ValidationError):
        BalancerConfig(**overrides).validate()


def test_bad_env_value_is_rejected():
    with pytest.raises(ValidationError):
        load_config(env={"BALANCER_UPPER_THRESHOLD": "high"})


@pytest.mark.parametrize("raw", ["none", "", "null"])
def test_empty_marker_rejected_for_required_int(raw):
    with pytest.raises(ValidationError):
        load_config(env={"BALANCER_MIGRATION_COOLDOWN_ROUNDS": raw})


def test_empty_marker_clears_optional_int():
    config = load_config(env={"BALANCER_MAX_MIGRATIONS_PER_ROUND": "none"})
    assert config.max_migrations_per_round is None
