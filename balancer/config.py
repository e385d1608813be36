"""Balancer configuration: YAML file plus BALANCER_* environment overrides."""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from balancer.errors import ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "BALANCER_"
STRATEGIES = ("best_fit", "consolidate")


@dataclass
class BalancerConfig:
    lower_threshold: float = 0.75
    upper_threshold: float = 0.80
    placement_strategy: str = "best_fit"  # best_fit | consolidate
    migration_cooldown_rounds: int = 3
    max_migrations_per_round: Optional[int] = None
    verify_invariants: bool = False
    metrics_csv_path: Optional[str] = None
    input_path: str = "input.json"
    output_path: str = "output.json"
    poll_interval_sec: float = 1.0
    log_level: str = "INFO"

    def validate(self) -> "BalancerConfig":
        if not (0.0 <= self.lower_threshold <= self.upper_threshold <= 1.0):
            raise ValidationError(
                f"band must satisfy 0 <= lower <= upper <= 1, "
                f"got [{self.lower_threshold}, {self.upper_threshold}]"
            )
        if self.placement_strategy not in STRATEGIES:
            raise ValidationError(
                f"unknown placement_strategy {self.placement_strategy!r}, expected one of {STRATEGIES}"
            )
        if self.migration_cooldown_rounds < 0:
            raise ValidationError("migration_cooldown_rounds must be >= 0")
        if self.max_migrations_per_round is not None and self.max_migrations_per_round < 0:
            raise ValidationError("max_migrations_per_round must be >= 0")
        if self.poll_interval_sec <= 0:
            raise ValidationError("poll_interval_sec must be > 0")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(name: str, raw: Any) -> Any:
    """Convert a YAML/env value to the type of the matching config field."""
    kind = str({f.name: f.type for f in fields(BalancerConfig)}[name])
    if raw is None:
        if "Optional" not in kind:
            raise ValidationError(f"{name} must not be empty")
        return None
    try:
        if "bool" in kind:
            if isinstance(raw, str):
                return raw.strip().lower() in ("1", "true", "yes", "on")
            return bool(raw)
        if "int" in kind:
            if "Optional" in kind and isinstance(raw, str) and raw.strip().lower() in ("", "none", "null"):
                return None
            return int(raw)
        if "float" in kind:
            return float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid value for {name}: {raw!r}") from None
    return str(raw)


def load_config(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> BalancerConfig:
    """
    Build the effective configuration.

    Args:
        path: YAML file; falls back to $BALANCER_CONFIG when omitted
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated BalancerConfig
    """
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}
    known = {f.name for f in fields(BalancerConfig)}

    path = path or env.get(f"{ENV_PREFIX}CONFIG")
    if path:
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValidationError(f"cannot read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"config {path} must be a mapping")
        section = data.get("balancer", data)
        for key, raw in section.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key {key!r} in {path}")
                continue
            values[key] = _coerce(key, raw)
        logger.info(f"Loaded balancer config from {path}")

    for name in known:
        env_key = f"{ENV_PREFIX}{name.upper()}"
        if env_key in env:
            values[name] = _coerce(name, env[env_key])

    return BalancerConfig(**values).validate()
