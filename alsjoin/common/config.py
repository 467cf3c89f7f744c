"""YAML configuration for the ALS jobs.

The file mirrors ``conf/config.yaml``::

    spark:
      app_name: ALS-Join
      master: local[*]
      shuffle_partitions: 8
    params:
      als:
        factors: 10
        lambda: 0.1
        iterations: 10
        seed: 42

Command-line flags override whatever the file provides.
"""
import math
import numbers
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import yaml

from alsjoin.common.errors import ConfigurationError

DEFAULT_CONFIG_PATH = os.path.join("conf", "config.yaml")


@dataclass(frozen=True)
class ALSConfig:
    factors: int = 10
    lam: float = 0.1
    iterations: int = 10
    seed: int = 42
    checkpoint_interval: int = 0
    num_partitions: Optional[int] = None

    def validate(self) -> "ALSConfig":
        _check_int("factors", self.factors, minimum=1)
        _check_int("iterations", self.iterations, minimum=1)
        _check_int("checkpoint_interval", self.checkpoint_interval, minimum=0)
        if self.num_partitions is not None:
            _check_int("num_partitions", self.num_partitions, minimum=1)
        _check_int("seed", self.seed, minimum=None)
        if (isinstance(self.lam, bool) or not isinstance(self.lam, numbers.Real)
                or not math.isfinite(self.lam) or self.lam < 0):
            raise ConfigurationError(f"lambda must be a finite non-negative number, got {self.lam!r}")
        return self

    def with_overrides(self, **overrides) -> "ALSConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"unknown ALS option(s): {sorted(unknown)}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_dict(cls, als_section: Dict[str, Any]) -> "ALSConfig":
        section = dict(als_section or {})
        # "lambda" is the name used in YAML files, "lam" the attribute
        if "lambda" in section:
            section["lam"] = section.pop("lambda")
        return cls().with_overrides(**section)


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Read the YAML config; a missing default file yields an empty config."""
    if not os.path.exists(path):
        if path == DEFAULT_CONFIG_PATH:
            return {}
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        conf = yaml.safe_load(f) or {}
    if not isinstance(conf, dict):
        raise ConfigurationError(f"Config root must be a mapping, got {type(conf).__name__}")
    return conf


def als_config(conf: Dict[str, Any], **overrides) -> ALSConfig:
    """Build a validated ALSConfig from ``conf["params"]["als"]`` plus overrides."""
    section = (conf.get("params") or {}).get("als") or {}
    return ALSConfig.from_dict(section).with_overrides(**overrides).validate()


def _check_int(name, value, minimum):
    # bool is an int subclass; True must not pass as a rank of 1
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value!r}")
