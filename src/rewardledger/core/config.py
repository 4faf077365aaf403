"""
Reward Ledger Configuration

Emission rate, base-pool ratio and fixed-point precision for a ledger
deployment. Module-level defaults come from environment variables; a
``LedgerConfig`` can also be built from a mapping (for example the
``config`` section of a replay scenario).
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _get_int(env_var: str, default: int) -> int:
    """Read an integer environment variable, accepting ``_`` separators."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}",
            details={"env_var": env_var},
        ) from exc


# 10 reward units per tick at 18 decimals
EMISSION_PER_TICK = _get_int("REWARDLEDGER_EMISSION_PER_TICK", 10 * 10**18)

# Base pool share = BASE_RATIO / RATIO_DENOMINATOR (64 / 256 gives the 1:3 split)
BASE_RATIO = _get_int("REWARDLEDGER_BASE_RATIO", 64)
RATIO_DENOMINATOR = _get_int("REWARDLEDGER_RATIO_DENOMINATOR", 256)

# Scale factor for acc_reward_per_share
ACC_PRECISION = _get_int("REWARDLEDGER_ACC_PRECISION", 10**12)

LOG_LEVEL = os.getenv("REWARDLEDGER_LOG_LEVEL", "INFO").strip().upper() or "INFO"


@dataclass(frozen=True)
class LedgerConfig:
    """Validated parameters for one ledger instance."""

    emission_per_tick: int = EMISSION_PER_TICK
    base_ratio: int = BASE_RATIO
    ratio_denominator: int = RATIO_DENOMINATOR
    acc_precision: int = ACC_PRECISION

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in ("emission_per_tick", "base_ratio", "ratio_denominator", "acc_precision"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer", details={"field": name})
        if self.emission_per_tick < 0:
            raise ConfigurationError("emission_per_tick cannot be negative")
        if self.ratio_denominator <= 0:
            raise ConfigurationError("ratio_denominator must be positive")
        if not 0 <= self.base_ratio < self.ratio_denominator:
            raise ConfigurationError(
                f"base_ratio must be in [0, {self.ratio_denominator})",
                details={"base_ratio": self.base_ratio},
            )
        if self.acc_precision <= 0:
            raise ConfigurationError("acc_precision must be positive")

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build a config from the current environment (re-read on every call)."""
        return cls(
            emission_per_tick=_get_int("REWARDLEDGER_EMISSION_PER_TICK", 10 * 10**18),
            base_ratio=_get_int("REWARDLEDGER_BASE_RATIO", 64),
            ratio_denominator=_get_int("REWARDLEDGER_RATIO_DENOMINATOR", 256),
            acc_precision=_get_int("REWARDLEDGER_ACC_PRECISION", 10**12),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "LedgerConfig":
        """Build a config from a mapping; missing keys fall back to the defaults."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigurationError("Ledger config must be a mapping")

        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                f"Unknown ledger config keys: {', '.join(sorted(unknown))}",
                details={"keys": sorted(unknown)},
            )

        values: dict[str, Any] = {}
        for key, raw in data.items():
            if isinstance(raw, str):
                try:
                    raw = int(raw.replace("_", ""))
                except ValueError as exc:
                    raise ConfigurationError(f"{key} must be an integer") from exc
            values[key] = raw
        config = cls(**values)
        logger.debug(
            "Ledger config loaded",
            extra={"event": "config.loaded", **config.to_dict()},
        )
        return config

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
