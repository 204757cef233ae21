"""
Harness configuration.

A plain keyword-driven settings object.
Values can also come from a JSON file::

    {"mint_iterations": 200, "withdrawal_wait_blocks": 10}
"""

import json
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


_DEFAULTS: Dict[str, Any] = {
    "chain_id": "stake-harness-sim",
    "self_stakers": 3,
    "delegated_stakers": 5,
    "mint_iterations": 1000,
    "withdrawal_wait_blocks": 1000,
    "max_stake_iterations": 64,
    "max_withdraw_rounds": 100_000,
    "gas_limit": 10_000_000,
    "show_stake_info": False,
}


class HarnessConfig:
    """Configuration for a harness run."""

    def __init__(self, **kwargs):
        unknown = set(kwargs) - set(_DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        self.chain_id: str = kwargs.get("chain_id", _DEFAULTS["chain_id"])
        # Partners funded and staked by themselves
        self.self_stakers: int = kwargs.get("self_stakers", _DEFAULTS["self_stakers"])
        # Partners staked on behalf of by the owner
        self.delegated_stakers: int = kwargs.get("delegated_stakers", _DEFAULTS["delegated_stakers"])
        self.mint_iterations: int = kwargs.get("mint_iterations", _DEFAULTS["mint_iterations"])
        # minBlockWaitingWithdrawal used by the withdraw scenario
        self.withdrawal_wait_blocks: int = kwargs.get(
            "withdrawal_wait_blocks", _DEFAULTS["withdrawal_wait_blocks"])
        self.max_stake_iterations: int = kwargs.get(
            "max_stake_iterations", _DEFAULTS["max_stake_iterations"])
        self.max_withdraw_rounds: int = kwargs.get(
            "max_withdraw_rounds", _DEFAULTS["max_withdraw_rounds"])
        self.gas_limit: int = kwargs.get("gas_limit", _DEFAULTS["gas_limit"])
        self.show_stake_info: bool = kwargs.get("show_stake_info", _DEFAULTS["show_stake_info"])

        for name in ("self_stakers", "delegated_stakers", "mint_iterations",
                     "withdrawal_wait_blocks"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        for name in ("max_stake_iterations", "max_withdraw_rounds"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarnessConfig":
        return cls(**data)

    @classmethod
    def from_file(cls, path: str) -> "HarnessConfig":
        """Load a config from a JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")
        logger.debug("Loaded harness config from %s", path)
        return cls.from_dict(data)

    def replace(self, **overrides) -> "HarnessConfig":
        """Return a copy with some fields overridden."""
        data = self.to_dict()
        data.update(overrides)
        return HarnessConfig.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in _DEFAULTS}
