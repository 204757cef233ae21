"""
Contract artifacts the harness can deploy.

``ARTIFACTS`` maps a contract name to a loader returning its
``ContractArtifact`` (method table + code).
"""

from typing import Callable, Dict

from ..blockchain.contract_vm import ContractArtifact
from .staking_token import STAKING_TOKEN_ABI, TUNABLES, StakingToken
from .staking_token import load_artifact as load_staking_token

ARTIFACTS: Dict[str, Callable[[], ContractArtifact]] = {
    "StakingToken": load_staking_token,
}


def load_artifact(name: str) -> ContractArtifact:
    try:
        return ARTIFACTS[name]()
    except KeyError:
        raise KeyError(f"Unknown contract artifact: {name}")


__all__ = [
    'ARTIFACTS',
    'STAKING_TOKEN_ABI',
    'TUNABLES',
    'StakingToken',
    'load_artifact',
    'load_staking_token',
]
