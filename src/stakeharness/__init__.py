"""
stake-harness: lifecycle verification of a staking and round-robin
minting token contract against an in-process simulated chain.
"""

from .config import HarnessConfig
from .errors import (
    AssertionFailure, DeploymentError, EncodingError, ExecutionError,
    HarnessError, TransportError,
)

__version__ = "0.1.0"

__all__ = [
    'HarnessConfig',
    'AssertionFailure',
    'DeploymentError',
    'EncodingError',
    'ExecutionError',
    'HarnessError',
    'TransportError',
    '__version__',
]
