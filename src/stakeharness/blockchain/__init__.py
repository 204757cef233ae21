"""
Simulated blockchain layer.

Features:
- Block-per-transaction chain with immediate finality
- secp256k1-signed transactions with nonce checks
- Python contract VM with revert/rollback semantics
- JSON method tables (ABI) and Ethereum-style event logs
"""

from .abi import ABI, Event, Method, Param, encode_topic, topic_to_address, topic_to_int
from .backend import SimulatedBackend, contract_address_for
from .chain import Block, BlockHeader, Chain, Transaction, TransactionReceipt
from .contract_vm import (
    ContractArtifact, ContractCode, ContractExecutionReceipt, ContractVM,
    ExecutionContext, Revert, external, view,
)
from .events import EventLog, build_log, decode_log, filter_logs
from .wallet import (
    ZERO_ADDRESS, Credential, IdentityRegistry, address_from_public_key,
    normalize_address,
)

__all__ = [
    # ABI
    'ABI',
    'Event',
    'Method',
    'Param',
    'encode_topic',
    'topic_to_address',
    'topic_to_int',

    # Backend
    'SimulatedBackend',
    'contract_address_for',

    # Chain & Blocks
    'Block',
    'BlockHeader',
    'Chain',
    'Transaction',
    'TransactionReceipt',

    # Contract VM
    'ContractArtifact',
    'ContractCode',
    'ContractExecutionReceipt',
    'ContractVM',
    'ExecutionContext',
    'Revert',
    'external',
    'view',

    # Events
    'EventLog',
    'build_log',
    'decode_log',
    'filter_logs',

    # Wallet
    'ZERO_ADDRESS',
    'Credential',
    'IdentityRegistry',
    'address_from_public_key',
    'normalize_address',
]
