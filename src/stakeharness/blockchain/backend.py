"""
Simulated execution backend.

An isolated, deterministic, block-producing environment: the capability
the harness drives.  It deploys contracts, serves read-only calls,
accepts signed transactions (sealing exactly one block per
transaction), produces empty blocks on demand and hands out fresh
credentials.

Usage::

    backend = SimulatedBackend()
    owner = backend.new_credential()
    address, block = backend.deploy(artifact, [eco_fund, wemix], owner)
    receipt = backend.execute(address, owner, abi.pack("mint"))
    backend.advance_block()
"""

import hashlib
import json
import logging
from typing import Any, List, Optional, Tuple

from ..errors import DeploymentError, ExecutionError, TransportError
from .chain import Chain, Transaction, TransactionReceipt
from .contract_vm import ContractArtifact, ContractVM
from .wallet import ZERO_ADDRESS, Credential

logger = logging.getLogger(__name__)


def contract_address_for(deployer: str, nonce: int) -> str:
    """Deterministic address of a contract created by ``deployer`` at ``nonce``."""
    h = hashlib.sha256(f"{deployer}:{nonce}".encode("utf-8")).digest()
    return "0x" + h[-20:].hex()


class SimulatedBackend:
    """In-process chain plus contract VM."""

    def __init__(self, chain_id: str = "stake-harness-sim", gas_limit: int = 10_000_000):
        self.chain = Chain(chain_id=chain_id, gas_limit=gas_limit)
        self.vm = ContractVM()

    # ── Accounts & blocks ─────────────────────────────────────────

    @staticmethod
    def new_credential() -> Credential:
        return Credential.generate()

    def current_block_height(self) -> int:
        return self.chain.height

    def pending_nonce_at(self, address: str) -> int:
        return self.chain.nonce_of(address)

    def advance_block(self) -> int:
        """Produce one empty block and return its height."""
        return self.chain.seal().header.height

    commit = advance_block

    # ── Transactions ──────────────────────────────────────────────

    def send_transaction(self, tx: Transaction,
                         artifact: Optional[ContractArtifact] = None) -> str:
        """Validate, execute and seal ``tx`` in a new block.

        Raises ``TransportError`` when the transaction cannot be
        processed at all.  A contract revert is *not* an error here; it
        yields a receipt with ``status == 0``.
        """
        if not tx.verify():
            raise TransportError(f"invalid signature for sender {tx.sender}")
        expected = self.pending_nonce_at(tx.sender)
        if tx.nonce != expected:
            raise TransportError(
                f"invalid nonce for {tx.sender}: expected {expected}, got {tx.nonce}")
        if tx.gas_limit > self.chain.gas_limit:
            raise TransportError(
                f"gas limit {tx.gas_limit} exceeds block gas limit {self.chain.gas_limit}")

        block_number = self.chain.pending_height
        receipt = TransactionReceipt(tx_hash=tx.tx_hash or tx.compute_hash())

        if not tx.recipient:
            if artifact is None:
                raise TransportError("contract creation without code")
            try:
                args = json.loads(tx.data) if tx.data else []
            except json.JSONDecodeError:
                raise TransportError("malformed constructor data")
            address = contract_address_for(tx.sender, tx.nonce)
            result = self.vm.deploy(artifact, address, args, tx.sender, block_number)
            if result.success:
                receipt.contract_address = address
        else:
            if self.vm.get_contract(tx.recipient) is None:
                raise TransportError(f"no contract at {tx.recipient}")
            result = self.vm.execute(tx.recipient, tx.data, tx.sender, block_number)
            receipt.contract_address = tx.recipient

        receipt.status = 1 if result.success else 0
        receipt.gas_used = result.gas_used
        receipt.return_data = result.return_data
        receipt.revert_reason = result.revert_reason
        receipt.logs = result.logs if result.success else []

        if not result.success:
            logger.debug("tx %s reverted: %s", receipt.tx_hash, result.revert_reason)
        self.chain.seal([tx], [receipt])
        return receipt.tx_hash

    def transaction_receipt(self, tx_hash: str) -> TransactionReceipt:
        receipt = self.chain.get_receipt(tx_hash)
        if receipt is None:
            raise TransportError(f"receipt not found: {tx_hash}")
        return receipt

    def _signed(self, credential: Credential, recipient: str, data: str) -> Transaction:
        tx = Transaction(
            recipient=recipient,
            nonce=self.pending_nonce_at(credential.address),
            data=data,
            gas_limit=self.chain.gas_limit,
        )
        tx.sign(credential)
        return tx

    # ── Capability surface used by the harness ────────────────────

    def deploy(self, artifact: ContractArtifact, constructor_args: List[Any],
               credential: Credential) -> Tuple[str, int]:
        """Deploy ``artifact``; returns ``(address, block height)``."""
        tx = self._signed(credential, "", json.dumps(constructor_args))
        receipt = self.transaction_receipt(self.send_transaction(tx, artifact))
        if receipt.status != 1:
            raise DeploymentError(
                f"status of deploy tx receipt: {receipt.status}",
                revert_reason=receipt.revert_reason,
            )
        return receipt.contract_address, receipt.block_number

    def execute(self, address: str, credential: Credential, call_data: str) -> TransactionReceipt:
        """Sign and submit a state-changing call; one block is produced."""
        tx = self._signed(credential, address, call_data)
        return self.transaction_receipt(self.send_transaction(tx))

    def call(self, address: str, call_data: str, sender: str = ZERO_ADDRESS) -> str:
        """Read-only call against the latest block; returns the return data."""
        result = self.vm.execute(address, call_data, sender,
                                 self.chain.height, static=True)
        if not result.success:
            try:
                method = json.loads(call_data).get("action", "?")
            except (TypeError, AttributeError, json.JSONDecodeError):
                method = "?"
            raise ExecutionError(method, result.revert_reason or result.error)
        return result.return_data
