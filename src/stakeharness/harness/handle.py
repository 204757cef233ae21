"""
Contract handle: a method table bound to one deployed instance.

Translates a method name plus Python arguments into a read call or a
signed transaction and decodes the results::

    handle = ContractHandle(backend, load_artifact("StakingToken"))
    handle.deploy(eco_fund, wemix)
    supply = handle.call("totalSupply")
    record = handle.call("partnerBySerial", 1, into=StakeRecord)
    receipt = handle.execute(None, "mint")   # signed by the owner
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..blockchain.backend import SimulatedBackend
from ..blockchain.chain import TransactionReceipt
from ..blockchain.contract_vm import ContractArtifact
from ..blockchain.events import decode_log, filter_logs
from ..blockchain.wallet import Credential
from ..errors import DeploymentError

logger = logging.getLogger(__name__)


class ContractHandle:
    """Typed ``call`` / ``execute`` / ``low_call`` on a deployed contract."""

    def __init__(self, backend: SimulatedBackend, artifact: ContractArtifact,
                 owner: Optional[Credential] = None):
        self.backend = backend
        self.artifact = artifact
        self.abi = artifact.abi
        self.owner_key = owner or backend.new_credential()
        self.address: Optional[str] = None
        self.block_deployed: Optional[int] = None
        self.constructor_inputs: List[Any] = []

    @property
    def name(self) -> str:
        return self.artifact.name

    @property
    def owner(self) -> str:
        return self.owner_key.address

    def deploy(self, *args: Any) -> str:
        """Deploy with the owner credential; returns the contract address."""
        packed = self.abi.pack_constructor(*args)
        self.address, self.block_deployed = self.backend.deploy(
            self.artifact, packed, self.owner_key)
        self.constructor_inputs = packed
        logger.info("ok > contract %s deployed at %s, block %d",
                    self.name, self.address, self.block_deployed)
        return self.address

    def _require_deployed(self) -> str:
        if self.address is None:
            raise DeploymentError(f"Contract {self.name} is not deployed")
        return self.address

    def call(self, method: str, *args: Any, into: Any = None) -> Any:
        """Read-only call.

        Returns a single output bare, several as a tuple, or an instance
        of ``into`` populated from the named outputs.
        """
        data = self.backend.call(self._require_deployed(), self.abi.pack(method, *args))
        return self.abi.unpack(method, data, into=into)

    def low_call(self, method: str, *args: Any) -> List[Any]:
        """Read-only call returning every decoded output in order."""
        data = self.backend.call(self._require_deployed(), self.abi.pack(method, *args))
        return self.abi.unpack_values(method, data)

    def execute(self, credential: Optional[Credential], method: str,
                *args: Any) -> TransactionReceipt:
        """Sign (owner by default) and submit a state-changing call.

        The receipt is returned whatever its status; a rejected call is
        an ordinary outcome for the caller to judge.
        """
        key = credential or self.owner_key
        call_data = self.abi.pack(method, *args)
        receipt = self.backend.execute(self._require_deployed(), key, call_data)
        logger.debug("execute %s by %s -> status %d (block %d)",
                     method, key.address, receipt.status, receipt.block_number)
        return receipt

    def events(self, receipt: TransactionReceipt, event_name: str) -> List[Dict[str, Any]]:
        """Decoded ``event_name`` logs of a receipt, in emission order."""
        event = self.abi.event(event_name)
        return [decode_log(event, g) for g in filter_logs(receipt.logs, event)]

    def balance_of(self, address: str) -> int:
        return self.call("balanceOf", address)
