"""
Contract VM: executes Python contract code against chain state.

A contract is a ``ContractCode`` subclass whose externally callable
methods are marked with ``@external`` (state-changing) or ``@view``
(read-only).  All persistent state lives in ``self.storage``; the VM
snapshots it before every execution and restores the snapshot when the
call reverts, so a failed transaction leaves no trace except its
receipt.

Usage
-----
::

    vm = ContractVM()
    instance = vm.deploy(artifact, address="0xabc...", args=[...],
                         sender=owner, block_number=1)
    receipt = vm.execute("0xabc...", '{"action": "mint", "args": []}',
                         sender=caller, block_number=2)
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from .abi import ABI
from .events import EventLog, build_log

logger = logging.getLogger(__name__)

INTRINSIC_GAS = 21_000


class Revert(Exception):
    """Raised by contract code to abort the current call."""

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


def external(name: Optional[str] = None) -> Callable:
    """Mark a state-changing contract method, optionally under another ABI name."""
    def decorator(fn: Callable) -> Callable:
        fn._abi_name = name or fn.__name__
        fn._abi_view = False
        return fn
    return decorator


def view(name: Optional[str] = None) -> Callable:
    """Mark a read-only contract method; it runs static even inside a transaction."""
    def decorator(fn: Callable) -> Callable:
        fn._abi_name = name or fn.__name__
        fn._abi_view = True
        return fn
    return decorator


# ---------------------------------------------------------------------------
# Execution context
# ---------------------------------------------------------------------------

@dataclass
class ExecutionContext:
    """What a contract sees while running: ``msg.sender`` and ``block.number``."""
    sender: str
    block_number: int
    contract_address: str
    abi: ABI
    static: bool = False
    logs: List[EventLog] = field(default_factory=list)

    def emit(self, event_name: str, **values: Any) -> None:
        if self.static:
            raise Revert(f"cannot emit {event_name} in a static call")
        log = build_log(self.abi.event(event_name), self.contract_address, values)
        log.log_index = len(self.logs)
        self.logs.append(log)

    @staticmethod
    def require(condition: bool, reason: str) -> None:
        if not condition:
            raise Revert(reason)


# ---------------------------------------------------------------------------
# Contract code
# ---------------------------------------------------------------------------

class ContractCode:
    """Base class for contracts run by the ``ContractVM``."""

    _dispatch: Dict[str, str] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        table: Dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, fn in vars(klass).items():
                abi_name = getattr(fn, "_abi_name", None)
                if abi_name:
                    table[abi_name] = attr
        cls._dispatch = table

    def __init__(self, address: str, abi: ABI):
        self.address = address
        self.abi = abi
        self.storage: Dict[str, Any] = {}

    def constructor(self, ctx: ExecutionContext, *args: Any) -> None:
        """Override to initialise storage."""

    def resolve(self, method: str) -> Callable:
        attr = self._dispatch.get(method)
        if attr is None:
            raise Revert(f"unknown method {method}")
        return getattr(self, attr)


@dataclass
class ContractArtifact:
    """Output of contract compilation: name, method table and code."""
    name: str
    abi: ABI
    code: Type[ContractCode]

    def instantiate(self, address: str) -> ContractCode:
        return self.code(address, self.abi)


# ---------------------------------------------------------------------------
# Execution receipt
# ---------------------------------------------------------------------------

@dataclass
class ContractExecutionReceipt:
    """Result of executing a contract method."""
    success: bool = True
    return_data: str = ""
    gas_used: int = 0
    logs: List[EventLog] = field(default_factory=list)
    error: str = ""
    revert_reason: str = ""


# ---------------------------------------------------------------------------
# ContractVM
# ---------------------------------------------------------------------------

class ContractVM:
    """Registry and executor for deployed contract instances."""

    def __init__(self):
        self._contracts: Dict[str, ContractCode] = {}

    def get_contract(self, address: str) -> Optional[ContractCode]:
        return self._contracts.get(address)

    def deploy(self, artifact: ContractArtifact, address: str, args: List[Any],
               sender: str, block_number: int) -> ContractExecutionReceipt:
        """Instantiate ``artifact`` at ``address`` and run its constructor."""
        instance = artifact.instantiate(address)
        ctx = ExecutionContext(sender=sender, block_number=block_number,
                               contract_address=address, abi=artifact.abi)
        try:
            instance.constructor(ctx, *args)
        except Revert as e:
            return ContractExecutionReceipt(success=False, error="Revert",
                                            revert_reason=e.reason,
                                            gas_used=INTRINSIC_GAS)
        self._contracts[address] = instance
        logger.info("Contract '%s' deployed at %s (block %d)",
                    artifact.name, address, block_number)
        return ContractExecutionReceipt(success=True, logs=ctx.logs, gas_used=INTRINSIC_GAS)

    def execute(self, address: str, call_data: str, sender: str,
                block_number: int, static: bool = False) -> ContractExecutionReceipt:
        """Run one method call.

        State changes are committed only for a successful non-static
        call.  Reverts and unexpected contract errors both produce a
        failed receipt with the storage snapshot restored.
        """
        contract = self._contracts.get(address)
        if contract is None:
            return ContractExecutionReceipt(success=False, error="NoContract",
                                            revert_reason=f"no contract at {address}")

        try:
            call = json.loads(call_data)
            method_name = call["action"]
            args = list(call.get("args", []))
        except (TypeError, KeyError, json.JSONDecodeError):
            return ContractExecutionReceipt(success=False, error="BadCallData",
                                            revert_reason="invalid call data")

        ctx = ExecutionContext(sender=sender, block_number=block_number,
                               contract_address=address, abi=contract.abi,
                               static=static)
        snapshot = copy.deepcopy(contract.storage)
        try:
            fn = contract.resolve(method_name)
            if getattr(fn, "_abi_view", False):
                ctx.static = True
            result = fn(ctx, *args)
            return_data = contract.abi.encode_result(method_name, result)
        except Revert as e:
            contract.storage = snapshot
            return ContractExecutionReceipt(success=False, error="Revert",
                                            revert_reason=e.reason,
                                            gas_used=INTRINSIC_GAS)
        except Exception as e:
            contract.storage = snapshot
            logger.warning("Contract %s raised %s in %s: %s",
                           address, type(e).__name__, method_name, e)
            return ContractExecutionReceipt(success=False, error=type(e).__name__,
                                            revert_reason=str(e),
                                            gas_used=INTRINSIC_GAS)

        if ctx.static:
            contract.storage = snapshot
        return ContractExecutionReceipt(
            success=True,
            return_data=return_data,
            gas_used=INTRINSIC_GAS + 5_000 * len(ctx.logs),
            logs=list(ctx.logs),
        )
