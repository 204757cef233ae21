"""
Typed expected values and the basic contract checks built on them.

An ``Expected`` carries a kind tag (address, fixed-width unsigned
integer, arbitrary-precision integer or string) and compares against
decoded return values by exact typed equality::

    check_variable(handle, "decimals", Expected.uint(18, bits=8))
    check_variable(handle, "ecoFund", Expected.address(eco_fund))
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..blockchain.chain import TransactionReceipt
from ..blockchain.wallet import Credential, normalize_address
from ..errors import AssertionFailure
from .handle import ContractHandle

logger = logging.getLogger(__name__)


class Kind(enum.Enum):
    ADDRESS = "address"
    UINT = "uint"
    BIGINT = "bigint"
    STRING = "string"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Expected:
    kind: Kind
    value: Any
    bits: int = 256

    @classmethod
    def address(cls, value: str) -> "Expected":
        return cls(Kind.ADDRESS, normalize_address(value))

    @classmethod
    def uint(cls, value: int, bits: int = 256) -> "Expected":
        if not _is_int(value) or value < 0 or value >= 1 << bits:
            raise ValueError(f"{value!r} is not a uint{bits}")
        return cls(Kind.UINT, value, bits)

    @classmethod
    def bigint(cls, value: int) -> "Expected":
        if not _is_int(value):
            raise ValueError(f"{value!r} is not an integer")
        return cls(Kind.BIGINT, value)

    @classmethod
    def string(cls, value: str) -> "Expected":
        return cls(Kind.STRING, value)

    @classmethod
    def of(cls, value: Any) -> "Expected":
        """Infer the tag: 0x-addresses, non-negative ints, other ints, strings."""
        if isinstance(value, Expected):
            return value
        if isinstance(value, str):
            try:
                return cls.address(value)
            except ValueError:
                return cls.string(value)
        if _is_int(value):
            return cls.uint(value) if 0 <= value < 1 << 256 else cls.bigint(value)
        raise TypeError(f"No expected-value kind for {type(value).__name__}")

    def matches(self, actual: Any) -> bool:
        if self.kind is Kind.ADDRESS:
            if not isinstance(actual, str):
                return False
            try:
                return normalize_address(actual) == self.value
            except ValueError:
                return False
        if self.kind is Kind.UINT:
            return _is_int(actual) and 0 <= actual < 1 << self.bits and actual == self.value
        if self.kind is Kind.BIGINT:
            return _is_int(actual) and actual == self.value
        return isinstance(actual, str) and actual == self.value

    def __str__(self) -> str:
        if self.kind is Kind.UINT and self.bits != 256:
            return f"uint{self.bits}({self.value})"
        return f"{self.kind.value}({self.value})"


def assert_equal(label: str, expected: Any, actual: Any) -> None:
    """Exact equality or ``AssertionFailure`` naming both values."""
    exp = Expected.of(expected)
    if not exp.matches(actual):
        raise AssertionFailure(label, expected=exp.value, actual=actual)
    logger.info("ok > %s : %s", label, actual)


def check_variable(handle: ContractHandle, method: str, expected: Any) -> Any:
    """Compare the first output of a getter with ``expected``."""
    actual = handle.low_call(method)[0]
    exp = Expected.of(expected)
    if not exp.matches(actual):
        raise AssertionFailure(f"mismatch {method}", expected=exp.value, actual=actual)
    logger.info("%s %s", method, actual)
    return actual


def expect_success(handle: ContractHandle, credential: Optional[Credential],
                   method: str, *args: Any) -> TransactionReceipt:
    receipt = handle.execute(credential, method, *args)
    if receipt.status != 1:
        raise AssertionFailure(
            f"denied execute {method}", expected=1, actual=receipt.status,
            detail=receipt.revert_reason)
    logger.info("ok > accepted to execute %s. receipt.status : %d", method, receipt.status)
    return receipt


def expect_failure(handle: ContractHandle, credential: Optional[Credential],
                   method: str, *args: Any, reason: Optional[str] = None) -> TransactionReceipt:
    """Execution must be rejected; with ``reason`` the revert reason must contain it."""
    receipt = handle.execute(credential, method, *args)
    if receipt.status != 0:
        raise AssertionFailure(
            f"accepted to execute {method}", expected=0, actual=receipt.status)
    if reason is not None and reason not in receipt.revert_reason:
        raise AssertionFailure(
            f"revert reason of {method}", expected=reason, actual=receipt.revert_reason)
    logger.info("ok > denied to execute %s. receipt.status : %d", method, receipt.status)
    return receipt


def execute_change_method(handle: ContractHandle, variable: str, value: Any) -> None:
    """Run ``change_<variable>(value)`` as owner and read the variable back."""
    expect_success(handle, None, "change_" + variable, value)
    exp = Expected.of(value)
    actual = handle.low_call(variable)[0]
    if not exp.matches(actual):
        raise AssertionFailure(variable, expected=exp.value, actual=actual)
    logger.info("ok > change_%s applied: %s", variable, actual)
