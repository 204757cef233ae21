"""
Harness error taxonomy.

Every failure aborts the running scenario; nothing here is retried.

  - ``EncodingError``: arguments or return data do not fit a method schema.
  - ``TransportError``: the execution environment could not process a
    submission (bad nonce, bad signature, ...).
  - ``DeploymentError``: contract construction was rejected.
  - ``ExecutionError``: a read-only call was rejected.
  - ``AssertionFailure``: observed chain state diverged from the oracle.
"""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base class for every harness failure."""


class EncodingError(HarnessError):
    """Argument or return shape mismatch against a method schema."""

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method


class TransportError(HarnessError):
    """The environment failed to process a transaction."""


class DeploymentError(TransportError):
    """The contract constructor was rejected."""

    def __init__(self, message: str, revert_reason: str = ""):
        super().__init__(message)
        self.revert_reason = revert_reason


class ExecutionError(HarnessError):
    """A read-only call was rejected by the environment."""

    def __init__(self, method: str, reason: str):
        super().__init__(f"call {method} rejected: {reason}")
        self.method = method
        self.reason = reason


class AssertionFailure(HarnessError):
    """Observed on-chain state diverges from the oracle prediction."""

    def __init__(self, label: str, expected: Any = None, actual: Any = None,
                 detail: str = ""):
        message = f"failed > {label}"
        if expected is not None or actual is not None:
            message += f" : expected {expected!r}, got {actual!r}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.label = label
        self.expected = expected
        self.actual = actual
        self.detail = detail
