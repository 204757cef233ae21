"""
Method tables and the call-data codec.

An ``ABI`` is built from an Ethereum-style JSON definition (a list of
``function`` / ``event`` / ``constructor`` entries).  It validates and
packs arguments against a method's input schema and unpacks return data
against its output schema.

Call data uses the JSON call format understood by the contract VM::

    {"action": "<method>", "args": [ ... ]}

Return data is a JSON array with one element per declared output.
Integers travel as JSON integers, so arbitrary precision is preserved.

Supported parameter types: ``address``, ``uint<N>``, ``bool``, ``string``.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..errors import EncodingError
from .wallet import normalize_address

_UINT_RE = re.compile(r"^uint(\d*)$")


def _uint_bits(type_name: str) -> Optional[int]:
    m = _UINT_RE.match(type_name)
    if not m:
        return None
    bits = int(m.group(1) or 256)
    if bits % 8 or not 8 <= bits <= 256:
        raise ValueError(f"Invalid integer width: {type_name}")
    return bits


def camel_to_snake(name: str) -> str:
    """``blockWaitingWithdrawal`` -> ``block_waiting_withdrawal``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


# ══════════════════════════════════════════════════════════════════════
#  Schema
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Param:
    name: str
    type: str
    indexed: bool = False

    def __post_init__(self):
        if self.type not in ("address", "bool", "string") and _uint_bits(self.type) is None:
            raise ValueError(f"Unsupported ABI type: {self.type}")

    def encode(self, method: str, value: Any) -> Any:
        """Validate a Python value and return its wire form."""
        if self.type == "address":
            if not isinstance(value, str):
                raise EncodingError(method, f"{self.label} expects address, got {type(value).__name__}")
            try:
                return normalize_address(value)
            except ValueError as e:
                raise EncodingError(method, f"{self.label}: {e}")
        if self.type == "bool":
            if not isinstance(value, bool):
                raise EncodingError(method, f"{self.label} expects bool, got {type(value).__name__}")
            return value
        if self.type == "string":
            if not isinstance(value, str):
                raise EncodingError(method, f"{self.label} expects string, got {type(value).__name__}")
            return value
        bits = _uint_bits(self.type)
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(method, f"{self.label} expects {self.type}, got {type(value).__name__}")
        if value < 0 or value >= 1 << bits:
            raise EncodingError(method, f"{self.label} out of range for {self.type}: {value}")
        return value

    decode = encode

    @property
    def label(self) -> str:
        return self.name or self.type


@dataclass
class Method:
    name: str
    inputs: List[Param] = field(default_factory=list)
    outputs: List[Param] = field(default_factory=list)
    state_mutability: str = "nonpayable"

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.inputs)})"


@dataclass
class Event:
    name: str
    inputs: List[Param] = field(default_factory=list)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.inputs)})"

    @property
    def id(self) -> str:
        """topic[0] of every log emitted for this event."""
        return "0x" + hashlib.sha256(self.signature.encode("utf-8")).hexdigest()

    @property
    def indexed(self) -> List[Param]:
        return [p for p in self.inputs if p.indexed]


# ══════════════════════════════════════════════════════════════════════
#  Topic words
# ══════════════════════════════════════════════════════════════════════

def encode_topic(param: Param, value: Any) -> str:
    """Encode an indexed value as a 32-byte hex word."""
    if param.type == "address":
        return "0x" + normalize_address(value)[2:].rjust(64, "0")
    if param.type == "bool":
        return "0x" + format(int(bool(value)), "064x")
    if param.type == "string":
        return "0x" + hashlib.sha256(value.encode("utf-8")).hexdigest()
    return "0x" + format(value, "064x")


def topic_to_int(topic: str) -> int:
    return int(topic, 16)


def topic_to_address(topic: str) -> str:
    """Last 20 bytes of a topic word."""
    raw = topic[2:] if topic.startswith("0x") else topic
    return "0x" + raw[-40:].lower()


# ══════════════════════════════════════════════════════════════════════
#  ABI
# ══════════════════════════════════════════════════════════════════════

class ABI:
    """Callable method table derived from a JSON definition."""

    def __init__(self, definition: Sequence[Dict[str, Any]]):
        self.methods: Dict[str, Method] = {}
        self.events: Dict[str, Event] = {}
        self.constructor = Method(name="")
        for entry in definition:
            kind = entry.get("type", "function")
            inputs = [Param(p.get("name", ""), p["type"], p.get("indexed", False))
                      for p in entry.get("inputs", [])]
            if kind == "function":
                outputs = [Param(p.get("name", ""), p["type"]) for p in entry.get("outputs", [])]
                self.methods[entry["name"]] = Method(
                    name=entry["name"], inputs=inputs, outputs=outputs,
                    state_mutability=entry.get("stateMutability", "nonpayable"),
                )
            elif kind == "event":
                self.events[entry["name"]] = Event(name=entry["name"], inputs=inputs)
            elif kind == "constructor":
                self.constructor = Method(name="", inputs=inputs)
            else:
                raise ValueError(f"Unsupported ABI entry type: {kind}")

    def method(self, name: str) -> Method:
        try:
            return self.methods[name]
        except KeyError:
            raise EncodingError(name, "method not found in ABI")

    def event(self, name: str) -> Event:
        return self.events[name]

    # ── Packing ───────────────────────────────────────────────────

    def encode_args(self, method: Method, args: Sequence[Any]) -> List[Any]:
        label = method.name or "constructor"
        if len(args) != len(method.inputs):
            raise EncodingError(
                label, f"expected {len(method.inputs)} arguments, got {len(args)}")
        return [p.encode(label, a) for p, a in zip(method.inputs, args)]

    def pack(self, name: str, *args: Any) -> str:
        """Encode a method invocation as call data."""
        method = self.method(name)
        return json.dumps({"action": name, "args": self.encode_args(method, args)})

    def pack_constructor(self, *args: Any) -> List[Any]:
        return self.encode_args(self.constructor, args)

    # ── Unpacking ─────────────────────────────────────────────────

    def unpack_values(self, name: str, data: str) -> List[Any]:
        """Decode return data into a list, one value per output."""
        method = self.method(name)
        try:
            values = json.loads(data) if data else []
        except (TypeError, json.JSONDecodeError) as e:
            raise EncodingError(name, f"malformed return data: {e}")
        if not isinstance(values, list) or len(values) != len(method.outputs):
            raise EncodingError(
                name, f"expected {len(method.outputs)} return values, got {values!r}")
        return [p.decode(name, v) for p, v in zip(method.outputs, values)]

    def unpack(self, name: str, data: str, into: Any = None) -> Any:
        """Decode return data.

        Without ``into`` a single output is returned bare and several as
        a tuple.  With ``into`` (a dataclass type) the named outputs are
        matched to its fields, camelCase output names mapping to
        snake_case field names.
        """
        values = self.unpack_values(name, data)
        if into is None:
            return values[0] if len(values) == 1 else tuple(values)

        if not is_dataclass(into):
            raise EncodingError(name, f"cannot unpack into {into!r}")
        method = self.methods[name]
        names = {f.name for f in fields(into)}
        kwargs = {}
        for param, value in zip(method.outputs, values):
            key = camel_to_snake(param.name)
            if key not in names:
                raise EncodingError(name, f"{into.__name__} has no field for output {param.name!r}")
            kwargs[key] = value
        missing = names - set(kwargs)
        if missing:
            raise EncodingError(name, f"outputs do not cover {sorted(missing)}")
        return into(**kwargs)

    def encode_result(self, name: str, result: Any) -> str:
        """Contract side: validate a return value and serialize it."""
        method = self.method(name)
        if not method.outputs:
            values: List[Any] = []
        elif len(method.outputs) == 1:
            values = [result]
        else:
            values = list(result)
            if len(values) != len(method.outputs):
                raise EncodingError(
                    name, f"expected {len(method.outputs)} return values, got {len(values)}")
        return json.dumps([p.encode(name, v) for p, v in zip(method.outputs, values)])
