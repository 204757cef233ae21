"""
Event logs emitted by contract execution.

``EventLog`` follows Ethereum's log layout: ``topics[0]`` is the event
id and the following topics are the indexed parameters as 32-byte hex
words, in declaration order.  Non-indexed parameters travel in ``data``
as a JSON object.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from .abi import Event, encode_topic, topic_to_address, topic_to_int


@dataclass
class EventLog:
    """A single event log entry."""

    address: str = ""
    topics: List[str] = field(default_factory=list)
    data: str = ""
    block_number: int = 0
    tx_hash: str = ""
    log_index: int = 0


def build_log(event: Event, address: str, values: Dict[str, Any]) -> EventLog:
    """Build the log for ``event`` emitted by the contract at ``address``."""
    topics = [event.id]
    data: Dict[str, Any] = {}
    for param in event.inputs:
        value = values[param.name]
        if param.indexed:
            topics.append(encode_topic(param, value))
        else:
            data[param.name] = value
    return EventLog(address=address, topics=topics, data=json.dumps(data))


def decode_log(event: Event, log: EventLog) -> Dict[str, Any]:
    """Decode a log back into ``{param name: value}``."""
    if not log.topics or log.topics[0] != event.id:
        raise ValueError(f"Log is not a {event.name} event")
    indexed = event.indexed
    if len(log.topics) != len(indexed) + 1:
        raise ValueError(
            f"{event.name} log has {len(log.topics) - 1} indexed topics, expected {len(indexed)}")
    values: Dict[str, Any] = json.loads(log.data) if log.data else {}
    for param, topic in zip(indexed, log.topics[1:]):
        if param.type == "address":
            values[param.name] = topic_to_address(topic)
        elif param.type == "bool":
            values[param.name] = topic_to_int(topic) != 0
        elif param.type == "string":
            values[param.name] = topic  # only the hash survives indexing
        else:
            values[param.name] = topic_to_int(topic)
    return values


def filter_logs(logs: Iterable[EventLog], event: Event) -> List[EventLog]:
    """Logs whose topic[0] matches ``event``."""
    return [g for g in logs if g.topics and g.topics[0] == event.id]
