"""
Partner ledger: the oracle's view of every live stake.

The ledger keeps stake records in the contract's registration order
(the order round-robin minting walks) and indexes them by serial.
Removal moves the last record into the freed slot, mirroring how the
contract compacts its partner list, so both orders stay identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from ..errors import AssertionFailure
from .handle import ContractHandle

logger = logging.getLogger(__name__)


@dataclass
class StakeRecord:
    """One unit of staked value."""
    serial: int
    partner: str
    payer: str
    block_staking: int
    block_waiting_withdrawal: int
    balance_staking: int

    @property
    def withdrawable_at(self) -> int:
        """First block height at which withdrawal succeeds."""
        return self.block_staking + self.block_waiting_withdrawal

    def is_withdrawable(self, block: int) -> bool:
        return block >= self.withdrawable_at

    @property
    def delegated(self) -> bool:
        return self.payer != self.partner

    def log(self) -> None:
        logger.debug("Partner:%s serial:%d", self.partner, self.serial)
        logger.debug(" -Payer:%s", self.payer)
        logger.debug(" -BalanceStaking:%d", self.balance_staking)
        logger.debug(" -BlockStaking:%d", self.block_staking)
        logger.debug(" -BlockWaitingWithdrawal:%d", self.block_waiting_withdrawal)


class PartnerLedger:
    """Insertion-ordered stake records, also indexed by serial."""

    def __init__(self, records: Optional[List[StakeRecord]] = None):
        self._order: List[StakeRecord] = []
        self._by_serial: Dict[int, StakeRecord] = {}
        for record in records or []:
            self.append(record)

    @classmethod
    def load(cls, handle: ContractHandle) -> "PartnerLedger":
        """Read every stake from the contract via ``partnerByIndex``."""
        count = handle.call("partnersNumber")
        ledger = cls([handle.call("partnerByIndex", i, into=StakeRecord)
                      for i in range(count)])
        logger.info("ok > loadAllStake, partners number: %d", count)
        return ledger

    def append(self, record: StakeRecord) -> None:
        if record.serial in self._by_serial:
            raise ValueError(f"Serial {record.serial} already in ledger")
        self._order.append(record)
        self._by_serial[record.serial] = record

    def remove(self, serial: int) -> StakeRecord:
        """Remove by serial: the last record takes the freed slot."""
        record = self._by_serial.pop(serial)
        index = self._order.index(record)
        last = self._order.pop()
        if last is not record:
            self._order[index] = last
        return record

    def get(self, serial: int) -> Optional[StakeRecord]:
        return self._by_serial.get(serial)

    def __getitem__(self, index: int) -> StakeRecord:
        return self._order[index]

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[StakeRecord]:
        return iter(list(self._order))

    def __contains__(self, serial: int) -> bool:
        return serial in self._by_serial

    def serials(self) -> List[int]:
        return [r.serial for r in self._order]

    def partners(self) -> List[str]:
        """Distinct partner addresses, first-seen order."""
        return list(dict.fromkeys(r.partner for r in self._order))

    def total_staked(self) -> int:
        return sum(r.balance_staking for r in self._order)

    def snapshot(self) -> "PartnerLedger":
        return PartnerLedger(list(self._order))

    def verify_against(self, handle: ContractHandle) -> None:
        """The contract must hold exactly these stakes, in this order."""
        count = handle.call("partnersNumber")
        if count != len(self):
            raise AssertionFailure("mismatch partner number", expected=len(self), actual=count)
        onchain = PartnerLedger.load(handle)
        if onchain.serials() != self.serials():
            raise AssertionFailure("mismatch partner order",
                                   expected=self.serials(), actual=onchain.serials())
        for mine, theirs in zip(self._order, onchain):
            if mine != theirs:
                raise AssertionFailure(f"mismatch stake {mine.serial}",
                                       expected=mine, actual=theirs)


class MintCursor:
    """``nextPartnerToMint``: index of the next partner in ledger order."""

    def __init__(self, position: int = 0):
        if position < 0:
            raise ValueError("Cursor position must be non-negative")
        self.position = position

    def take(self, size: int) -> int:
        """Index credited this round; advances the cursor.

        A position past the end of the ledger (it shrank since the last
        round) restarts from zero.
        """
        if size <= 0:
            raise ValueError("Cannot take from an empty ledger")
        if self.position >= size:
            self.position = 0
        index = self.position
        self.position = (index + 1) % size
        return index

    def __repr__(self) -> str:
        return f"MintCursor({self.position})"
