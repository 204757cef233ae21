"""
Staking driver.

Generates the stake, delegated-stake and withdraw workload against a
deployed contract and keeps the partner ledger in step with what the
contract reports.

Workload (per ``HarnessConfig``):

  - ``self_stakers`` partners, partner *i* funded with
    ``unitStaking * (i+1)`` tokens and staking its whole balance with
    ``waitBlock = minBlockWaitingWithdrawal * (i+1)``.
  - ``delegated_stakers`` partners staked for by the owner, partner *i*
    receiving ``unitStaking * (i+1)`` worth of stakes.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..blockchain.abi import topic_to_int
from ..blockchain.chain import TransactionReceipt
from ..blockchain.wallet import Credential, IdentityRegistry
from ..config import HarnessConfig
from ..errors import AssertionFailure
from .expect import assert_equal, expect_success
from .handle import ContractHandle
from .ledger import PartnerLedger, StakeRecord

logger = logging.getLogger(__name__)


def staked_serial(handle: ContractHandle, receipt: TransactionReceipt) -> int:
    """Serial carried by the ``Staked`` log of a receipt (topic 3)."""
    event_id = handle.abi.event("Staked").id
    serial: Optional[int] = None
    for g in receipt.logs:
        if g.topics and g.topics[0] == event_id:
            serial = topic_to_int(g.topics[3])
    if serial is None:
        raise AssertionFailure("find stake serial", detail=f"no Staked log in {receipt.tx_hash}")
    return serial


class StakingDriver:
    """Drives staking and withdrawal, mirroring every stake in ``ledger``."""

    def __init__(self, handle: ContractHandle, config: Optional[HarnessConfig] = None,
                 identities: Optional[IdentityRegistry] = None,
                 ledger: Optional[PartnerLedger] = None):
        self.handle = handle
        self.config = config or HarnessConfig()
        self.identities = identities if identities is not None else IdentityRegistry()
        self.ledger = ledger if ledger is not None else PartnerLedger()
        self.stake_count = 0

    # ── Single stake ──────────────────────────────────────────────

    def stake_once(self, partner: str, payer: Credential, wait_block: int,
                   delegated: bool) -> StakeRecord:
        """Authorize ``partner`` then stake once; returns the new record."""
        h = self.handle
        expect_success(h, None, "addAllowedPartner", partner)
        if delegated:
            receipt = expect_success(h, payer, "stakeDelegated", partner, wait_block)
        else:
            receipt = expect_success(h, payer, "stake", wait_block)

        serial = staked_serial(h, receipt)
        record = h.call("partnerBySerial", serial, into=StakeRecord)
        if record.serial in self.ledger:
            raise AssertionFailure("serial reused", expected="unused serial",
                                   actual=record.serial)
        self.stake_count += 1
        self.ledger.append(record)
        if self.config.show_stake_info:
            record.log()
        return record

    # ── Workload ──────────────────────────────────────────────────

    def stake_self(self, index: int, unit: int, min_wait: int) -> Credential:
        """Fund a new partner and let it stake its whole balance."""
        h = self.handle
        credential = self.identities.create()
        partner = credential.address
        expect_success(h, None, "transfer", partner, unit * (index + 1))
        wait_block = min_wait * (index + 1)

        for _ in range(self.config.max_stake_iterations):
            record = self.stake_once(partner, credential, wait_block, delegated=False)
            if record.payer != record.partner:
                raise AssertionFailure("self stake payer is not the partner",
                                       expected=record.partner, actual=record.payer)
            if record.payer != partner:
                raise AssertionFailure("self stake payer is not the sender",
                                       expected=partner, actual=record.payer)
            if h.balance_of(partner) == 0:
                return credential
        raise AssertionFailure(f"stake loop of {partner} exceeded "
                               f"{self.config.max_stake_iterations} iterations")

    def stake_delegated(self, index: int, unit: int, min_wait: int) -> Credential:
        """Owner stakes ``unit * (index+1)`` on behalf of a new partner."""
        h = self.handle
        credential = self.identities.create()
        partner = credential.address
        remaining = unit * (index + 1)
        wait_block = min_wait * (index + 1)

        for _ in range(self.config.max_stake_iterations):
            record = self.stake_once(partner, h.owner_key, wait_block, delegated=True)
            if record.payer == record.partner:
                raise AssertionFailure("delegated stake payer equals partner",
                                       actual=record.payer)
            if record.payer != h.owner:
                raise AssertionFailure("delegated stake payer is not the sender",
                                       expected=h.owner, actual=record.payer)
            remaining -= record.balance_staking
            if remaining < 0:
                raise AssertionFailure(f"delegated stake of {partner} overshot",
                                       expected=0, actual=remaining)
            if remaining == 0:
                return credential
        raise AssertionFailure(f"delegated stake loop of {partner} exceeded "
                               f"{self.config.max_stake_iterations} iterations")

    def run(self) -> PartnerLedger:
        """Run the whole stake workload and check the contract agrees."""
        h = self.handle
        unit = h.call("unitStaking")
        min_wait = h.call("minBlockWaitingWithdrawal")

        for i in range(self.config.self_stakers):
            self.stake_self(i, unit, min_wait)
        for i in range(self.config.delegated_stakers):
            self.stake_delegated(i, unit, min_wait)

        assert_equal("partnersNumber", self.stake_count, h.call("partnersNumber"))
        self.ledger.verify_against(h)
        logger.info("ok > %d stakes registered", self.stake_count)
        return self.ledger

    # ── Withdrawal ────────────────────────────────────────────────

    def payer_credential(self, record: StakeRecord) -> Credential:
        if record.payer == self.handle.owner:
            return self.handle.owner_key
        credential = self.identities.get(record.payer)
        if credential is None:
            raise AssertionFailure(f"no credential for payer of {record.serial}",
                                   actual=record.payer)
        return credential

    def check_contract_balance(self) -> int:
        """The contract's own balance must equal the sum of live stakes."""
        total = self.ledger.total_staked()
        assert_equal("contract balance vs total stake balance", total,
                     self.handle.balance_of(self.handle.address))
        return total

    def try_withdraw(self, record: StakeRecord) -> bool:
        """Attempt one withdrawal and judge it against ``withdrawable_at``."""
        h = self.handle
        receipt = h.execute(self.payer_credential(record), "withdraw", record.serial)
        block = h.backend.current_block_height()
        if receipt.status == 1:
            if not record.is_withdrawable(block):
                raise AssertionFailure(
                    f"withdrawal of {record.serial} accepted early",
                    expected=f">= {record.withdrawable_at}", actual=block)
            self.ledger.remove(record.serial)
            logger.info("ok > withdrawal : %d", record.serial)
            return True
        if record.is_withdrawable(block):
            raise AssertionFailure(
                f"withdrawal of {record.serial} rejected", expected=1,
                actual=receipt.status,
                detail=f"block {block}, withdrawable at {record.withdrawable_at}")
        return False

    def withdraw_all(self) -> int:
        """Withdraw every stake, one block at a time; returns the pass count."""
        backend = self.handle.backend
        for rounds in range(1, self.config.max_withdraw_rounds + 1):
            for record in self.ledger:
                if self.try_withdraw(record):
                    break
            if not self.ledger:
                return rounds
            backend.advance_block()
        raise AssertionFailure(
            f"withdraw loop exceeded {self.config.max_withdraw_rounds} rounds",
            expected=0, actual=len(self.ledger))

    def return_tokens(self) -> None:
        """Send every registered partner's balance back to the owner."""
        h = self.handle
        for credential in self.identities:
            balance = h.balance_of(credential.address)
            if balance > 0:
                expect_success(h, credential, "transfer", h.owner, balance)
                logger.info("ok > return token to owner")
