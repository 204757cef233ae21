"""
Minting oracle and driver.

``forecast_minting`` replays a range of mint rounds against a ledger
snapshot and predicts every credit.  It needs no backend::

    forecast = forecast_minting(ledger, cursor=0, rounds=7,
                                mint_to_partner=5, mint_to_eco_fund=2,
                                mint_to_wemix=2)
    forecast.partner_credits[ledger[0].partner]

``MintingDriver`` runs a campaign of block advances and ``mint`` calls
against a deployed contract, then compares the contract's balances,
supply and cursor with the forecast.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import AssertionFailure
from .expect import assert_equal, check_variable
from .handle import ContractHandle
from .ledger import MintCursor, PartnerLedger

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  Pure oracle
# ══════════════════════════════════════════════════════════════════════

def round_robin_credits(size: int, cursor: int, rounds: int) -> Tuple[List[int], int]:
    """Credits per ledger index over ``rounds`` rounds, and the final cursor.

    With an empty ledger nobody is credited and the cursor is untouched.
    """
    if rounds < 0:
        raise ValueError("rounds must be non-negative")
    counts = [0] * size
    if size == 0:
        return counts, cursor
    walker = MintCursor(cursor)
    for _ in range(rounds):
        counts[walker.take(size)] += 1
    return counts, walker.position


@dataclass
class MintForecast:
    rounds: int
    cursor: int
    partner_credits: Dict[str, int] = field(default_factory=dict)
    eco_fund_credit: int = 0
    wemix_credit: int = 0

    @property
    def total_minted(self) -> int:
        return sum(self.partner_credits.values()) + self.eco_fund_credit + self.wemix_credit


def forecast_minting(ledger: PartnerLedger, cursor: int, rounds: int,
                     mint_to_partner: int, mint_to_eco_fund: int,
                     mint_to_wemix: int) -> MintForecast:
    """Predict the credits of ``rounds`` mint rounds starting at ``cursor``.

    Each round credits the partner at the cursor (when the ledger is
    non-empty) and both treasuries.  A partner holding several stakes
    is credited once per stake it is visited for.
    """
    counts, end_cursor = round_robin_credits(len(ledger), cursor, rounds)
    forecast = MintForecast(rounds=rounds, cursor=end_cursor)
    for record, count in zip(ledger, counts):
        forecast.partner_credits[record.partner] = (
            forecast.partner_credits.get(record.partner, 0) + count * mint_to_partner)
    forecast.eco_fund_credit = rounds * mint_to_eco_fund
    forecast.wemix_credit = rounds * mint_to_wemix
    return forecast


# ══════════════════════════════════════════════════════════════════════
#  Driver
# ══════════════════════════════════════════════════════════════════════

class MintingDriver:
    """Capture state, run a mint campaign, verify against the forecast."""

    def __init__(self, handle: ContractHandle, ledger: PartnerLedger):
        self.handle = handle
        self.ledger = ledger
        self.forecast: Optional[MintForecast] = None
        self._captured = False

    def capture(self) -> None:
        h = self.handle
        self.snapshot = self.ledger.snapshot()
        self.eco_fund = h.call("ecoFund")
        self.wemix = h.call("wemix")
        self.mint_to_partner = h.call("mintToPartner")
        self.mint_to_eco_fund = h.call("mintToEcoFund")
        self.mint_to_wemix = h.call("mintToWemix")
        self.cursor_start = h.call("nextPartnerToMint")
        self.block_to_mint_start = h.call("blockToMint")
        self.supply_start = h.call("totalSupply")

        accounts = self.snapshot.partners() + [self.eco_fund, self.wemix]
        self.balances_start = {a: h.balance_of(a) for a in dict.fromkeys(accounts)}
        self._captured = True
        logger.debug("captured %d partners, cursor %d, blockToMint %d",
                     len(self.snapshot), self.cursor_start, self.block_to_mint_start)

    def run(self, iterations: int) -> None:
        """Advance a block then mint from a fresh, unfunded credential."""
        if not self._captured:
            self.capture()
        for i in range(iterations):
            self.handle.backend.advance_block()
            minter = self.handle.backend.new_credential()
            receipt = self.handle.execute(minter, "mint")
            if receipt.status != 1:
                raise AssertionFailure(f"mint #{i}", expected=1, actual=receipt.status,
                                       detail=receipt.revert_reason)
        logger.info("ok > %d mint calls accepted", iterations)

    def verify(self) -> MintForecast:
        h = self.handle
        check_variable(h, "pendingBlock", 0)

        rounds = h.call("blockToMint") - self.block_to_mint_start
        forecast = forecast_minting(
            self.snapshot, self.cursor_start, rounds,
            self.mint_to_partner, self.mint_to_eco_fund, self.mint_to_wemix)

        expected = dict(self.balances_start)
        for partner, credit in forecast.partner_credits.items():
            expected[partner] += credit
        expected[self.eco_fund] += forecast.eco_fund_credit
        expected[self.wemix] += forecast.wemix_credit

        for account, balance in expected.items():
            assert_equal(f"balance of {account}", balance, h.balance_of(account))
        assert_equal("totalSupply", self.supply_start + forecast.total_minted,
                     h.call("totalSupply"))
        check_variable(h, "nextPartnerToMint", forecast.cursor)

        logger.info("ok > minted %d rounds, %d tokens", rounds, forecast.total_minted)
        self.forecast = forecast
        return forecast

    def campaign(self, iterations: int) -> MintForecast:
        self.capture()
        self.run(iterations)
        return self.verify()
