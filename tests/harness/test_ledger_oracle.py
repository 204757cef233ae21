"""
Tests for the oracle side of the harness, no backend involved:
  - ledger.py (StakeRecord, PartnerLedger, MintCursor)
  - minting.py (round_robin_credits, forecast_minting)
"""

import pytest

from stakeharness.harness.ledger import MintCursor, PartnerLedger, StakeRecord
from stakeharness.harness.minting import forecast_minting, round_robin_credits


def record(serial, partner=None, payer=None, block=10, wait=5, balance=100):
    partner = partner or f"p{serial}"
    return StakeRecord(serial=serial, partner=partner, payer=payer or partner,
                       block_staking=block, block_waiting_withdrawal=wait,
                       balance_staking=balance)


# ═══════════════════════════════════════════════════════════════════════════
# StakeRecord
# ═══════════════════════════════════════════════════════════════════════════

class TestStakeRecord:
    def test_withdrawable_at(self):
        assert record(1, block=100, wait=1000).withdrawable_at == 1100

    def test_boundary(self):
        r = record(1, block=100, wait=1000)
        assert not r.is_withdrawable(1099)
        assert r.is_withdrawable(1100)

    def test_monotonic(self):
        r = record(1, block=3, wait=7)
        first = next(b for b in range(100) if r.is_withdrawable(b))
        assert all(r.is_withdrawable(b) for b in range(first, 100))
        assert not any(r.is_withdrawable(b) for b in range(first))

    def test_delegated_flag(self):
        assert not record(1).delegated
        assert record(1, partner="a", payer="b").delegated


# ═══════════════════════════════════════════════════════════════════════════
# PartnerLedger
# ═══════════════════════════════════════════════════════════════════════════

class TestPartnerLedger:
    def test_insertion_order(self):
        ledger = PartnerLedger([record(1), record(2), record(3)])
        assert ledger.serials() == [1, 2, 3]
        assert ledger[1].serial == 2
        assert len(ledger) == 3

    def test_duplicate_serial_rejected(self):
        ledger = PartnerLedger([record(1)])
        with pytest.raises(ValueError):
            ledger.append(record(1))

    def test_remove_swaps_last_into_slot(self):
        ledger = PartnerLedger([record(s) for s in (1, 2, 3, 4)])
        removed = ledger.remove(2)
        assert removed.serial == 2
        assert ledger.serials() == [1, 4, 3]
        assert 2 not in ledger
        assert ledger.get(4) is ledger[1]

    def test_remove_last(self):
        ledger = PartnerLedger([record(1), record(2)])
        ledger.remove(2)
        assert ledger.serials() == [1]

    def test_remove_only(self):
        ledger = PartnerLedger([record(1)])
        ledger.remove(1)
        assert len(ledger) == 0
        assert not ledger

    def test_remove_unknown(self):
        with pytest.raises(KeyError):
            PartnerLedger().remove(9)

    def test_iteration_tolerates_removal(self):
        ledger = PartnerLedger([record(s) for s in (1, 2, 3)])
        seen = []
        for r in ledger:
            seen.append(r.serial)
            if r.serial == 1:
                ledger.remove(1)
        assert seen == [1, 2, 3]

    def test_distinct_partners_first_seen(self):
        ledger = PartnerLedger([record(1, partner="a"), record(2, partner="b"),
                                record(3, partner="a")])
        assert ledger.partners() == ["a", "b"]

    def test_total_staked(self):
        ledger = PartnerLedger([record(1, balance=5), record(2, balance=7)])
        assert ledger.total_staked() == 12

    def test_snapshot_is_independent(self):
        ledger = PartnerLedger([record(1), record(2)])
        snap = ledger.snapshot()
        ledger.remove(1)
        assert snap.serials() == [1, 2]


# ═══════════════════════════════════════════════════════════════════════════
# MintCursor
# ═══════════════════════════════════════════════════════════════════════════

class TestMintCursor:
    def test_wraps(self):
        cursor = MintCursor()
        assert [cursor.take(3) for _ in range(5)] == [0, 1, 2, 0, 1]
        assert cursor.position == 2

    def test_resets_when_past_end(self):
        cursor = MintCursor(5)
        assert cursor.take(3) == 0
        assert cursor.position == 1

    def test_empty_ledger(self):
        with pytest.raises(ValueError):
            MintCursor().take(0)

    def test_negative(self):
        with pytest.raises(ValueError):
            MintCursor(-1)


# ═══════════════════════════════════════════════════════════════════════════
# Round robin
# ═══════════════════════════════════════════════════════════════════════════

class TestRoundRobinCredits:
    def test_three_partners_seven_rounds(self):
        assert round_robin_credits(3, 0, 7) == ([3, 2, 2], 1)

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 8])
    @pytest.mark.parametrize("rounds", [0, 1, 7, 50, 1000])
    def test_coverage_formula(self, size, rounds):
        for cursor in range(size):
            counts, end = round_robin_credits(size, cursor, rounds)
            for i in range(size):
                assert counts[i] == sum(1 for r in range(rounds) if (cursor + r) % size == i)
            assert end == (cursor + rounds) % size
            assert sum(counts) == rounds

    def test_fair_within_one(self):
        counts, _ = round_robin_credits(7, 3, 1000)
        assert max(counts) - min(counts) <= 1

    def test_empty_ledger(self):
        assert round_robin_credits(0, 4, 10) == ([], 4)

    def test_stale_cursor_resets(self):
        assert round_robin_credits(3, 5, 2) == ([1, 1, 0], 2)

    def test_negative_rounds(self):
        with pytest.raises(ValueError):
            round_robin_credits(3, 0, -1)


class TestForecastMinting:
    def test_concrete(self):
        ledger = PartnerLedger([record(1, partner="a"), record(2, partner="b"),
                                record(3, partner="c")])
        f = forecast_minting(ledger, 0, 7, mint_to_partner=10, mint_to_eco_fund=3,
                             mint_to_wemix=2)
        assert f.partner_credits == {"a": 30, "b": 20, "c": 20}
        assert f.eco_fund_credit == 21
        assert f.wemix_credit == 14
        assert f.cursor == 1
        assert f.total_minted == 70 + 21 + 14

    def test_partner_with_several_stakes(self):
        ledger = PartnerLedger([record(1, partner="a"), record(2, partner="b"),
                                record(3, partner="a")])
        f = forecast_minting(ledger, 0, 6, 1, 0, 0)
        assert f.partner_credits == {"a": 4, "b": 2}

    def test_without_partners(self):
        f = forecast_minting(PartnerLedger(), 0, 9, 5, 2, 1)
        assert f.partner_credits == {}
        assert f.total_minted == 9 * 3
        assert f.cursor == 0

    def test_conservation(self):
        ledger = PartnerLedger([record(s) for s in range(1, 6)])
        f = forecast_minting(ledger, 2, 123, 7, 3, 2)
        assert f.total_minted == 123 * (7 + 3 + 2)
