"""
Tests for the staking and minting drivers against the reference token.
"""

import pytest

from stakeharness.config import HarnessConfig
from stakeharness.contracts.staking_token import MINT_TO_ECO_FUND, MINT_TO_WEMIX, UNIT_STAKING
from stakeharness.errors import AssertionFailure
from stakeharness.harness.expect import expect_success
from stakeharness.harness.ledger import PartnerLedger, StakeRecord
from stakeharness.harness.minting import MintingDriver
from stakeharness.harness.staking import StakingDriver, staked_serial


@pytest.fixture
def driver(token, small_config):
    return StakingDriver(token, small_config)


# ═══════════════════════════════════════════════════════════════════════════
# Staking
# ═══════════════════════════════════════════════════════════════════════════

class TestStakeOnce:
    def test_serial_from_event(self, token):
        partner = token.backend.new_credential().address
        expect_success(token, None, "addAllowedPartner", partner)
        receipt = expect_success(token, None, "stakeDelegated", partner, 0)
        assert staked_serial(token, receipt) == 1

    def test_serial_missing(self, token):
        receipt = expect_success(token, None, "change_mintToWemix", 1)
        with pytest.raises(AssertionFailure):
            staked_serial(token, receipt)

    def test_delegated_record(self, token, driver):
        partner = token.backend.new_credential().address
        rec = driver.stake_once(partner, token.owner_key, 0, delegated=True)
        assert rec.partner == partner
        assert rec.payer == token.owner
        assert rec.delegated
        assert rec.balance_staking == UNIT_STAKING
        assert driver.ledger.serials() == [rec.serial]

    def test_wait_block_floor(self, token, driver):
        expect_success(token, None, "change_minBlockWaitingWithdrawal", 10)
        partner = token.backend.new_credential().address
        short = driver.stake_once(partner, token.owner_key, 3, delegated=True)
        long = driver.stake_once(partner, token.owner_key, 30, delegated=True)
        assert short.block_waiting_withdrawal == 10
        assert long.block_waiting_withdrawal == 30

    def test_reused_serial_detected(self, token):
        owner = token.owner
        ledger = PartnerLedger([StakeRecord(1, owner, owner, 0, 0, UNIT_STAKING)])
        driver = StakingDriver(token, ledger=ledger)
        partner = token.backend.new_credential().address
        with pytest.raises(AssertionFailure) as exc:
            driver.stake_once(partner, token.owner_key, 0, delegated=True)
        assert exc.value.actual == 1
        assert driver.stake_count == 0
        assert len(ledger) == 1


class TestStakeWorkload:
    def test_run(self, token, driver):
        ledger = driver.run()
        # self: 1 + 2 stakes, delegated: 1 + 2 stakes
        assert len(ledger) == 6
        assert token.call("partnersNumber") == 6
        assert len(driver.identities) == 4
        self_stakes = [r for r in ledger if not r.delegated]
        assert len(self_stakes) == 3
        assert all(r.payer == token.owner for r in ledger if r.delegated)

    def test_self_staker_spends_everything(self, token, driver):
        credential = driver.stake_self(1, UNIT_STAKING, 0)
        assert token.balance_of(credential.address) == 0
        assert len(driver.ledger) == 2

    def test_contract_balance_matches_ledger(self, token, driver):
        driver.run()
        assert driver.check_contract_balance() == 6 * UNIT_STAKING

    def test_delegated_overshoot_detected(self, token, driver):
        with pytest.raises(AssertionFailure) as exc:
            driver.stake_delegated(0, UNIT_STAKING // 2, 0)
        assert "overshot" in str(exc.value)

    def test_stake_loop_is_capped(self, token):
        driver = StakingDriver(token, HarnessConfig(max_stake_iterations=1))
        with pytest.raises(AssertionFailure):
            driver.stake_self(1, UNIT_STAKING, 0)

    def test_verify_detects_order_divergence(self, token, driver):
        driver.run()
        tampered = PartnerLedger(list(reversed(list(driver.ledger))))
        with pytest.raises(AssertionFailure):
            tampered.verify_against(token)


# ═══════════════════════════════════════════════════════════════════════════
# Withdrawal
# ═══════════════════════════════════════════════════════════════════════════

class TestWithdraw:
    def _staked(self, token, driver, wait):
        expect_success(token, None, "change_minBlockWaitingWithdrawal", wait)
        partner = token.backend.new_credential().address
        return driver.stake_once(partner, token.owner_key, 0, delegated=True)

    def test_boundary(self, token, driver):
        rec = self._staked(token, driver, 3)
        backend = token.backend
        while backend.current_block_height() < rec.withdrawable_at - 2:
            backend.advance_block()
        # lands in block withdrawable_at - 1
        assert driver.try_withdraw(rec) is False
        assert rec.serial in driver.ledger
        # lands in block withdrawable_at
        assert driver.try_withdraw(rec) is True
        assert rec.serial not in driver.ledger
        assert token.call("partnersNumber") == 0

    def test_early_acceptance_detected(self, token, driver):
        rec = self._staked(token, driver, 1)
        lying = StakeRecord(rec.serial, rec.partner, rec.payer, rec.block_staking,
                            10 ** 6, rec.balance_staking)
        token.backend.advance_block()
        with pytest.raises(AssertionFailure):
            driver.try_withdraw(lying)

    def test_wrong_payer_rejected(self, token, driver):
        rec = self._staked(token, driver, 0)
        receipt = token.execute(token.backend.new_credential(), "withdraw", rec.serial)
        assert receipt.status == 0
        assert "payer" in receipt.revert_reason

    def test_unknown_payer_is_harness_failure(self, token, driver):
        rec = self._staked(token, driver, 0)
        stranger = token.backend.new_credential().address
        orphan = StakeRecord(rec.serial, rec.partner, stranger, rec.block_staking,
                             rec.block_waiting_withdrawal, rec.balance_staking)
        with pytest.raises(AssertionFailure) as exc:
            driver.try_withdraw(orphan)
        assert exc.value.actual == stranger

    def test_withdraw_all(self, token, small_config):
        expect_success(token, None, "change_minBlockWaitingWithdrawal", 4)
        driver = StakingDriver(token, small_config)
        driver.run()
        supply = token.call("totalSupply")
        rounds = driver.withdraw_all()
        assert rounds >= 1
        assert len(driver.ledger) == 0
        assert token.call("partnersNumber") == 0
        assert driver.check_contract_balance() == 0
        driver.return_tokens()
        assert token.balance_of(token.owner) == supply

    def test_withdraw_loop_is_capped(self, token):
        driver = StakingDriver(token, HarnessConfig(max_withdraw_rounds=2))
        partner = token.backend.new_credential().address
        driver.stake_once(partner, token.owner_key, 0, delegated=True)
        with pytest.raises(AssertionFailure):
            driver.withdraw_all()


# ═══════════════════════════════════════════════════════════════════════════
# Minting
# ═══════════════════════════════════════════════════════════════════════════

class TestMintingDriver:
    def test_without_partners(self, token):
        eco_fund, wemix = token.constructor_inputs
        forecast = MintingDriver(token, PartnerLedger.load(token)).campaign(5)
        # deployed in block 1, campaign ends at block 11
        assert forecast.rounds == 10
        assert token.balance_of(eco_fund) == 10 * MINT_TO_ECO_FUND
        assert token.balance_of(wemix) == 10 * MINT_TO_WEMIX
        assert token.call("nextPartnerToMint") == 0

    def test_with_partners(self, token, driver):
        ledger = driver.run()
        minting = MintingDriver(token, ledger)
        forecast = minting.campaign(20)
        assert forecast.rounds > 40
        assert set(forecast.partner_credits) == set(ledger.partners())
        assert token.call("pendingBlock") == 0

    def test_divergent_ledger_detected(self, token, driver):
        ledger = driver.run()
        short = PartnerLedger(list(ledger)[:-1])
        with pytest.raises(AssertionFailure):
            MintingDriver(token, short).campaign(20)

    def test_backlog_detected(self, token):
        expect_success(token, None, "change_maxTimesMintingOnce", 1)
        with pytest.raises(AssertionFailure):
            MintingDriver(token, PartnerLedger()).campaign(3)

    def test_mint_by_unfunded_account(self, token):
        minter = token.backend.new_credential()
        receipt = token.execute(minter, "mint")
        assert receipt.status == 1
        assert token.balance_of(minter.address) == 0

    def test_ledger_shrinks_between_campaigns(self, token, small_config):
        expect_success(token, None, "change_minBlockWaitingWithdrawal", 1)
        driver = StakingDriver(token, small_config)
        ledger = driver.run()
        assert len(ledger) == 6
        MintingDriver(token, ledger).campaign(7)

        # a single-call campaign mints two rounds
        for _ in range(3):
            if token.call("nextPartnerToMint") >= 3:
                break
            MintingDriver(token, ledger).campaign(1)
        assert token.call("nextPartnerToMint") >= 3

        while len(ledger) > 3:
            assert driver.try_withdraw(ledger[0])
        ledger.verify_against(token)
        assert token.call("nextPartnerToMint") >= len(ledger)

        supply = token.call("totalSupply")
        forecast = MintingDriver(token, ledger).campaign(11)
        assert token.call("pendingBlock") == 0
        assert token.call("totalSupply") == supply + forecast.total_minted
        assert set(forecast.partner_credits) <= set(ledger.partners())
        assert driver.check_contract_balance() == ledger.total_staked()
