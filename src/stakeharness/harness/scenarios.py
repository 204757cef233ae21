"""
Lifecycle scenarios.

Each scenario deploys a fresh staking token on a fresh backend, drives
it through one part of its lifecycle and raises on the first
divergence.  ``run_scenarios`` runs a selection in order and collects a
``ScenarioReport`` per scenario.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..blockchain.backend import SimulatedBackend
from ..blockchain.wallet import IdentityRegistry
from ..config import HarnessConfig
from ..contracts import load_artifact
from ..contracts.staking_token import (
    INITIAL_SUPPLY, MAX_TIMES_MINTING_ONCE, MIN_BLOCK_WAITING_WITHDRAWAL,
    MINT_TO_ECO_FUND, MINT_TO_PARTNER, MINT_TO_WEMIX, TOKEN_DECIMALS,
    TOKEN_NAME, TOKEN_SYMBOL, UNIT_STAKING,
)
from ..errors import AssertionFailure, HarnessError
from .expect import (
    Expected, check_variable, execute_change_method, expect_failure,
    expect_success,
)
from .handle import ContractHandle
from .ledger import PartnerLedger
from .minting import MintingDriver
from .staking import StakingDriver

logger = logging.getLogger(__name__)

ONE = "0x0000000000000000000000000000000000000001"
TWO = "0x0000000000000000000000000000000000000002"


def deploy(config: HarnessConfig) -> ContractHandle:
    """Fresh backend, fresh treasuries, freshly deployed staking token."""
    backend = SimulatedBackend(chain_id=config.chain_id, gas_limit=config.gas_limit)
    eco_fund = backend.new_credential()
    wemix = backend.new_credential()
    handle = ContractHandle(backend, load_artifact("StakingToken"))
    handle.deploy(eco_fund.address, wemix.address)
    return handle


# ══════════════════════════════════════════════════════════════════════
#  Scenarios
# ══════════════════════════════════════════════════════════════════════

def scenario_deploy(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    chain = handle.backend.chain
    block = chain.get_block(handle.block_deployed)
    created = [r.contract_address for r in block.receipts] if block else []
    if handle.address not in created:
        raise AssertionFailure("deploy receipt in its block", expected=handle.address,
                               actual=created)
    if not chain.validate_chain():
        raise AssertionFailure("chain integrity after deploy")
    logger.info("ok > deploy tx sealed in block %d", handle.block_deployed)
    return {"address": handle.address, "block": handle.block_deployed}


def scenario_variables(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    eco_fund, wemix = handle.constructor_inputs
    checks = [
        ("name", Expected.string(TOKEN_NAME)),
        ("symbol", Expected.string(TOKEN_SYMBOL)),
        ("decimals", Expected.uint(TOKEN_DECIMALS, bits=8)),
        ("totalSupply", Expected.uint(INITIAL_SUPPLY)),
        ("unitStaking", Expected.uint(UNIT_STAKING)),
        ("minBlockWaitingWithdrawal", Expected.uint(MIN_BLOCK_WAITING_WITHDRAWAL)),
        ("maxTimesMintingOnce", Expected.uint(MAX_TIMES_MINTING_ONCE)),
        ("ecoFund", Expected.address(eco_fund)),
        ("wemix", Expected.address(wemix)),
        ("nextPartnerToMint", Expected.uint(0)),
        ("mintToPartner", Expected.uint(MINT_TO_PARTNER)),
        ("mintToEcoFund", Expected.uint(MINT_TO_ECO_FUND)),
        ("mintToWemix", Expected.uint(MINT_TO_WEMIX)),
        ("blockToMint", Expected.uint(handle.block_deployed)),
        ("owner", Expected.address(handle.owner)),
    ]
    for method, expected in checks:
        check_variable(handle, method, expected)
    return {"checked": len(checks)}


def scenario_execute(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    changes = [
        ("unitStaking", 1),
        ("minBlockWaitingWithdrawal", 1),
        ("maxTimesMintingOnce", 1),
        ("ecoFund", ONE),
        ("wemix", ONE),
        ("mintToPartner", 1),
        ("mintToEcoFund", 1),
        ("mintToWemix", 1),
    ]
    for variable, value in changes:
        execute_change_method(handle, variable, value)
    return {"changed": len(changes)}


def scenario_owner(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    stranger = handle.backend.new_credential()
    denied = [
        ("change_unitStaking", 1),
        ("change_minBlockWaitingWithdrawal", 1),
        ("change_maxTimesMintingOnce", 1),
        ("change_ecoFund", ONE),
        ("change_wemix", TWO),
        ("change_mintToPartner", 1),
        ("change_mintToEcoFund", 1),
        ("change_mintToWemix", 1),
        ("transferOwnership", handle.backend.new_credential().address),
    ]
    for method, value in denied:
        expect_failure(handle, stranger, method, value, reason="not the owner")

    new_owner = handle.backend.new_credential()
    expect_success(handle, None, "transferOwnership", new_owner.address)
    check_variable(handle, "owner", Expected.address(new_owner.address))
    expect_success(handle, new_owner, "transferOwnership", handle.owner)
    check_variable(handle, "owner", Expected.address(handle.owner))
    return {"denied": len(denied)}


def scenario_allowed_partner(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    expect_failure(handle, None, "stake", 0, reason="not allowed")

    partner = handle.backend.new_credential().address
    expect_success(handle, None, "addAllowedPartner", partner)
    receipt = expect_success(handle, None, "stakeDelegated", partner, 0)

    staked = handle.events(receipt, "Staked")
    if not staked:
        raise AssertionFailure("Staked event after stakeDelegated", expected=1, actual=0)
    event = staked[-1]
    if event["partner"] != partner:
        raise AssertionFailure("mismatch partner after stake", expected=partner,
                               actual=event["partner"])
    if event["payer"] != handle.owner:
        raise AssertionFailure("mismatch payer after stake", expected=handle.owner,
                               actual=event["payer"])
    logger.info("ok > test addAllowedPartner")
    return {"serial": event["serial"]}


def scenario_stake(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    driver = StakingDriver(handle, config.replace(show_stake_info=True))
    ledger = driver.run()
    return {"stakes": len(ledger), "partners": len(driver.identities)}


def scenario_withdraw(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    expect_success(handle, None, "change_minBlockWaitingWithdrawal",
                   config.withdrawal_wait_blocks)

    driver = StakingDriver(handle, config, IdentityRegistry())
    ledger = driver.run()
    stakes = len(ledger)
    driver.check_contract_balance()
    rounds = driver.withdraw_all()
    driver.return_tokens()
    driver.check_contract_balance()
    return {"stakes": stakes, "rounds": rounds}


def _mint_campaign(handle: ContractHandle, config: HarnessConfig,
                   ledger: PartnerLedger) -> Dict[str, Any]:
    minting = MintingDriver(handle, ledger)
    forecast = minting.campaign(config.mint_iterations)
    return {"rounds": forecast.rounds, "minted": forecast.total_minted,
            "partners": len(minting.snapshot)}


def scenario_mint(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    driver = StakingDriver(handle, config)
    return _mint_campaign(handle, config, driver.run())


def scenario_mint_without_partner(config: HarnessConfig) -> Dict[str, Any]:
    handle = deploy(config)
    return _mint_campaign(handle, config, PartnerLedger.load(handle))


# ══════════════════════════════════════════════════════════════════════
#  Registry & runner
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Scenario:
    name: str
    description: str
    run: Callable[[HarnessConfig], Dict[str, Any]]


SCENARIOS: Dict[str, Scenario] = {s.name: s for s in [
    Scenario("deploy", "Deploy the staking token", scenario_deploy),
    Scenario("variables", "Check every public variable after deployment", scenario_variables),
    Scenario("execute", "Apply each owner-only change_* setter", scenario_execute),
    Scenario("owner", "Reject owner-only calls from other accounts", scenario_owner),
    Scenario("allowed-partner", "Stake needs addAllowedPartner first", scenario_allowed_partner),
    Scenario("stake", "Self and delegated staking workload", scenario_stake),
    Scenario("withdraw", "Stake, then withdraw everything", scenario_withdraw),
    Scenario("mint", "Stake, then run a round-robin mint campaign", scenario_mint),
    Scenario("mint-without-partner", "Mint campaign with no partners", scenario_mint_without_partner),
]}


@dataclass
class ScenarioReport:
    name: str
    passed: bool
    duration: float = 0.0
    error: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


def run_scenario(name: str, config: Optional[HarnessConfig] = None) -> ScenarioReport:
    """Run one scenario; harness failures are reported, not raised."""
    scenario = SCENARIOS[name]
    config = config or HarnessConfig()
    start = time.perf_counter()
    logger.info("=== %s ===", name)
    try:
        details = scenario.run(config)
    except HarnessError as e:
        logger.error("%s: %s", name, e)
        return ScenarioReport(name, False, time.perf_counter() - start, str(e))
    logger.info("ok > scenario %s", name)
    return ScenarioReport(name, True, time.perf_counter() - start, details=details)


def run_scenarios(names: Optional[Sequence[str]] = None,
                  config: Optional[HarnessConfig] = None) -> List[ScenarioReport]:
    """Run scenarios in the given order (all of them by default)."""
    selected = list(names) if names else list(SCENARIOS)
    unknown = [n for n in selected if n not in SCENARIOS]
    if unknown:
        raise KeyError(f"Unknown scenario(s): {', '.join(unknown)}")
    return [run_scenario(name, config) for name in selected]
