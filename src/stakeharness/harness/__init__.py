"""
Verification harness: contract handle, partner ledger oracle, staking
and minting drivers, and the lifecycle scenarios built on them.
"""

from .expect import (
    Expected, Kind, assert_equal, check_variable, execute_change_method,
    expect_failure, expect_success,
)
from .handle import ContractHandle
from .ledger import MintCursor, PartnerLedger, StakeRecord
from .minting import MintForecast, MintingDriver, forecast_minting, round_robin_credits
from .scenarios import SCENARIOS, Scenario, ScenarioReport, deploy, run_scenario, run_scenarios
from .staking import StakingDriver, staked_serial

__all__ = [
    # Checks
    'Expected',
    'Kind',
    'assert_equal',
    'check_variable',
    'execute_change_method',
    'expect_failure',
    'expect_success',

    # Handle
    'ContractHandle',

    # Oracle
    'MintCursor',
    'PartnerLedger',
    'StakeRecord',
    'MintForecast',
    'forecast_minting',
    'round_robin_credits',

    # Drivers
    'MintingDriver',
    'StakingDriver',
    'staked_serial',

    # Scenarios
    'SCENARIOS',
    'Scenario',
    'ScenarioReport',
    'deploy',
    'run_scenario',
    'run_scenarios',
]
