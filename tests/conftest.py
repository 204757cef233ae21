"""
Pytest configuration for stake-harness tests.
"""
import sys
import os

import pytest

# `import stakeharness...` works without installing (src/ on sys.path)
_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
_SRC_DIR = os.path.join(_ROOT, 'src')

if _SRC_DIR not in sys.path:
	sys.path.insert(0, _SRC_DIR)


@pytest.fixture
def small_config():
	from stakeharness.config import HarnessConfig
	return HarnessConfig(
		self_stakers=2,
		delegated_stakers=2,
		mint_iterations=20,
		withdrawal_wait_blocks=5,
	)


@pytest.fixture
def backend():
	from stakeharness.blockchain.backend import SimulatedBackend
	return SimulatedBackend()


@pytest.fixture
def token(backend):
	"""A freshly deployed staking token handle."""
	from stakeharness.contracts import load_artifact
	from stakeharness.harness.handle import ContractHandle
	handle = ContractHandle(backend, load_artifact("StakingToken"))
	handle.deploy(backend.new_credential().address, backend.new_credential().address)
	return handle
