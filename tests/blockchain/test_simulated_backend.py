"""
Tests for the simulated execution environment:
  - wallet.py (Credential, IdentityRegistry, addresses)
  - chain.py (Transaction signing, Chain sealing)
  - contract_vm.py (dispatch, revert rollback)
  - backend.py (deploy / execute / call / advance_block)
"""

import json

import pytest

from stakeharness.blockchain.backend import SimulatedBackend, contract_address_for
from stakeharness.blockchain.chain import Chain, Transaction
from stakeharness.blockchain.contract_vm import (
    ContractArtifact, ContractCode, ContractVM, external, view,
)
from stakeharness.blockchain.abi import ABI
from stakeharness.blockchain.wallet import (
    ZERO_ADDRESS, Credential, IdentityRegistry, normalize_address, verify_signature,
)
from stakeharness.errors import DeploymentError, ExecutionError, TransportError


COUNTER_ABI = [
    {"type": "constructor", "inputs": [{"name": "start", "type": "uint256"}]},
    {"type": "function", "name": "value", "inputs": [],
     "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view"},
    {"type": "function", "name": "increment", "inputs": [], "outputs": []},
    {"type": "function", "name": "fail", "inputs": [], "outputs": []},
    {"type": "function", "name": "blockNumber", "inputs": [],
     "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view"},
    {"type": "event", "name": "Incremented", "inputs": [
        {"name": "by", "type": "address", "indexed": True}]},
]


class Counter(ContractCode):
    def constructor(self, ctx, start):
        ctx.require(start < 100, "start too large")
        self.storage["value"] = start

    @view("value")
    def value(self, ctx):
        return self.storage["value"]

    @external("increment")
    def increment(self, ctx):
        self.storage["value"] += 1
        ctx.emit("Incremented", by=ctx.sender)

    @external("fail")
    def fail(self, ctx):
        self.storage["value"] += 1000
        ctx.require(False, "always fails")

    @view("blockNumber")
    def block_number(self, ctx):
        return ctx.block_number


@pytest.fixture
def counter_artifact():
    return ContractArtifact(name="Counter", abi=ABI(COUNTER_ABI), code=Counter)


@pytest.fixture
def deployed(backend, counter_artifact):
    owner = backend.new_credential()
    address, block = backend.deploy(counter_artifact, [5], owner)
    return backend, counter_artifact.abi, owner, address, block


# ═══════════════════════════════════════════════════════════════════════════
# Wallet
# ═══════════════════════════════════════════════════════════════════════════

class TestCredential:
    def test_address_shape(self):
        cred = Credential.generate()
        assert cred.address.startswith("0x") and len(cred.address) == 42
        assert normalize_address(cred.address) == cred.address

    def test_sign_verify(self):
        cred = Credential.generate()
        sig = cred.sign(b"payload")
        assert verify_signature(cred.public_key_hex, sig, b"payload")
        assert not verify_signature(cred.public_key_hex, sig, b"other")

    def test_normalize_rejects_garbage(self):
        with pytest.raises(ValueError):
            normalize_address("0xzz" + "0" * 38)
        with pytest.raises(ValueError):
            normalize_address("0x12")


class TestIdentityRegistry:
    def test_create_and_lookup(self):
        registry = IdentityRegistry()
        cred = registry.create()
        assert registry.get(cred.address) is cred
        assert registry.get(cred.address.upper().replace("0X", "0x")) is cred
        assert cred.address in registry
        assert len(registry) == 1

    def test_get_unknown(self):
        assert IdentityRegistry().get(ZERO_ADDRESS) is None

    def test_registries_are_independent(self):
        a, b = IdentityRegistry(), IdentityRegistry()
        cred = a.create()
        assert cred.address not in b

    def test_iteration_order(self):
        registry = IdentityRegistry()
        creds = [registry.create() for _ in range(3)]
        assert list(registry) == creds


# ═══════════════════════════════════════════════════════════════════════════
# Chain
# ═══════════════════════════════════════════════════════════════════════════

class TestChain:
    def test_genesis(self):
        chain = Chain()
        assert chain.height == 0
        assert chain.pending_height == 1

    def test_seal_links_blocks(self):
        chain = Chain()
        chain.seal()
        chain.seal()
        assert chain.height == 2
        assert chain.validate_chain()
        assert chain.get_block(2).header.prev_hash == chain.get_block(1).hash

    def test_tampered_chain_invalid(self):
        chain = Chain()
        chain.seal()
        chain.blocks[1].header.gas_used = 99
        assert not chain.validate_chain()

    def test_transaction_signature(self):
        cred = Credential.generate()
        tx = Transaction(recipient=ZERO_ADDRESS, data="{}")
        tx.sign(cred)
        assert tx.sender == cred.address
        assert tx.verify()
        tx.data = '{"tampered": true}'
        assert not tx.verify()

    def test_foreign_public_key_rejected(self):
        tx = Transaction(recipient=ZERO_ADDRESS)
        tx.sign(Credential.generate())
        tx.sender = Credential.generate().address
        assert not tx.verify()


# ═══════════════════════════════════════════════════════════════════════════
# Contract VM
# ═══════════════════════════════════════════════════════════════════════════

class TestContractVM:
    def test_dispatch_table(self):
        assert Counter._dispatch["blockNumber"] == "block_number"

    def test_revert_restores_storage(self, counter_artifact):
        vm = ContractVM()
        vm.deploy(counter_artifact, "0x" + "11" * 20, [1], ZERO_ADDRESS, 1)
        result = vm.execute("0x" + "11" * 20, json.dumps({"action": "fail", "args": []}),
                            ZERO_ADDRESS, 2)
        assert not result.success
        assert result.revert_reason == "always fails"
        assert vm.get_contract("0x" + "11" * 20).storage["value"] == 1

    def test_unknown_method(self, counter_artifact):
        vm = ContractVM()
        vm.deploy(counter_artifact, "0x" + "11" * 20, [1], ZERO_ADDRESS, 1)
        result = vm.execute("0x" + "11" * 20, '{"action": "nope", "args": []}', ZERO_ADDRESS, 2)
        assert not result.success
        assert "unknown method" in result.revert_reason

    def test_bad_call_data(self, counter_artifact):
        vm = ContractVM()
        vm.deploy(counter_artifact, "0x" + "11" * 20, [1], ZERO_ADDRESS, 1)
        result = vm.execute("0x" + "11" * 20, "garbage", ZERO_ADDRESS, 2)
        assert not result.success and result.error == "BadCallData"

    def test_static_call_cannot_emit(self, counter_artifact):
        vm = ContractVM()
        vm.deploy(counter_artifact, "0x" + "11" * 20, [1], ZERO_ADDRESS, 1)
        result = vm.execute("0x" + "11" * 20, '{"action": "increment", "args": []}',
                            ZERO_ADDRESS, 2, static=True)
        assert not result.success
        assert vm.get_contract("0x" + "11" * 20).storage["value"] == 1


# ═══════════════════════════════════════════════════════════════════════════
# Backend
# ═══════════════════════════════════════════════════════════════════════════

class TestBackendDeploy:
    def test_deploy_returns_address_and_block(self, deployed):
        backend, abi, owner, address, block = deployed
        assert block == 1
        assert address == contract_address_for(owner.address, 0)
        assert backend.pending_nonce_at(owner.address) == 1

    def test_rejected_constructor(self, backend, counter_artifact):
        with pytest.raises(DeploymentError) as exc:
            backend.deploy(counter_artifact, [500], backend.new_credential())
        assert exc.value.revert_reason == "start too large"
        assert isinstance(exc.value, TransportError)


class TestBackendExecute:
    def test_one_block_per_execute(self, deployed):
        backend, abi, owner, address, _ = deployed
        before = backend.current_block_height()
        receipt = backend.execute(address, owner, abi.pack("increment"))
        assert receipt.status == 1
        assert receipt.block_number == before + 1
        assert backend.current_block_height() == before + 1

    def test_block_number_seen_by_contract(self, deployed):
        backend, abi, owner, address, _ = deployed
        assert abi.unpack("blockNumber", backend.call(address, abi.pack("blockNumber"))) == 1

    def test_revert_yields_status_zero(self, deployed):
        backend, abi, owner, address, _ = deployed
        receipt = backend.execute(address, owner, abi.pack("fail"))
        assert receipt.status == 0
        assert receipt.revert_reason == "always fails"
        assert receipt.logs == []
        assert abi.unpack("value", backend.call(address, abi.pack("value"))) == 5

    def test_logs_carry_block_and_tx(self, deployed):
        backend, abi, owner, address, _ = deployed
        receipt = backend.execute(address, owner, abi.pack("increment"))
        assert len(receipt.logs) == 1
        assert receipt.logs[0].block_number == receipt.block_number
        assert receipt.logs[0].tx_hash == receipt.tx_hash

    def test_view_in_transaction(self, deployed):
        backend, abi, owner, address, _ = deployed
        receipt = backend.execute(address, owner, abi.pack("value"))
        assert receipt.status == 1
        assert abi.unpack("value", receipt.return_data) == 5

    def test_any_credential_can_send(self, deployed):
        backend, abi, _, address, _ = deployed
        receipt = backend.execute(address, backend.new_credential(), abi.pack("increment"))
        assert receipt.status == 1

    def test_nonce_mismatch_is_transport_error(self, deployed):
        backend, abi, owner, address, _ = deployed
        tx = Transaction(recipient=address, nonce=7, data=abi.pack("increment"))
        tx.sign(owner)
        with pytest.raises(TransportError):
            backend.send_transaction(tx)

    def test_bad_signature_is_transport_error(self, deployed):
        backend, abi, owner, address, _ = deployed
        tx = Transaction(recipient=address, nonce=1, data=abi.pack("increment"))
        tx.sign(owner)
        tx.data = abi.pack("fail")
        with pytest.raises(TransportError):
            backend.send_transaction(tx)

    def test_missing_contract(self, deployed):
        backend, abi, owner, _, _ = deployed
        with pytest.raises(TransportError):
            backend.execute("0x" + "99" * 20, owner, abi.pack("increment"))


class TestBackendCall:
    def test_call_does_not_mutate(self, deployed):
        backend, abi, owner, address, _ = deployed
        height = backend.current_block_height()
        assert abi.unpack("value", backend.call(address, abi.pack("value"))) == 5
        assert backend.current_block_height() == height

    def test_rejected_call(self, deployed):
        backend, abi, owner, address, _ = deployed
        with pytest.raises(ExecutionError) as exc:
            backend.call(address, abi.pack("fail"))
        assert exc.value.method == "fail"


class TestAdvanceBlock:
    def test_empty_block(self, backend):
        assert backend.advance_block() == 1
        assert backend.commit() == 2
        assert backend.chain.tip.transactions == []
