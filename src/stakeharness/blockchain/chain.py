"""
Chain & block data structures for the simulated environment.

A block-per-transaction chain: every submitted transaction is sealed in
its own block, and ``Chain.seal`` can also produce empty blocks.  There
is no mempool, no consensus and no fork handling; finality is
immediate.
"""

import hashlib
import json
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from .events import EventLog
from .wallet import Credential, address_from_public_key, verify_signature

# Genesis timestamp and block interval; time is simulated, not wall-clock
GENESIS_TIMESTAMP = 1_600_000_000
BLOCK_INTERVAL = 1


@dataclass
class BlockHeader:
    """Block header."""
    height: int = 0
    timestamp: int = 0
    prev_hash: str = "0" * 64
    tx_root: str = ""
    gas_limit: int = 10_000_000
    gas_used: int = 0
    extra_data: str = ""

    def compute_hash(self) -> str:
        """Compute block header hash."""
        data = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(data.encode()).hexdigest()


@dataclass
class Transaction:
    """A signed transaction.

    ``recipient`` is empty for contract creation.  ``data`` holds the
    JSON call data (or the constructor arguments on creation).
    """
    sender: str = ""
    recipient: str = ""
    nonce: int = 0
    data: str = ""
    gas_limit: int = 10_000_000
    public_key: str = ""
    signature: str = ""
    tx_hash: str = ""

    def signing_payload(self) -> bytes:
        return json.dumps({
            "sender": self.sender,
            "recipient": self.recipient,
            "nonce": self.nonce,
            "data": self.data,
            "gas_limit": self.gas_limit,
        }, sort_keys=True).encode("utf-8")

    def compute_hash(self) -> str:
        payload = self.signing_payload() + self.signature.encode("utf-8")
        self.tx_hash = "0x" + hashlib.sha256(payload).hexdigest()
        return self.tx_hash

    def sign(self, credential: Credential) -> str:
        """Sign with ``credential``; also fixes ``sender`` and the hash."""
        self.sender = credential.address
        self.public_key = credential.public_key_hex
        self.signature = credential.sign(self.signing_payload())
        self.compute_hash()
        return self.signature

    def verify(self) -> bool:
        """Signature is valid and the public key controls ``sender``."""
        if not self.signature or not self.public_key:
            return False
        try:
            if address_from_public_key(bytes.fromhex(self.public_key)) != self.sender:
                return False
        except ValueError:
            return False
        return verify_signature(self.public_key, self.signature, self.signing_payload())


@dataclass
class TransactionReceipt:
    """Receipt produced after transaction execution."""
    tx_hash: str = ""
    block_hash: str = ""
    block_number: int = 0
    status: int = 1  # 1 = success, 0 = failure
    gas_used: int = 0
    logs: List[EventLog] = field(default_factory=list)
    contract_address: Optional[str] = None  # If deployment
    return_data: str = ""
    revert_reason: str = ""


@dataclass
class Block:
    """A sealed block."""
    header: BlockHeader = field(default_factory=BlockHeader)
    transactions: List[Transaction] = field(default_factory=list)
    receipts: List[TransactionReceipt] = field(default_factory=list)
    hash: str = ""

    def compute_hash(self) -> str:
        self.hash = self.header.compute_hash()
        return self.hash

    def compute_tx_root(self) -> str:
        """Merkle root of transaction hashes."""
        if not self.transactions:
            return hashlib.sha256(b"empty").hexdigest()

        hashes = [tx.tx_hash or tx.compute_hash() for tx in self.transactions]
        while len(hashes) > 1:
            if len(hashes) % 2 == 1:
                hashes.append(hashes[-1])
            hashes = [
                hashlib.sha256((hashes[i] + hashes[i + 1]).encode()).hexdigest()
                for i in range(0, len(hashes), 2)
            ]
        return hashes[0]


class Chain:
    """Ordered sequence of sealed blocks plus per-account nonces."""

    def __init__(self, chain_id: str = "stake-harness-sim", gas_limit: int = 10_000_000):
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.blocks: List[Block] = []
        self.nonces: Dict[str, int] = {}
        self.receipts: Dict[str, TransactionReceipt] = {}
        self._create_genesis()

    def _create_genesis(self) -> None:
        genesis = Block()
        genesis.header.timestamp = GENESIS_TIMESTAMP
        genesis.header.gas_limit = self.gas_limit
        genesis.header.extra_data = f"genesis {self.chain_id}"
        genesis.header.tx_root = genesis.compute_tx_root()
        genesis.compute_hash()
        self.blocks.append(genesis)

    @property
    def tip(self) -> Block:
        return self.blocks[-1]

    @property
    def height(self) -> int:
        return self.tip.header.height

    @property
    def pending_height(self) -> int:
        """Height of the block the next transaction will land in."""
        return self.height + 1

    def get_block(self, height: int) -> Optional[Block]:
        if 0 <= height < len(self.blocks):
            return self.blocks[height]
        return None

    def nonce_of(self, address: str) -> int:
        return self.nonces.get(address, 0)

    def seal(self, transactions: Optional[List[Transaction]] = None,
             receipts: Optional[List[TransactionReceipt]] = None) -> Block:
        """Append a new block holding ``transactions`` (possibly none)."""
        tip = self.tip
        block = Block(transactions=list(transactions or []), receipts=list(receipts or []))
        block.header.height = tip.header.height + 1
        block.header.timestamp = tip.header.timestamp + BLOCK_INTERVAL
        block.header.prev_hash = tip.hash
        block.header.gas_limit = self.gas_limit
        block.header.gas_used = sum(r.gas_used for r in block.receipts)
        block.header.tx_root = block.compute_tx_root()
        block.compute_hash()

        for tx, receipt in zip(block.transactions, block.receipts):
            self.nonces[tx.sender] = tx.nonce + 1
            receipt.block_hash = block.hash
            receipt.block_number = block.header.height
            for g in receipt.logs:
                g.block_number = block.header.height
                g.tx_hash = tx.tx_hash
            self.receipts[tx.tx_hash] = receipt

        self.blocks.append(block)
        return block

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        return self.receipts.get(tx_hash)

    def validate_chain(self) -> bool:
        """Check hash links and heights of every block."""
        for i, block in enumerate(self.blocks):
            if block.hash != block.header.compute_hash():
                return False
            if i > 0:
                if block.header.prev_hash != self.blocks[i - 1].hash:
                    return False
                if block.header.height != i:
                    return False
        return True
