"""
Staking token: the reference contract the harness verifies.

A fungible token (ERC-20 style balances, allowances and ``Transfer``
events) extended with:

  - **Partner staking**: an owner-authorised partner locks exactly
    ``unitStaking`` tokens, either from its own balance (``stake``) or
    paid for by someone else (``stakeDelegated``).  Every stake gets a
    fresh serial and is announced by ``Staked(partner, payer, serial)``
    with all three parameters indexed.
  - **Withdrawal**: the payer recovers a stake once
    ``block.number >= blockStaking + blockWaitingWithdrawal``.  The
    partner list is compacted by moving the last entry into the freed
    slot.
  - **Round-robin minting**: ``mint`` (callable by anyone) credits
    every block height in ``[blockToMint, block.number)``, at most
    ``maxTimesMintingOnce`` per call: one partner (walking the partner
    list from ``nextPartnerToMint``), the eco fund and the wemix
    treasury.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

from ..blockchain.abi import ABI
from ..blockchain.contract_vm import (
    ContractArtifact, ContractCode, ExecutionContext, external, view,
)
from ..blockchain.wallet import ZERO_ADDRESS

TOKEN_NAME = "WEMIX TOKEN"
TOKEN_SYMBOL = "WEMIX"
TOKEN_DECIMALS = 18
INITIAL_SUPPLY = 1_000_000_000 * 10 ** 18
UNIT_STAKING = 5_000_000 * 10 ** 18
MIN_BLOCK_WAITING_WITHDRAWAL = 7_776_000
MAX_TIMES_MINTING_ONCE = 50
MINT_TO_PARTNER = 500_000_000_000_000_000
MINT_TO_ECO_FUND = 250_000_000_000_000_000
MINT_TO_WEMIX = 250_000_000_000_000_000

# Owner-tunable variables: ABI getter name -> (storage key, type)
TUNABLES: Dict[str, Tuple[str, str]] = {
    "unitStaking": ("unit_staking", "uint256"),
    "minBlockWaitingWithdrawal": ("min_block_waiting_withdrawal", "uint256"),
    "maxTimesMintingOnce": ("max_times_minting_once", "uint256"),
    "ecoFund": ("eco_fund", "address"),
    "wemix": ("wemix", "address"),
    "mintToPartner": ("mint_to_partner", "uint256"),
    "mintToEcoFund": ("mint_to_eco_fund", "uint256"),
    "mintToWemix": ("mint_to_wemix", "uint256"),
}


def _fn(name, inputs=(), outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "stateMutability": mutability,
    }


def _getter(name, type_name):
    return _fn(name, outputs=[("", type_name)], mutability="view")


_STAKE_OUTPUTS = [
    ("serial", "uint256"),
    ("partner", "address"),
    ("payer", "address"),
    ("blockStaking", "uint256"),
    ("blockWaitingWithdrawal", "uint256"),
    ("balanceStaking", "uint256"),
]

STAKING_TOKEN_ABI = [
    {"type": "constructor", "inputs": [
        {"name": "ecoFund", "type": "address"},
        {"name": "wemix", "type": "address"},
    ]},
    # ERC-20 surface
    _getter("name", "string"),
    _getter("symbol", "string"),
    _getter("decimals", "uint8"),
    _getter("totalSupply", "uint256"),
    _fn("balanceOf", [("account", "address")], [("", "uint256")], "view"),
    _fn("allowance", [("owner", "address"), ("spender", "address")], [("", "uint256")], "view"),
    _fn("transfer", [("to", "address"), ("amount", "uint256")], [("", "bool")]),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")]),
    _fn("transferFrom", [("from", "address"), ("to", "address"), ("amount", "uint256")],
        [("", "bool")]),
    # Ownership
    _getter("owner", "address"),
    _fn("transferOwnership", [("newOwner", "address")]),
    # Tunables and their owner-only setters
    *[_getter(name, t) for name, (_, t) in TUNABLES.items()],
    *[_fn("change_" + name, [("value", t)]) for name, (_, t) in TUNABLES.items()],
    # Staking
    _fn("isAllowedPartner", [("partner", "address")], [("", "bool")], "view"),
    _fn("addAllowedPartner", [("partner", "address")]),
    _fn("stake", [("waitBlock", "uint256")]),
    _fn("stakeDelegated", [("partner", "address"), ("waitBlock", "uint256")]),
    _fn("withdraw", [("serial", "uint256")]),
    _getter("partnersNumber", "uint256"),
    _fn("partnerByIndex", [("index", "uint256")], _STAKE_OUTPUTS, "view"),
    _fn("partnerBySerial", [("serial", "uint256")], _STAKE_OUTPUTS, "view"),
    # Minting
    _getter("nextPartnerToMint", "uint256"),
    _getter("blockToMint", "uint256"),
    _getter("pendingBlock", "uint256"),
    _fn("mint"),
    # Events
    {"type": "event", "name": "Transfer", "inputs": [
        {"name": "from", "type": "address", "indexed": True},
        {"name": "to", "type": "address", "indexed": True},
        {"name": "value", "type": "uint256", "indexed": False},
    ]},
    {"type": "event", "name": "Approval", "inputs": [
        {"name": "owner", "type": "address", "indexed": True},
        {"name": "spender", "type": "address", "indexed": True},
        {"name": "value", "type": "uint256", "indexed": False},
    ]},
    {"type": "event", "name": "OwnershipTransferred", "inputs": [
        {"name": "previousOwner", "type": "address", "indexed": True},
        {"name": "newOwner", "type": "address", "indexed": True},
    ]},
    {"type": "event", "name": "Staked", "inputs": [
        {"name": "partner", "type": "address", "indexed": True},
        {"name": "payer", "type": "address", "indexed": True},
        {"name": "serial", "type": "uint256", "indexed": True},
    ]},
    {"type": "event", "name": "Withdrawn", "inputs": [
        {"name": "partner", "type": "address", "indexed": True},
        {"name": "payer", "type": "address", "indexed": True},
        {"name": "serial", "type": "uint256", "indexed": True},
    ]},
]


class StakingToken(ContractCode):
    """Reference implementation of the staking token."""

    def constructor(self, ctx: ExecutionContext, eco_fund: str, wemix: str) -> None:
        self.storage.update({
            "name": TOKEN_NAME,
            "symbol": TOKEN_SYMBOL,
            "decimals": TOKEN_DECIMALS,
            "total_supply": 0,
            "balances": {},
            "allowances": {},  # owner -> spender -> amount
            "owner": ctx.sender,
            "unit_staking": UNIT_STAKING,
            "min_block_waiting_withdrawal": MIN_BLOCK_WAITING_WITHDRAWAL,
            "max_times_minting_once": MAX_TIMES_MINTING_ONCE,
            "eco_fund": eco_fund,
            "wemix": wemix,
            "mint_to_partner": MINT_TO_PARTNER,
            "mint_to_eco_fund": MINT_TO_ECO_FUND,
            "mint_to_wemix": MINT_TO_WEMIX,
            "next_partner_to_mint": 0,
            "block_to_mint": ctx.block_number,
            "allowed_partners": {},
            "partners": [],  # serials in registration order
            "stakes": {},  # serial -> stake fields
            "next_serial": 1,
        })
        self._mint(ctx, ctx.sender, INITIAL_SUPPLY)

    # ── ERC-20 ────────────────────────────────────────────────────

    @view("name")
    def name(self, ctx):
        return self.storage["name"]

    @view("symbol")
    def symbol(self, ctx):
        return self.storage["symbol"]

    @view("decimals")
    def decimals(self, ctx):
        return self.storage["decimals"]

    @view("totalSupply")
    def total_supply(self, ctx):
        return self.storage["total_supply"]

    @view("balanceOf")
    def balance_of(self, ctx, account):
        return self.storage["balances"].get(account, 0)

    @view("allowance")
    def allowance(self, ctx, owner, spender):
        return self.storage["allowances"].get(owner, {}).get(spender, 0)

    @external("transfer")
    def transfer(self, ctx, to, amount):
        self._transfer(ctx, ctx.sender, to, amount)
        return True

    @external("approve")
    def approve(self, ctx, spender, amount):
        self.storage["allowances"].setdefault(ctx.sender, {})[spender] = amount
        ctx.emit("Approval", owner=ctx.sender, spender=spender, value=amount)
        return True

    @external("transferFrom")
    def transfer_from(self, ctx, from_addr, to, amount):
        allowed = self.allowance(ctx, from_addr, ctx.sender)
        ctx.require(allowed >= amount, "allowance exceeded")
        self._transfer(ctx, from_addr, to, amount)
        self.storage["allowances"].setdefault(from_addr, {})[ctx.sender] = allowed - amount
        return True

    def _transfer(self, ctx, sender, recipient, amount):
        balances = self.storage["balances"]
        ctx.require(recipient != ZERO_ADDRESS, "transfer to zero address")
        ctx.require(balances.get(sender, 0) >= amount, "insufficient balance")
        balances[sender] = balances.get(sender, 0) - amount
        balances[recipient] = balances.get(recipient, 0) + amount
        ctx.emit("Transfer", **{"from": sender, "to": recipient, "value": amount})

    def _mint(self, ctx, to, amount):
        balances = self.storage["balances"]
        self.storage["total_supply"] += amount
        balances[to] = balances.get(to, 0) + amount
        ctx.emit("Transfer", **{"from": ZERO_ADDRESS, "to": to, "value": amount})

    # ── Ownership & tunables ──────────────────────────────────────

    def _only_owner(self, ctx):
        ctx.require(ctx.sender == self.storage["owner"], "caller is not the owner")

    @view("owner")
    def owner(self, ctx):
        return self.storage["owner"]

    @external("transferOwnership")
    def transfer_ownership(self, ctx, new_owner):
        self._only_owner(ctx)
        ctx.require(new_owner != ZERO_ADDRESS, "new owner is the zero address")
        previous = self.storage["owner"]
        self.storage["owner"] = new_owner
        ctx.emit("OwnershipTransferred", previousOwner=previous, newOwner=new_owner)

    def resolve(self, method: str):
        if method in TUNABLES:
            key = TUNABLES[method][0]
            return lambda ctx: self.storage[key]
        if method.startswith("change_") and method[len("change_"):] in TUNABLES:
            key = TUNABLES[method[len("change_"):]][0]

            def change(ctx, value):
                self._only_owner(ctx)
                self.storage[key] = value
            return change
        return super().resolve(method)

    # ── Staking ───────────────────────────────────────────────────

    @view("isAllowedPartner")
    def is_allowed_partner(self, ctx, partner):
        return self.storage["allowed_partners"].get(partner, False)

    @external("addAllowedPartner")
    def add_allowed_partner(self, ctx, partner):
        self._only_owner(ctx)
        ctx.require(partner != ZERO_ADDRESS, "partner is the zero address")
        self.storage["allowed_partners"][partner] = True

    @external("stake")
    def stake(self, ctx, wait_block):
        self._stake(ctx, ctx.sender, ctx.sender, wait_block)

    @external("stakeDelegated")
    def stake_delegated(self, ctx, partner, wait_block):
        self._stake(ctx, partner, ctx.sender, wait_block)

    def _stake(self, ctx, partner, payer, wait_block):
        s = self.storage
        ctx.require(s["allowed_partners"].get(partner, False), "partner is not allowed")
        amount = s["unit_staking"]
        ctx.require(s["balances"].get(payer, 0) >= amount, "insufficient balance to stake")

        del s["allowed_partners"][partner]
        self._transfer(ctx, payer, self.address, amount)

        serial = s["next_serial"]
        s["next_serial"] = serial + 1
        s["stakes"][serial] = {
            "partner": partner,
            "payer": payer,
            "block_staking": ctx.block_number,
            "block_waiting_withdrawal": max(wait_block, s["min_block_waiting_withdrawal"]),
            "balance_staking": amount,
        }
        s["partners"].append(serial)
        ctx.emit("Staked", partner=partner, payer=payer, serial=serial)

    @external("withdraw")
    def withdraw(self, ctx, serial):
        s = self.storage
        stake = s["stakes"].get(serial)
        ctx.require(stake is not None, "unknown stake serial")
        ctx.require(ctx.sender == stake["payer"], "only the payer can withdraw")
        ctx.require(
            ctx.block_number >= stake["block_staking"] + stake["block_waiting_withdrawal"],
            "stake is still locked",
        )

        partners = s["partners"]
        index = partners.index(serial)
        partners[index] = partners[-1]
        partners.pop()
        del s["stakes"][serial]

        self._transfer(ctx, self.address, stake["payer"], stake["balance_staking"])
        ctx.emit("Withdrawn", partner=stake["partner"], payer=stake["payer"], serial=serial)

    def _stake_tuple(self, serial) -> Tuple[Any, ...]:
        stake = self.storage["stakes"][serial]
        return (
            serial,
            stake["partner"],
            stake["payer"],
            stake["block_staking"],
            stake["block_waiting_withdrawal"],
            stake["balance_staking"],
        )

    @view("partnersNumber")
    def partners_number(self, ctx):
        return len(self.storage["partners"])

    @view("partnerByIndex")
    def partner_by_index(self, ctx, index):
        partners = self.storage["partners"]
        ctx.require(index < len(partners), "partner index out of range")
        return self._stake_tuple(partners[index])

    @view("partnerBySerial")
    def partner_by_serial(self, ctx, serial):
        ctx.require(serial in self.storage["stakes"], "unknown stake serial")
        return self._stake_tuple(serial)

    # ── Minting ───────────────────────────────────────────────────

    @view("pendingBlock")
    def pending_block(self, ctx):
        return max(0, ctx.block_number - self.storage["block_to_mint"])

    @view("nextPartnerToMint")
    def next_partner_to_mint(self, ctx):
        return self.storage["next_partner_to_mint"]

    @view("blockToMint")
    def block_to_mint(self, ctx):
        return self.storage["block_to_mint"]

    @external("mint")
    def mint(self, ctx):
        s = self.storage
        rounds = min(max(0, ctx.block_number - s["block_to_mint"]),
                     s["max_times_minting_once"])
        for _ in range(rounds):
            partners = s["partners"]
            if partners:
                if s["next_partner_to_mint"] >= len(partners):
                    s["next_partner_to_mint"] = 0
                serial = partners[s["next_partner_to_mint"]]
                self._mint(ctx, s["stakes"][serial]["partner"], s["mint_to_partner"])
                s["next_partner_to_mint"] = (s["next_partner_to_mint"] + 1) % len(partners)
            self._mint(ctx, s["eco_fund"], s["mint_to_eco_fund"])
            self._mint(ctx, s["wemix"], s["mint_to_wemix"])
            s["block_to_mint"] += 1


def load_artifact() -> ContractArtifact:
    """Artifact for the staking token: method table plus code."""
    return ContractArtifact(name="StakingToken", abi=ABI(STAKING_TOKEN_ABI), code=StakingToken)

