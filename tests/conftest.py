"""Shared pytest fixtures for relay client tests.

The relayer is faked at the HTTP layer with ``httpx.MockTransport``, so the
real RelayerClient (headers, JSON bodies, error mapping) is exercised. The
chain is an in-memory FakeChain that applies the approval calls the fake
relayer executes, which lets the flows verify on-chain state afterwards.
"""

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from eth_abi import decode

from config.constants import (
    APPROVE_SELECTOR,
    SAFE_FACTORY_ADDRESS,
    SAFE_INIT_CODE_HASH,
    SAFE_MULTISEND_ADDRESS,
    SET_APPROVAL_FOR_ALL_SELECTOR,
)
from core.relay import (
    ChainReadError,
    ERC20Approval,
    OperationType,
    RelayerClient,
    TransactionPoller,
    decode_multisend,
)
from core.relay.encoding import hex_to_bytes
from core.wallet import LocalAccountSigner, WalletIdentity
from services import RelayContext, required_approvals


# Deterministic owner key for tests. Never funded.
TEST_PRIVATE_KEY = "0x" + "ab" * 32
RELAYER_HOST = "https://relayer.test"


async def no_sleep(_seconds: float) -> None:
    """Sleep replacement so polling tests run instantly."""


class FakeChain:
    """In-memory Polygon state: deployed Safes, allowances and operators."""

    def __init__(self):
        self.contracts: Set[str] = set()
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.operators: Set[Tuple[str, str, str]] = set()
        self.usdc_balances: Dict[str, float] = {}
        self.native_balances: Dict[str, float] = {}
        self.reads = 0
        self.unreachable = False

    def deploy(self, address: str) -> None:
        self.contracts.add(address.lower())

    def grant_approvals(self, safe_address: str, skip: Tuple[str, ...] = ()) -> None:
        """Mark every required approval as set except those named in ``skip``."""
        for requirement in required_approvals():
            if requirement.name in skip:
                continue
            if isinstance(requirement, ERC20Approval):
                key = (requirement.token.lower(), safe_address.lower(), requirement.spender.lower())
                self.allowances[key] = 2 ** 256 - 1
            else:
                self.operators.add(
                    (requirement.token.lower(), safe_address.lower(), requirement.operator.lower())
                )

    def apply_call(self, safe_address: str, to: str, data: str) -> None:
        raw = hex_to_bytes(data)
        selector = "0x" + raw[:4].hex()
        if selector == APPROVE_SELECTOR:
            spender, amount = decode(["address", "uint256"], raw[4:])
            self.allowances[(to.lower(), safe_address.lower(), spender.lower())] = amount
        elif selector == SET_APPROVAL_FOR_ALL_SELECTOR:
            operator, approved = decode(["address", "bool"], raw[4:])
            key = (to.lower(), safe_address.lower(), operator.lower())
            if approved:
                self.operators.add(key)
            else:
                self.operators.discard(key)

    def apply_safe_transaction(self, safe_address: str, to: str, data: str, operation: int) -> None:
        if operation == OperationType.DELEGATE_CALL:
            for call in decode_multisend(data):
                self.apply_call(safe_address, call.to, call.data)
        else:
            self.apply_call(safe_address, to, data)

    def _read(self) -> None:
        if self.unreachable:
            raise ChainReadError("RPC unreachable")
        self.reads += 1

    async def is_contract(self, address: str) -> bool:
        self._read()
        return address.lower() in self.contracts

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        self._read()
        return self.allowances.get((token.lower(), owner.lower(), spender.lower()), 0)

    async def is_approved_for_all(self, token: str, owner: str, operator: str) -> bool:
        self._read()
        return (token.lower(), owner.lower(), operator.lower()) in self.operators

    async def get_usdc_balance(self, address: str) -> float:
        return self.usdc_balances.get(address.lower(), 0.0)

    async def get_native_balance(self, address: str) -> float:
        return self.native_balances.get(address.lower(), 0.0)


class FakeRelay:
    """
    Relayer served through httpx.MockTransport.

    Accepted submissions are applied to the FakeChain immediately unless
    ``apply_effects`` is False. ``/transaction`` answers with ``final_state``,
    or with a 503 while ``transaction_unavailable`` is set.
    """

    def __init__(self, chain: FakeChain):
        self.chain = chain
        self.nonce = 0
        self.requests: List[httpx.Request] = []
        self.transactions: Dict[str, dict] = {}
        self.final_state = "STATE_MINED"
        self.apply_effects = True
        self.deployed_unavailable = False
        self.transaction_unavailable = False
        self.stale_nonce_rejections = 0
        self.proxy_address_override: Optional[str] = None
        self._counter = 0

    @property
    def submissions(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def _new_transaction(self, **fields) -> str:
        self._counter += 1
        transaction_id = f"tx-{self._counter}"
        self.transactions[transaction_id] = {"transactionID": transaction_id, **fields}
        return transaction_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = dict(request.url.params)

        if path == "/deployed":
            if self.deployed_unavailable:
                return httpx.Response(503, text="service unavailable")
            return httpx.Response(200, json={"deployed": params["address"].lower() in self.chain.contracts})

        if path == "/nonce":
            return httpx.Response(200, json={"address": params["address"], "nonce": str(self.nonce)})

        if path == "/deploy":
            body = json.loads(request.content)
            proxy_address = self.proxy_address_override or body["proxyAddress"]
            if self.apply_effects:
                self.chain.deploy(body["proxyAddress"])
            transaction_id = self._new_transaction(proxyAddress=proxy_address)
            return httpx.Response(200, json={"transactionID": transaction_id, "state": "STATE_NEW"})

        if path == "/execute":
            body = json.loads(request.content)
            if self.stale_nonce_rejections:
                # Another submission consumed this nonce in the meantime
                self.stale_nonce_rejections -= 1
                self.nonce += 1
                return httpx.Response(400, json={"error": "invalid nonce"})
            if int(body["nonce"]) != self.nonce:
                return httpx.Response(400, json={"error": "invalid nonce"})
            self.nonce += 1
            if self.apply_effects:
                self.chain.apply_safe_transaction(
                    body["proxyWallet"],
                    body["to"],
                    body["data"],
                    int(body["signatureParams"]["operation"]),
                )
            transaction_id = self._new_transaction(proxyAddress=body["proxyWallet"])
            return httpx.Response(200, json={"transactionID": transaction_id, "state": "STATE_NEW"})

        if path == "/transaction":
            if self.transaction_unavailable:
                return httpx.Response(503, text="service unavailable")
            record = self.transactions.get(params["id"])
            if record is None:
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{**record, "state": self.final_state}])

        return httpx.Response(404, text="not found")


@pytest.fixture
def signer() -> LocalAccountSigner:
    """Owner signer backed by the deterministic test key."""
    return LocalAccountSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def wallet(signer: LocalAccountSigner) -> WalletIdentity:
    """Counterfactual Safe of the test owner."""
    return WalletIdentity.create(signer.address)


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fake_relay(fake_chain: FakeChain) -> FakeRelay:
    return FakeRelay(fake_chain)


@pytest_asyncio.fixture
async def relayer(fake_relay: FakeRelay):
    """RelayerClient talking to the FakeRelay, without builder credentials."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_relay.handler))
    try:
        yield RelayerClient(
            host=RELAYER_HOST,
            api_key="",
            api_secret="",
            api_passphrase="",
            timeout=5.0,
            max_retries=1,
            client=client,
        )
    finally:
        await client.aclose()


@pytest.fixture
def poller() -> TransactionPoller:
    return TransactionPoller(interval=3.0, max_polls=5, sleep=no_sleep)


@pytest.fixture
def context(relayer: RelayerClient, fake_chain: FakeChain, poller: TransactionPoller) -> RelayContext:
    """RelayContext wired to the fakes."""
    return RelayContext(
        relayer=relayer,
        chain=fake_chain,
        poller=poller,
        chain_id=137,
        factory_address=SAFE_FACTORY_ADDRESS,
        init_code_hash=SAFE_INIT_CODE_HASH,
        multisend_address=SAFE_MULTISEND_ADDRESS,
        max_nonce_retries=2,
    )
