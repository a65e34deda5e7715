"""
Execution layer test fixtures.

Router, RPC and wallet are mocked for coordinator tests; HTTP clients are
driven through a fake aiohttp session.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from solana_sniper.execution import (
    FeePolicy,
    GasSettings,
    Route,
    SignatureStatus,
    TradeConfig,
    TradeCoordinator,
)


TOKEN_ID = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
TX_SIGNATURE = "5VERYrealLookingSignature1111111111111111111111111111111111111111"


# =============================================================================
# HTTP fakes
# =============================================================================


class DummyResponse:
    """Minimal aiohttp response usable as an async context manager."""

    def __init__(self, status=200, data=None, text=""):
        self.status = status
        self._data = data
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type="application/json"):
        return self._data

    async def text(self):
        return self._text


class FakeSession:
    """Records requests and replays queued responses (or raises queued errors)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)

    async def close(self):
        pass


@pytest.fixture
def fake_session_cls():
    return FakeSession


@pytest.fixture
def response_cls():
    return DummyResponse


# =============================================================================
# Transactions
# =============================================================================


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def make_router_tx(keypair):
    """Unsigned v0 transaction shaped like a router response."""
    def _make(payer=None, with_budget=True, limit=1_400_000, price=1):
        payer = payer or keypair.pubkey()
        instructions = []
        if with_budget:
            instructions += [set_compute_unit_limit(limit), set_compute_unit_price(price)]
        instructions.append(
            transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1))
        )
        message = MessageV0.try_compile(payer, instructions, [], Hash.new_unique())
        return VersionedTransaction.populate(message, [Signature.default()])
    return _make


# =============================================================================
# Coordinator
# =============================================================================


@pytest.fixture
def route():
    return Route(
        input_mint="So11111111111111111111111111111111111111112",
        output_mint=TOKEN_ID,
        in_amount=100_000_000,
        out_amount=5_000_000,
        slippage_bps=100,
        raw={"inAmount": "100000000"},
    )


@pytest.fixture
def mock_router(route):
    router = MagicMock()
    router.quote = AsyncMock(return_value=route)
    router.build_swap_transaction = AsyncMock(return_value=b"unsigned")
    return router


@pytest.fixture
def mock_wallet():
    wallet = MagicMock()
    wallet.public_key = "WalletPubkey1111111111111111111111111111111"
    wallet.sign = MagicMock(return_value=b"signed")
    return wallet


@pytest.fixture
def mock_rpc():
    rpc = MagicMock()
    rpc.get_recent_prioritization_fees = AsyncMock(return_value=[0, 2_000, 4_000, 6_000])
    rpc.send_transaction = AsyncMock(return_value=TX_SIGNATURE)
    rpc.confirm_transaction = AsyncMock(
        return_value=SignatureStatus(signature=TX_SIGNATURE, slot=1, confirmation_status="confirmed")
    )
    return rpc


@pytest.fixture
def fee_policy(mock_rpc):
    return FeePolicy(fee_source=mock_rpc, compute_unit_limit=200_000, min_priority_fee=1_000)


@pytest.fixture
def mock_notifier():
    return MagicMock()


@pytest.fixture
def coordinator(mock_router, mock_wallet, mock_rpc, fee_policy, mock_notifier):
    return TradeCoordinator(
        router=mock_router,
        wallet=mock_wallet,
        rpc=mock_rpc,
        fee_policy=fee_policy,
        config=TradeConfig(confirm_timeout_seconds=1.0, confirm_poll_interval=0.01),
        notifier=mock_notifier,
        clock=lambda: 1_700_000_000.0,
    )


@pytest.fixture
def sticky_gas():
    return GasSettings(compute_unit_limit=250_000, priority_fee_per_unit=7_500)
