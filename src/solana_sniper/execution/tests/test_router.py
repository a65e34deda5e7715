"""
Tests for the swap router client.
"""
import base64
import pytest
from decimal import Decimal

from solana_sniper.execution import GasSettings, JupiterRouter, Route, RouterError, sol_to_lamports


QUOTE = {
    "inputMint": "So11111111111111111111111111111111111111112",
    "outputMint": "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr",
    "inAmount": "100000000",
    "outAmount": "123456789",
    "slippageBps": 100,
    "priceImpactPct": "0.12",
    "routePlan": [],
}


class TestQuote:
    """Tests for quote requests."""

    @pytest.mark.asyncio
    async def test_quote_parses_route(self, fake_session_cls, response_cls):
        session = fake_session_cls(response_cls(200, QUOTE))
        router = JupiterRouter("https://router.test/v6/", session=session)

        route = await router.quote(QUOTE["inputMint"], QUOTE["outputMint"], 100_000_000, 100)

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("GET", "https://router.test/v6/quote")
        assert kwargs["params"]["amount"] == "100000000"
        assert route.out_amount == 123456789
        assert route.raw["routePlan"] == []

    @pytest.mark.asyncio
    async def test_no_route(self, fake_session_cls, response_cls):
        session = fake_session_cls(response_cls(200, {"error": "Could not find any route"}))
        router = JupiterRouter(session=session)

        with pytest.raises(RouterError):
            await router.quote("a", "b", 1, 100)

    @pytest.mark.asyncio
    async def test_http_error(self, fake_session_cls, response_cls):
        session = fake_session_cls(response_cls(400, text="invalid mint"))
        router = JupiterRouter(session=session)

        with pytest.raises(RouterError) as exc_info:
            await router.quote("a", "b", 1, 100)

        assert exc_info.value.status_code == 400

    def test_malformed_quote(self):
        with pytest.raises(RouterError):
            Route.from_quote({"inputMint": "a"})


class TestSwapTransaction:
    """Tests for building the unsigned swap."""

    @pytest.mark.asyncio
    async def test_decodes_transaction(self, fake_session_cls, response_cls):
        session = fake_session_cls(response_cls(200, {"swapTransaction": base64.b64encode(b"tx-bytes").decode()}))
        router = JupiterRouter(session=session)
        gas = GasSettings(compute_unit_limit=200_000, priority_fee_per_unit=4_000)

        raw = await router.build_swap_transaction(Route.from_quote(QUOTE), "Payer111", gas)

        payload = session.calls[0][2]["json"]
        assert raw == b"tx-bytes"
        assert payload["userPublicKey"] == "Payer111"
        assert payload["computeUnitPriceMicroLamports"] == 4_000
        assert payload["quoteResponse"] == QUOTE

    @pytest.mark.asyncio
    async def test_missing_transaction(self, fake_session_cls, response_cls):
        router = JupiterRouter(session=fake_session_cls(response_cls(200, {})))
        gas = GasSettings(compute_unit_limit=200_000, priority_fee_per_unit=4_000)

        with pytest.raises(RouterError):
            await router.build_swap_transaction(Route.from_quote(QUOTE), "Payer111", gas)


def test_sol_to_lamports():
    assert sol_to_lamports(Decimal("0.1")) == 100_000_000
    assert sol_to_lamports(Decimal("0.0000000019")) == 1
