"""
Swap router client (Jupiter aggregator API).

Two calls per trade:
    1. GET  /quote  - best route for SOL -> token at the given slippage
    2. POST /swap   - unsigned versioned transaction for that route

The returned transaction is unsigned; the wallet signs it.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional

import aiohttp

from .gas import GasSettings

logger = logging.getLogger(__name__)

DEFAULT_JUPITER_API_URL = "https://quote-api.jup.ag/v6"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000


class RouterError(Exception):
    """Quote or swap-build failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def sol_to_lamports(amount_sol: Decimal) -> int:
    """
    Convert SOL to lamports, truncating sub-lamport dust.

    Examples:
        >>> sol_to_lamports(Decimal("0.1"))
        100000000
    """
    return int(Decimal(amount_sol) * LAMPORTS_PER_SOL)


@dataclass(frozen=True)
class Route:
    """A quoted route. ``raw`` is passed back to the router verbatim."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    slippage_bps: int
    price_impact_pct: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_quote(cls, quote: Mapping[str, Any]) -> "Route":
        try:
            return cls(
                input_mint=quote["inputMint"],
                output_mint=quote["outputMint"],
                in_amount=int(quote["inAmount"]),
                out_amount=int(quote["outAmount"]),
                slippage_bps=int(quote.get("slippageBps", 0)),
                price_impact_pct=quote.get("priceImpactPct"),
                raw=dict(quote),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RouterError(f"Malformed quote response: {e}") from e


class JupiterRouter:
    """
    Async Jupiter API client.

    Usage:
        async with JupiterRouter() as router:
            route = await router.quote(WRAPPED_SOL_MINT, mint, amount=100_000_000, slippage_bps=100)
            tx_bytes = await router.build_swap_transaction(route, wallet.public_key, gas)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_JUPITER_API_URL,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self) -> "JupiterRouter":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Single request, no retries. A stale quote is worse than no quote.

        Raises:
            RouterError: On HTTP errors, timeouts and connection failures
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        url = f"{self._base_url}{path}"
        try:
            async with self._session.request(method, url, **kwargs) as response:
                if response.status != 200:
                    text = await response.text()
                    raise RouterError(
                        f"{method} {path} failed: {response.status} - {text}",
                        status_code=response.status,
                    )
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise RouterError(f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise RouterError(f"{method} {path} failed: {e}") from e

    async def quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> Route:
        """
        Request a route.

        Args:
            input_mint: Mint being spent (wrapped SOL for buys)
            output_mint: Mint being bought
            amount: Input amount in base units (lamports for SOL)
            slippage_bps: Slippage tolerance in basis points

        Raises:
            RouterError: If no route is available
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }
        data = await self._request("GET", "/quote", params=params)

        if not isinstance(data, dict) or data.get("error"):
            reason = data.get("error") if isinstance(data, dict) else data
            raise RouterError(f"No route for {input_mint} -> {output_mint}: {reason}")

        route = Route.from_quote(data)
        logger.info(
            f"Quote {route.in_amount} {input_mint[:8]}... -> {route.out_amount} {output_mint[:8]}... "
            f"(impact {route.price_impact_pct}%)"
        )
        return route

    async def build_swap_transaction(
        self,
        route: Route,
        user_public_key: str,
        gas: GasSettings,
    ) -> bytes:
        """
        Build the unsigned swap transaction for a route.

        The compute-unit price comes from ``gas``; the compute-unit limit is
        pinned by the wallet when it signs.

        Returns:
            Serialized VersionedTransaction bytes
        """
        payload = {
            "quoteResponse": dict(route.raw),
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": False,
            "computeUnitPriceMicroLamports": gas.priority_fee_per_unit,
        }
        data = await self._request("POST", "/swap", json=payload)

        encoded = data.get("swapTransaction") if isinstance(data, dict) else None
        if not encoded:
            raise RouterError(f"Swap response missing transaction: {data!r}")

        try:
            return base64.b64decode(encoded)
        except (binascii.Error, ValueError) as e:
            raise RouterError(f"Swap transaction is not valid base64: {e}") from e
