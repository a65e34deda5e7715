"""
Solana JSON-RPC client.

Covers the calls the trade path needs:
    - getRecentPrioritizationFees   (fee selection)
    - sendTransaction                (broadcast)
    - getSignatureStatuses           (confirmation polling)

Transport errors (timeouts, 5xx, connection resets) are retried with
exponential backoff. A JSON-RPC error object is never retried: it is the
node's answer, and resending a transaction is the caller's decision.
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import aiohttp

logger = logging.getLogger(__name__)

CONFIRMED_STATUSES = frozenset({"confirmed", "finalized"})


class RpcError(Exception):
    """JSON-RPC or transport error."""

    def __init__(self, message: str, code: Optional[int] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class ConfirmationTimeout(RpcError):
    """The transaction did not reach the target commitment in time."""
    pass


@dataclass(frozen=True)
class SignatureStatus:
    """Status of one transaction signature."""

    signature: str
    slot: Optional[int]
    confirmation_status: Optional[str]
    err: Optional[Any] = None

    @property
    def is_confirmed(self) -> bool:
        return self.confirmation_status in CONFIRMED_STATUSES

    @property
    def failed(self) -> bool:
        return self.err is not None


class SolanaRpcClient:
    """
    Async JSON-RPC client over aiohttp.

    Usage:
        async with SolanaRpcClient("https://api.mainnet-beta.solana.com") as rpc:
            fees = await rpc.get_recent_prioritization_fees()
            signature = await rpc.send_transaction(signed_bytes)
            status = await rpc.confirm_transaction(signature, timeout=60)
    """

    def __init__(
        self,
        endpoint: str,
        session: Optional[aiohttp.ClientSession] = None,
        commitment: str = "confirmed",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ):
        """
        Initialize the client.

        Args:
            endpoint: HTTP(S) RPC endpoint
            session: Optional aiohttp session (created if not provided)
            commitment: Commitment used for confirmation and preflight
            timeout: Per-request timeout in seconds
            max_retries: Attempts for transport failures
            retry_delay: Base delay between retries (exponential backoff)
        """
        self._endpoint = endpoint
        self._session = session
        self._owns_session = session is None
        self._commitment = commitment
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def commitment(self) -> str:
        return self._commitment

    async def __aenter__(self) -> "SolanaRpcClient":
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

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """
        Make a JSON-RPC call and return its ``result``.

        Raises:
            RpcError: On a JSON-RPC error or when retries are exhausted
            asyncio.CancelledError: When task is cancelled (re-raised)
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                async with self._session.post(self._endpoint, json=payload) as response:
                    if response.status == 429 or response.status >= 500:
                        text = await response.text()
                        raise RpcError(
                            f"{method} HTTP {response.status}: {text}",
                            status_code=response.status,
                        )

                    if response.status >= 400:
                        text = await response.text()
                        raise RpcError(f"{method} HTTP {response.status}: {text}", status_code=response.status)

                    body = await response.json(content_type=None)

            except RpcError as e:
                if e.status_code is None or (e.status_code < 500 and e.status_code != 429):
                    raise
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"RPC {method} failed ({e.status_code}), retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = e
                continue

            except asyncio.TimeoutError:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"RPC {method} timeout, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = RpcError(f"{method} timed out")
                continue

            except asyncio.CancelledError:
                logger.debug(f"RPC {method} cancelled")
                raise

            except aiohttp.ClientError as e:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"RPC {method} failed: {e}, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = RpcError(f"{method} failed: {e}")
                continue

            except ValueError as e:
                raise RpcError(f"{method} returned a non-JSON body: {e}") from e

            if not isinstance(body, dict):
                raise RpcError(f"Invalid RPC response for {method}: {body!r}")

            error = body.get("error")
            if error:
                code = error.get("code") if isinstance(error, dict) else None
                message = error.get("message", error) if isinstance(error, dict) else error
                raise RpcError(f"{method} error: {message}", code=code)

            return body.get("result")

        raise last_error or RpcError(f"{method} failed after retries")

    async def get_recent_prioritization_fees(self, accounts: Sequence[str] = ()) -> List[int]:
        """Recent per-slot prioritization fees (micro-lamports per compute unit)."""
        result = await self.call("getRecentPrioritizationFees", [list(accounts)])
        if not isinstance(result, list):
            raise RpcError(f"Unexpected getRecentPrioritizationFees response: {result!r}")

        fees: List[int] = []
        for item in result:
            if not isinstance(item, dict):
                continue
            try:
                fees.append(int(item.get("prioritizationFee", 0)))
            except (TypeError, ValueError):
                continue
        return fees

    async def send_transaction(self, raw_transaction: bytes, skip_preflight: bool = False) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Transaction signature (base58)

        Raises:
            RpcError: If the node rejects the transaction
        """
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        result = await self.call(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self._commitment,
                    # Retries are ours to decide, not the node's
                    "maxRetries": 0,
                },
            ],
        )
        if not isinstance(result, str) or not result:
            raise RpcError(f"sendTransaction returned no signature: {result!r}")
        return result

    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        result = await self.call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        if result is None:
            return None
        if not isinstance(result, dict):
            raise RpcError(f"Malformed getSignatureStatuses result: {result!r}")
        values = result.get("value") or []
        if not isinstance(values, list):
            raise RpcError(f"Malformed getSignatureStatuses value: {values!r}")
        if not values or values[0] is None:
            return None
        status = values[0]
        if not isinstance(status, dict):
            raise RpcError(f"Malformed signature status: {status!r}")
        return SignatureStatus(
            signature=signature,
            slot=status.get("slot"),
            confirmation_status=status.get("confirmationStatus"),
            err=status.get("err"),
        )

    async def confirm_transaction(
        self,
        signature: str,
        timeout: float = 60.0,
        poll_interval: float = 1.0,
    ) -> SignatureStatus:
        """
        Poll until the signature is confirmed or failed.

        Returns:
            The final SignatureStatus (check ``failed`` for an on-chain error)

        Raises:
            ConfirmationTimeout: If not confirmed within ``timeout`` seconds
        """
        deadline = time.monotonic() + timeout

        while True:
            try:
                status = await self.get_signature_status(signature)
            except RpcError as e:
                logger.debug(f"Status poll for {signature} failed: {e}")
                status = None

            if status is not None and (status.failed or status.is_confirmed):
                return status

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeout(f"Transaction {signature} not confirmed after {timeout}s")
            await asyncio.sleep(min(poll_interval, remaining))
