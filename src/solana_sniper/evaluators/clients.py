"""
REST client for the risk/analysis services the evaluators consume.

Three independently callable endpoints:
    - token analysis:  liquidity, smart-money activity, holders, rug risk
    - safety check:    risk score 0-100 (lower is safer)
    - credibility:     author credibility score 0-100

Each service may live at a different base URL. Responses are validated
with pydantic so a malformed payload fails the single evaluator that
asked for it, not the aggregation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for analysis service errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ServiceError):
    """Rate limit exceeded."""
    pass


# =============================================================================
# Response models
# =============================================================================


class TokenAnalysis(BaseModel):
    """Token analysis payload."""

    model_config = ConfigDict(populate_by_name=True)

    liquidity: float
    smart_money_activity: float = Field(
        default=0.0,
        validation_alias=AliasChoices("smart_money_activity", "smartMoneyActivity", "smartMoney"),
    )
    holder_count: int = Field(
        validation_alias=AliasChoices("holder_count", "holderCount", "holders"),
    )
    rug_risk_level: str = Field(
        validation_alias=AliasChoices("rug_risk_level", "rugRiskLevel", "rugRisk"),
    )


class SafetyReport(BaseModel):
    """Safety check payload. risk_score is 0 (safe) to 100 (certain rug)."""

    model_config = ConfigDict(populate_by_name=True)

    risk_score: float = Field(
        validation_alias=AliasChoices("risk_score", "riskScore", "score_normalised"),
        ge=0,
        le=100,
    )


class CredibilityReport(BaseModel):
    """Author credibility payload, score 0-100."""

    model_config = ConfigDict(populate_by_name=True)

    score: float = Field(ge=0, le=100)


# =============================================================================
# Client
# =============================================================================


class AnalysisServiceClient:
    """
    Async REST client for the analysis services.

    Features:
        - Rate limiting to avoid API throttling
        - Automatic retries with exponential backoff for 5xx and timeouts
        - 4xx responses fail immediately

    Usage:
        async with AnalysisServiceClient(
            token_analysis_url="https://analysis.example/v1",
            safety_url="https://api.rugcheck.xyz/v1",
            credibility_url="https://cred.example/v1",
        ) as client:
            analysis = await client.token_analysis(mint)
    """

    def __init__(
        self,
        token_analysis_url: str,
        safety_url: str,
        credibility_url: str,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ):
        """
        Initialize the client.

        Args:
            token_analysis_url: Base URL of the token analysis service
            safety_url: Base URL of the safety (rug-check) service
            credibility_url: Base URL of the author credibility service
            api_key: Optional API key sent as X-API-KEY
            session: Optional aiohttp session (created if not provided)
            rate_limit: Maximum requests per second
            timeout: Request timeout in seconds
            max_retries: Number of attempts for failed requests
            retry_delay: Base delay between retries (exponential backoff)
        """
        self._token_analysis_url = token_analysis_url.rstrip("/")
        self._safety_url = safety_url.rstrip("/")
        self._credibility_url = credibility_url.rstrip("/")
        self._api_key = api_key
        self._session = session
        self._owns_session = session is None
        self._rate_limit = rate_limit
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "AnalysisServiceClient":
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

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._rate_lock:
            now = time.time()
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """
        Make an HTTP request with rate limiting and retries.

        Raises:
            ServiceError: On API errors or when retries are exhausted
            RateLimitError: When rate limited on the final attempt
            asyncio.CancelledError: When task is cancelled (re-raised)
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        headers = kwargs.pop("headers", {})
        if self._api_key:
            headers.setdefault("X-API-KEY", self._api_key)

        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                await self._rate_limit_wait()

                async with self._session.request(method, url, headers=headers, **kwargs) as response:
                    if response.status == 429:
                        raise RateLimitError("Rate limit exceeded", status_code=429)

                    if 400 <= response.status < 500:
                        text = await response.text()
                        raise ServiceError(
                            f"API error: {response.status} - {text}",
                            status_code=response.status,
                        )

                    if response.status >= 500:
                        text = await response.text()
                        raise ServiceError(
                            f"Server error: {response.status} - {text}",
                            status_code=response.status,
                        )

                    return await response.json()

            except RateLimitError as e:
                delay = self._retry_delay * (2 ** attempt) * 2
                logger.warning(f"Rate limited, waiting {delay}s before retry")
                await asyncio.sleep(delay)
                last_error = e

            except ServiceError as e:
                if e.status_code and e.status_code >= 500:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Server error {e.status_code}, retry {attempt + 1}/{self._max_retries}"
                    )
                    await asyncio.sleep(delay)
                    last_error = e
                else:
                    raise

            except asyncio.TimeoutError:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"Request timeout, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = ServiceError("Request timed out")

            except asyncio.CancelledError:
                logger.debug("Request cancelled")
                raise

            except aiohttp.ClientError as e:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"Request failed: {e}, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = ServiceError(str(e))

        raise last_error or ServiceError("Request failed after retries")

    @staticmethod
    def _unwrap(payload: Any) -> Any:
        # Several providers wrap the body in {"data": {...}}
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            return payload["data"]
        return payload

    async def token_analysis(self, token_id: str) -> TokenAnalysis:
        """Fetch liquidity / smart-money / holder / rug-risk analysis for a token."""
        payload = await self._request("GET", f"{self._token_analysis_url}/tokens/{token_id}/analysis")
        try:
            return TokenAnalysis.model_validate(self._unwrap(payload))
        except ValidationError as e:
            raise ServiceError(f"Malformed token analysis for {token_id}: {e}") from e

    async def safety_check(self, token_id: str) -> SafetyReport:
        """Fetch the rug-risk summary for a token."""
        payload = await self._request("GET", f"{self._safety_url}/tokens/{token_id}/report/summary")
        try:
            return SafetyReport.model_validate(self._unwrap(payload))
        except ValidationError as e:
            raise ServiceError(f"Malformed safety report for {token_id}: {e}") from e

    async def credibility_check(self, author_id: str) -> CredibilityReport:
        """Fetch the credibility score for a social author."""
        payload = await self._request("GET", f"{self._credibility_url}/authors/{author_id}/credibility")
        try:
            return CredibilityReport.model_validate(self._unwrap(payload))
        except ValidationError as e:
            raise ServiceError(f"Malformed credibility report for {author_id}: {e}") from e
