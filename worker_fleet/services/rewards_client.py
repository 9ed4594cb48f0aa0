"""
Credential & reward HTTP client.

Request/response only: every public call performs one logical request.
Transient transport failures (timeouts, connection errors, 5xx) are retried
transparently with a bounded linear backoff; everything above that
(re-authentication, fixed-delay retry loops) belongs to the caller.

Result contract:
- acquire_credential, fetch_claim_state, trigger_claim return None on failure
- fetch_point_total returns None on failure and raises UnauthorizedError
  when the credential is rejected, so callers can tell "retry later" from
  "re-authenticate"
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import structlog
from aiohttp_socks import ProxyConnectionError, ProxyError, ProxyTimeoutError
from pydantic import ValidationError

from worker_fleet.core.config import DEFAULT_HEADERS, Settings, settings as default_settings
from worker_fleet.core.exceptions import CredentialError, ExternalServiceError, UnauthorizedError
from worker_fleet.core.retry import LinearBackoff, SleepFunc
from worker_fleet.models import ClaimResult, ClaimState, Credential, PointTotal
from .egress import Egress


logger = structlog.get_logger(__name__)


GENERATE_TOKEN_PATH = "/api/v1/auth/generate_token"
REWARD_REALTIME_PATH = "/api/v1/reward_realtime"
CLAIM_DETAILS_PATH = "/api/v1/claim_details"
CLAIM_REWARD_PATH = "/api/v1/claim_reward"


def _is_retryable(error: Exception) -> bool:
    if isinstance(
        error,
        (aiohttp.ClientConnectionError, asyncio.TimeoutError, ProxyConnectionError, ProxyTimeoutError),
    ):
        return True
    if isinstance(error, ExternalServiceError) and not isinstance(error, UnauthorizedError):
        return error.status is not None and error.status >= 500
    return False


class RewardsClient:
    """HTTP client for one account, bound to that account's egress."""

    def __init__(
        self,
        egress: Optional[str] = None,
        config: Optional[Settings] = None,
        account_index: Optional[int] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.config = config or default_settings
        self.egress = Egress.parse(egress)
        self.account_index = account_index
        self.backoff = LinearBackoff(
            retries=self.config.http_max_retries,
            delay=self.config.http_retry_delay,
        )
        self._sleep = sleep or asyncio.sleep
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = logger.bind(service="rewards_client", account=account_index)

    async def __aenter__(self) -> "RewardsClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = self.egress.http_connector() if self.egress else None
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=DEFAULT_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.config.http_timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json_body: Optional[Dict[str, Any]],
    ) -> Any:
        session = self._get_session()
        proxy = self.egress.http_proxy if self.egress else None

        async with session.request(
            method, url, headers=headers, json=json_body, proxy=proxy
        ) as response:
            if response.status == 401:
                raise UnauthorizedError(
                    f"Unauthorized (401) from {url}",
                    details={"url": url},
                )
            if response.status >= 400:
                raise ExternalServiceError(
                    f"HTTP {response.status} from {url}",
                    status=response.status,
                    details={"url": url},
                )
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise ExternalServiceError(
                    f"Invalid JSON from {url}: {e}",
                    status=response.status,
                    details={"url": url},
                )

    async def _request(
        self,
        method: str,
        url: str,
        credential: Optional[Credential] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make a request with transparent transport-level retries.

        Returns the `data` member of the response envelope.

        Raises:
            UnauthorizedError: the remote rejected the bearer credential
            ExternalServiceError: any other failure, after retries
        """
        headers: Dict[str, str] = {}
        if credential is not None:
            headers["Authorization"] = f"Bearer {credential.token}"
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        retry_number = 0
        while True:
            try:
                payload = await self._send(method, url, headers, json_body)
                break
            except (
                aiohttp.ClientError,
                asyncio.TimeoutError,
                ProxyError,
                ProxyConnectionError,
                ProxyTimeoutError,
                ExternalServiceError,
            ) as e:
                retry_number += 1
                if not _is_retryable(e) or not self.backoff.should_retry(retry_number):
                    if isinstance(e, ExternalServiceError):
                        raise
                    raise ExternalServiceError(
                        f"{method} {url} failed: {e!r}",
                        details={"url": url, "attempts": retry_number},
                    ) from e

                delay = self.backoff.delay_for(retry_number)
                self.logger.warning(
                    "Request failed, retrying",
                    method=method,
                    url=url,
                    retry=retry_number,
                    delay=delay,
                    error=str(e) or type(e).__name__,
                )
                await self._sleep(delay)

        if isinstance(payload, dict):
            return payload.get("data")
        return None

    async def acquire_credential(self, address: str) -> Optional[Credential]:
        """Request a session token for `address`. None on any failure."""
        url = f"{self.config.api_endpoint}{GENERATE_TOKEN_PATH}"
        try:
            data = await self._request("POST", url, json_body={"address": address})
            token = data.get("token") if isinstance(data, dict) else None
            if not token:
                raise CredentialError("Token missing from generate_token response")
        except (ExternalServiceError, CredentialError) as e:
            self.logger.error("Error generating token", error=e.message)
            return None

        return Credential(token=str(token))

    async def fetch_point_total(self, credential: Credential) -> Optional[PointTotal]:
        """
        Fetch today's point total.

        Raises:
            UnauthorizedError: the credential is invalid or expired
        """
        url = f"{self.config.rewards_endpoint}{REWARD_REALTIME_PATH}"
        try:
            data = await self._request("GET", url, credential=credential)
        except UnauthorizedError:
            self.logger.error("Unauthorized (401): token invalid/expired")
            raise
        except ExternalServiceError as e:
            self.logger.error("Error fetching user info", error=e.message)
            return None

        points = PointTotal.from_payload(data)
        self.logger.info(
            f"Account {self.account_index} has gained points today: {points.total_heartbeats}"
        )
        return points

    async def fetch_claim_state(self, credential: Credential) -> Optional[ClaimState]:
        """Fetch daily claim eligibility. None on any failure."""
        url = f"{self.config.rewards_endpoint}{CLAIM_DETAILS_PATH}"
        try:
            data = await self._request("GET", url, credential=credential)
        except ExternalServiceError as e:
            self.logger.error("Error fetching claim info", error=e.message)
            return None

        if not isinstance(data, dict):
            self.logger.error("Unexpected claim details payload", payload=data)
            return None

        try:
            state = ClaimState.model_validate(data)
        except ValidationError as e:
            self.logger.error("Invalid claim details payload", error=str(e))
            return None

        self.logger.info(
            f"Details for Account {self.account_index}",
            tier=state.tier,
            daily_point=state.daily_point,
            claimed=state.claimed,
            next_claim=state.next_claim,
        )
        return state

    async def trigger_claim(self, credential: Credential) -> Optional[ClaimResult]:
        """Claim the daily reward. None on any failure."""
        url = f"{self.config.rewards_endpoint}{CLAIM_REWARD_PATH}"
        try:
            data = await self._request("GET", url, credential=credential)
        except ExternalServiceError as e:
            self.logger.error("Error claiming daily reward", error=e.message)
            return None

        self.logger.info(
            f"Daily rewards claimed for Account {self.account_index}",
            result=data,
        )
        return ClaimResult(payload=data)
