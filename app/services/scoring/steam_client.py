"""
Steam storefront telemetry client.

Two endpoints per game:
- Review summary (store API): primary source. 404/403 means the game is
  delisted; 429 is a rate limit; 5xx and network errors are transient.
- Current players (Web API): secondary. Any non-200 other than 429 reads
  as 0 players.

Usage:
    async with SteamClient() as client:
        telemetry = await client.fetch_telemetry("1145360")
"""
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from app.core.config import settings
from app.core.exceptions import Delisted, RateLimited, UpstreamUnavailable
from app.core.logging import get_logger
from app.core.metrics import record_steam_request

logger = get_logger(__name__)

REVIEWS_PATH = "/appreviews/{app_id}"
CURRENT_PLAYERS_PATH = "/ISteamUserStats/GetNumberOfCurrentPlayers/v1/"


@dataclass(frozen=True)
class SteamTelemetry:
    reviews_total: int
    reviews_positive: int
    ccu: int


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After header in seconds (HTTP-date values are ignored)."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class SteamClient:
    """Async client for the Steam review and player-count endpoints."""

    def __init__(
        self,
        store_base_url: Optional[str] = None,
        api_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            store_base_url: Store API root (review summaries)
            api_base_url: Web API root (current players)
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.store_base_url = (store_base_url or settings.STEAM_STORE_BASE_URL).rstrip("/")
        self.api_base_url = (api_base_url or settings.STEAM_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.STEAM_TIMEOUT
        self.user_agent = user_agent or settings.STEAM_USER_AGENT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SteamClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def fetch_reviews(self, app_id: str) -> Tuple[int, int]:
        """
        Review totals for a game.

        Returns:
            (total reviews, positive reviews)

        Raises:
            Delisted: 404 or 403
            RateLimited: 429, with the server's Retry-After
            UpstreamUnavailable: 5xx, unexpected status, bad body or network error
        """
        client = await self._get_client()
        url = self.store_base_url + REVIEWS_PATH.format(app_id=app_id)
        params = {"json": 1, "num_per_page": 0, "purchase_type": "all", "language": "all"}
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            record_steam_request("reviews", "unavailable")
            raise UpstreamUnavailable(f"Review fetch for {app_id} failed: {exc}") from exc

        if response.status_code in (403, 404):
            record_steam_request("reviews", "delisted")
            raise Delisted(f"App {app_id} returned {response.status_code}")
        if response.status_code == 429:
            record_steam_request("reviews", "rate_limited")
            raise RateLimited(
                f"Rate limited fetching reviews for {app_id}",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if response.status_code != 200:
            record_steam_request("reviews", "unavailable")
            raise UpstreamUnavailable(f"Steam store error {response.status_code} for {app_id}")

        try:
            summary = response.json().get("query_summary") or {}
        except ValueError as exc:
            record_steam_request("reviews", "unavailable")
            raise UpstreamUnavailable(f"Unreadable review summary for {app_id}") from exc

        record_steam_request("reviews")
        return int(summary.get("total_reviews") or 0), int(summary.get("total_positive") or 0)

    async def fetch_current_players(self, app_id: str) -> int:
        """
        Concurrent players right now; 0 when the endpoint has no answer.

        Raises:
            RateLimited: 429
        """
        client = await self._get_client()
        url = self.api_base_url + CURRENT_PLAYERS_PATH
        try:
            response = await client.get(url, params={"appid": app_id})
        except httpx.HTTPError as exc:
            record_steam_request("players", "unavailable")
            logger.warning(f"Player count fetch for {app_id} failed: {exc}")
            return 0

        if response.status_code == 429:
            record_steam_request("players", "rate_limited")
            raise RateLimited(
                f"Rate limited fetching players for {app_id}",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if response.status_code != 200:
            record_steam_request("players", "unavailable")
            return 0

        try:
            payload = response.json().get("response") or {}
        except ValueError:
            record_steam_request("players", "unavailable")
            return 0

        record_steam_request("players")
        return int(payload.get("player_count") or 0)

    async def fetch_telemetry(self, app_id: str) -> SteamTelemetry:
        """Reviews first (authoritative for delisting), then current players."""
        reviews_total, reviews_positive = await self.fetch_reviews(app_id)
        ccu = await self.fetch_current_players(app_id)
        return SteamTelemetry(reviews_total=reviews_total, reviews_positive=reviews_positive, ccu=ccu)
