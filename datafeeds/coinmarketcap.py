"""
CoinMarketCap price source.

Endpoints:
- /v2/cryptocurrency/quotes/latest   → USD quotes for a list of slugs
- /v3/fear-and-greed/historical      → Fear & Greed index history

Total failures (transport, HTTP status, API status, unparseable body) raise
FetchError. Slugs the API does not return are simply absent from the snapshot.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx

from core.errors import FetchError
from core.helpers.validation import finite_decimal
from core.logging_utils import get_logger
from core.models import FearGreedPoint, MarketFields, normalize_identifier

logger = get_logger(__name__)

QUOTES_PATH = "/v2/cryptocurrency/quotes/latest"
FEAR_GREED_PATH = "/v3/fear-and-greed/historical"
CONVERT = "USD"


def _match_name(value: str) -> str:
    """Loose name key: case-insensitive, dashes and underscores as spaces."""
    return normalize_identifier(value).replace("-", " ").replace("_", " ")


def _iter_entries(data: Any) -> Iterable[dict]:
    """Quote data is keyed by id; each value is an entry or a list of entries."""
    if isinstance(data, dict):
        values = data.values()
    elif isinstance(data, list):
        values = data
    else:
        return
    for value in values:
        if isinstance(value, list):
            yield from (v for v in value if isinstance(v, dict))
        elif isinstance(value, dict):
            yield value


def parse_market_fields(entry: dict) -> Optional[MarketFields]:
    """Convert one API entry into MarketFields. None when it has no usable price."""
    quote = (entry.get("quote") or {}).get(CONVERT) or {}
    price = finite_decimal(quote.get("price"))
    if price is None:
        return None
    return MarketFields(
        price=price,
        volume_24h=finite_decimal(quote.get("volume_24h")),
        volume_change_24h=finite_decimal(quote.get("volume_change_24h")),
        percent_change_1h=finite_decimal(quote.get("percent_change_1h")),
        percent_change_24h=finite_decimal(quote.get("percent_change_24h")),
        percent_change_7d=finite_decimal(quote.get("percent_change_7d")),
        percent_change_30d=finite_decimal(quote.get("percent_change_30d")),
        percent_change_90d=finite_decimal(quote.get("percent_change_90d")),
        market_cap=finite_decimal(quote.get("market_cap")),
        name=str(entry.get("name") or ""),
        symbol=str(entry.get("symbol") or ""),
    )


def parse_quotes(payload: dict, identifiers: Iterable[str]) -> Dict[str, MarketFields]:
    """Map requested identifiers to market fields.

    Entries are matched by slug first, then by loose name.
    """
    by_slug: Dict[str, dict] = {}
    by_name: Dict[str, dict] = {}
    for entry in _iter_entries(payload.get("data")):
        slug = normalize_identifier(str(entry.get("slug") or ""))
        if slug:
            by_slug.setdefault(slug, entry)
        name = _match_name(str(entry.get("name") or ""))
        if name:
            by_name.setdefault(name, entry)

    snapshot: Dict[str, MarketFields] = {}
    for identifier in identifiers:
        entry = by_slug.get(identifier) or by_name.get(_match_name(identifier))
        if entry is None:
            continue
        fields = parse_market_fields(entry)
        if fields is None:
            logger.debug("[CMC] %s returned without a USD price", identifier)
            continue
        snapshot[identifier] = fields
    return snapshot


def parse_fear_greed(payload: dict) -> List[FearGreedPoint]:
    """Newest-first Fear & Greed points; malformed points are skipped."""
    points: List[FearGreedPoint] = []
    for item in payload.get("data") or []:
        try:
            ts = datetime.fromtimestamp(int(item["timestamp"]), tz=timezone.utc)
            points.append(FearGreedPoint(
                timestamp=ts,
                value=int(item["value"]),
                classification=str(item.get("value_classification") or ""),
            ))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("[CMC] Skipping malformed fear & greed point: %s", e)
    return points


def _check_status(payload: dict) -> None:
    status = payload.get("status") or {}
    code = status.get("error_code", 0)
    if str(code) not in ("0", "None", ""):
        message = status.get("error_message") or f"error code {code}"
        raise FetchError(f"API Error: {message}")


class CoinMarketCapClient:
    """Async CoinMarketCap client."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://pro-api.coinmarketcap.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"X-CMC_PRO_API_KEY": self.api_key, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_json(self, path: str, params: dict) -> dict:
        try:
            client = await self._get_client()
            resp = await client.get(path, params=params)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {path} failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise FetchError(
                f"Failed to parse API response (HTTP {resp.status_code})",
                status_code=resp.status_code,
            ) from e
        if not isinstance(payload, dict):
            raise FetchError("Failed to parse API response: not an object", status_code=resp.status_code)

        # API errors arrive with a status block even on 4xx
        _check_status(payload)
        if resp.status_code >= 400:
            raise FetchError(f"HTTP {resp.status_code} from {path}", status_code=resp.status_code)
        return payload

    async def fetch_quotes(self, identifiers: Iterable[str]) -> Dict[str, MarketFields]:
        """Fetch USD quotes for the given slugs."""
        slugs = [normalize_identifier(i) for i in identifiers]
        slugs = [s for s in dict.fromkeys(slugs) if s]
        if not slugs:
            return {}
        payload = await self._get_json(QUOTES_PATH, {"slug": ",".join(slugs), "convert": CONVERT})
        snapshot = parse_quotes(payload, slugs)
        logger.debug("[CMC] Quotes for %d/%d tokens", len(snapshot), len(slugs))
        return snapshot

    async def fetch_fear_greed(self, limit: str | int = 30) -> List[FearGreedPoint]:
        """Fetch Fear & Greed history, newest first."""
        logger.info("[CMC] Fetching fear & greed history")
        payload = await self._get_json(FEAR_GREED_PATH, {"limit": str(limit)})
        points = parse_fear_greed(payload)
        if points:
            latest = points[0]
            logger.info(
                "[CMC] Fear & greed latest %s = %d (%s), %d points",
                latest.timestamp.strftime("%Y-%m-%d"), latest.value, latest.classification, len(points),
            )
        return points
