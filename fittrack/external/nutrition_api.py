# fittrack/external/nutrition_api.py
"""
Client for the API-Ninjas nutrition endpoint.

A free-text food description ("2 eggs and toast") comes back as a list of
matched foods. FitTrack logs one item per description, so the matches are
summed into a single MealItem carrying the user's original text.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from cachetools import TTLCache
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from fittrack.core.error_handler_global import NutritionServiceError
from fittrack.core.records import MealItem

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.api-ninjas.com/v1/nutrition"

# API-Ninjas field -> MealItem field
FIELD_MAP = {
    "calories": "calories",
    "protein_g": "protein_g",
    "carbohydrates_total_g": "carbs_g",
    "fat_total_g": "fat_g",
    "serving_size_g": "serving_size_g",
}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


def _as_number(value: Any) -> float:
    # Free-tier keys get "Only available for premium subscribers." in some fields.
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class NutritionClient:
    """
    Looks up nutrition facts for a food description.
    """
    def __init__(self, api_key: Optional[str], base_url: str = DEFAULT_BASE_URL,
                 timeout_seconds: float = 5.0, retry_attempts: int = 2,
                 cache_ttl_seconds: int = 3600, cache_size: int = 512,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            api_key: API-Ninjas key, sent as the X-Api-Key header.
            base_url: The nutrition endpoint.
            timeout_seconds: Per-request timeout.
            retry_attempts: Total attempts for transient failures (>= 1).
            cache_ttl_seconds: How long a found item is reused for the same description.
            cache_size: Maximum number of cached descriptions.
            transport: Optional httpx transport, for tests.
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, int(retry_attempts))
        self._transport = transport
        self._cache: TTLCache = TTLCache(maxsize=cache_size, ttl=cache_ttl_seconds)
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def lookup(self, description: str) -> Optional[MealItem]:
        """
        Returns the summed nutrition facts for the description, or None if the
        service recognised no food in it.

        Raises:
            NutritionServiceError: The service is not configured, unreachable,
                timed out, or answered with an error.
        """
        query = description.strip()
        cache_key = query.lower()
        if not query:
            return None
        if cache_key in self._cache:
            return self._cache[cache_key]
        if not self.api_key:
            raise NutritionServiceError("Nutrition API service is not configured on the server.")

        await self.initialize()
        try:
            matches = await self._fetch(query)
            if not matches:
                logger.info(f"No nutrition data found for '{query}'")
                return None
            item = self._combine(query, matches)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning(f"Nutrition lookup failed for '{query}': {e}")
            raise NutritionServiceError("Failed to fetch nutrition data.") from e

        self._cache[cache_key] = item
        return item

    async def _fetch(self, query: str) -> List[Dict[str, Any]]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                response = await self._client.get(
                    self.base_url,
                    params={"query": query},
                    headers={"X-Api-Key": self.api_key},
                )
                response.raise_for_status()
                payload = response.json()
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected nutrition payload of type {type(payload).__name__}")
        for match in payload:
            if not isinstance(match, dict):
                raise ValueError(f"Unexpected nutrition match of type {type(match).__name__}")
        return payload

    @staticmethod
    def _combine(description: str, matches: List[Dict[str, Any]]) -> MealItem:
        totals = {field: 0.0 for field in FIELD_MAP.values()}
        for match in matches:
            for source, target in FIELD_MAP.items():
                totals[target] += _as_number(match.get(source))
        return MealItem(description=description, **{k: round(v, 1) for k, v in totals.items()})
