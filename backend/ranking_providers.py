import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

import httpx
from pydantic import BaseModel, ValidationError

import config
from request_coalescing import InFlightRequests
from schemas import (
    FFXIVCollectCharacter,
    LalachievementsCharacter,
    RankingSource,
    RankRecord,
)

logger = logging.getLogger(__name__)


class ProviderCache:
    """In-memory TTL cache of ranking records keyed by Lodestone ID."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, RankRecord]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, lodestone_id: str) -> RankRecord | None:
        entry = self._entries.get(lodestone_id)
        if entry is None:
            return None
        timestamp, record = entry
        if self._clock() - timestamp < self.ttl_seconds:
            return record
        return None  # Stale entries are refetched, never served.

    def set(self, lodestone_id: str, record: RankRecord) -> None:
        self._entries[lodestone_id] = (self._clock(), record)

    def clear(self) -> None:
        self._entries.clear()


class RankingProvider(ABC):
    """
    Fetches ranking records for a Lodestone ID from one external source.

    Lookups go cache -> in-flight request -> upstream fetch. Only successful
    fetches are cached; 404s and transient errors return None and are retried
    on the next call.
    """

    source: RankingSource
    record_model: type[BaseModel]

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        cache_seconds: float = config.PROVIDER_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self.cache = ProviderCache(cache_seconds, clock)
        self._active_requests = InFlightRequests()

    @abstractmethod
    def character_url(self, lodestone_id: str) -> str:
        ...

    async def get_character_data(self, lodestone_id: str) -> RankRecord | None:
        if not lodestone_id or not lodestone_id.strip():
            logger.warning(f"{self.source.value}: Lodestone ID cannot be empty.")
            return None

        if (cached := self.cache.get(lodestone_id)) is not None:
            return cached

        return await self._active_requests.run(
            lodestone_id, lambda: self._fetch_and_cache(lodestone_id)
        )

    def clear_cache(self) -> None:
        self.cache.clear()

    async def _fetch_and_cache(self, lodestone_id: str) -> RankRecord | None:
        record = await self._fetch(lodestone_id)
        if record is not None:
            self.cache.set(lodestone_id, record)
        return record

    async def _fetch(self, lodestone_id: str) -> RankRecord | None:
        url = self.character_url(lodestone_id)
        try:
            response = await self._client.get(url)
            if response.status_code == 404:
                logger.debug(f"{self.source.value}: no data found for Lodestone ID {lodestone_id}.")
                return None
            response.raise_for_status()
            return self.record_model.model_validate(response.json())
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            logger.warning(f"{self.source.value}: network error for Lodestone ID {lodestone_id}: {e!r}")
            return None
        except (ValidationError, ValueError) as e:
            logger.error(f"{self.source.value}: error parsing data for Lodestone ID {lodestone_id}: {e}")
            return None


class FFXIVCollectService(RankingProvider):
    source = RankingSource.FFXIV_COLLECT
    record_model = FFXIVCollectCharacter

    def __init__(self, client: httpx.AsyncClient, base_url: str = config.FFXIVCOLLECT_API_URL, **kwargs):
        super().__init__(client, base_url, **kwargs)

    def character_url(self, lodestone_id: str) -> str:
        return f"{self._base_url}/characters/{lodestone_id}"


class LalachievementsService(RankingProvider):
    source = RankingSource.LALACHIEVEMENTS
    record_model = LalachievementsCharacter

    def __init__(self, client: httpx.AsyncClient, base_url: str = config.LALACHIEVEMENTS_API_URL, **kwargs):
        super().__init__(client, base_url, **kwargs)

    def character_url(self, lodestone_id: str) -> str:
        return f"{self._base_url}/charrealtime/{lodestone_id}"


def build_providers(client: httpx.AsyncClient, **kwargs) -> dict[RankingSource, RankingProvider]:
    """Creates one provider per ranking source, sharing the HTTP client."""
    return {
        RankingSource.FFXIV_COLLECT: FFXIVCollectService(client, **kwargs),
        RankingSource.LALACHIEVEMENTS: LalachievementsService(client, **kwargs),
    }
