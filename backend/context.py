import logging

import httpx

import config
from lodestone_client import LodestoneIdFinder
from rank_manager import PlayerRankManager
from ranking_providers import build_providers
from schemas import RankSettings
from worker import RankWorker

logger = logging.getLogger(__name__)


class RankContext:
    """
    Owns every long-lived service: settings, worker, HTTP client, resolver,
    providers and the rank manager. Build one at startup and pass it around.
    """

    def __init__(
        self,
        settings: RankSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_concurrent: int = config.MAX_CONCURRENT_LOOKUPS,
        cache_seconds: float = config.PROVIDER_CACHE_SECONDS,
    ):
        self.settings = settings or RankSettings.from_config()
        self.worker = RankWorker(max_concurrent=max_concurrent)
        self.http_client = httpx.AsyncClient(
            transport=transport,
            timeout=config.HTTP_TIMEOUT_SECONDS,
            headers={"User-Agent": config.USER_AGENT},
            follow_redirects=True,
        )
        self.id_finder = LodestoneIdFinder(self.http_client)
        self.providers = build_providers(self.http_client, cache_seconds=cache_seconds)
        self.rank_manager = PlayerRankManager(
            lambda: self.settings, self.id_finder, self.providers, self.worker
        )

    def start(self) -> "RankContext":
        self.worker.start()
        return self

    def close(self) -> None:
        if self.worker.is_running:
            try:
                self.worker.run(self.http_client.aclose(), timeout=5.0)
            except Exception as e:
                logger.warning(f"Could not close HTTP client cleanly: {e!r}")
            self.worker.stop()
        for provider in self.providers.values():
            provider.clear_cache()

    def __enter__(self) -> "RankContext":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def update_settings(self, **changes) -> RankSettings:
        """
        Validates and swaps in new settings. Cached ranks are kept; call
        rank_manager.refresh_cache() to drop them.
        """
        updated = RankSettings.model_validate({**self.settings.model_dump(), **changes})
        self.settings = updated
        logger.info(f"Settings updated: {', '.join(f'{k}={v}' for k, v in changes.items())}")
        return updated
