import logging
import threading
from typing import Callable, Iterable, Protocol

import key_service
import rank_formatter
from lodestone_client import LodestoneIdFinder
from rank_formatter import ColorTier, RankOutcome, RankStatus
from ranking_providers import RankingProvider
from schemas import RankingSource, RankMetric, RankSettings
from worker import RankWorker

logger = logging.getLogger(__name__)


class DisplayTarget(Protocol):
    """What the overlay must expose for each nameplate it wants ranked."""

    def player_details(self) -> tuple[str, str] | None:
        """Returns (character name, home world), or None for non-player entities."""
        ...

    def set_rank_text(self, text: str, color: ColorTier | None) -> None:
        ...


class PlayerRankManager:
    """
    Maps players to formatted rank text, one entry per rank metric.

    process_refresh() is called by the display loop on every nameplate update.
    Cached text is written straight back to the targets; everything else is
    resolved on the worker (Lodestone ID, then the selected ranking provider)
    and shows up on a later refresh.
    """

    def __init__(
        self,
        get_settings: Callable[[], RankSettings],
        id_finder: LodestoneIdFinder,
        providers: dict[RankingSource, RankingProvider],
        worker: RankWorker,
    ):
        self._get_settings = get_settings
        self._id_finder = id_finder
        self._providers = providers
        self._worker = worker
        self._player_ranks_text: dict[str, dict[RankMetric, str]] = {}
        self._pending: set[tuple[str, str]] = set()
        self._pending_lock = threading.Lock()
        self._epoch = 0

    # --- Display-thread API ---

    def process_refresh(self, targets: Iterable[DisplayTarget]) -> None:
        settings = self._get_settings()
        if not settings.rank_display_enabled:
            return

        for target in targets:
            try:
                self._process_target(target, settings)
            except Exception as e:
                logger.error(f"Error processing nameplate: {e!r}", exc_info=True)

    def refresh_cache(self) -> None:
        """Drops every cached rank text. Provider caches are left alone."""
        with self._pending_lock:
            self._epoch += 1
            self._pending.clear()
            self._player_ranks_text = {}
        logger.debug("Player ranks cache cleared.")

    def get_cached_rank_text(self, player_name: str, world_name: str, metric: RankMetric | None = None) -> str | None:
        metric = metric or self._get_settings().rank_metric
        player_key = key_service.get_player_key(player_name, world_name)
        return self._lookup(player_key, metric)

    def cached_player_count(self) -> int:
        return len(self._player_ranks_text)

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # --- Internals ---

    def _process_target(self, target: DisplayTarget, settings: RankSettings) -> None:
        details = target.player_details()
        if not details:
            return
        player_name, world_name = details
        if not player_name or not world_name:
            return

        player_key = key_service.get_player_key(player_name, world_name)
        rank_text = self._lookup(player_key, settings.rank_metric)
        if rank_text is not None:
            color = rank_formatter.color_for_text(rank_text, settings.rank_separator, settings.rank_thresholds)
            self._write(target, rank_text, color, settings)
            return

        if settings.show_loading_placeholder:
            self._write(target, rank_formatter.LOADING_TEXT, rank_formatter.LOADING_COLOR, settings)

        epoch = self._mark_pending(player_key, settings.rank_metric)
        if epoch is None:
            return  # Already being resolved.
        try:
            self._worker.submit(self._resolve_rank, player_key, player_name, world_name, settings, epoch)
        except RuntimeError:
            self._release_pending(player_key, settings.rank_metric, epoch)
            raise

    def _lookup(self, player_key: str, metric: RankMetric) -> str | None:
        rank_dict = self._player_ranks_text.get(player_key)
        if rank_dict is None:
            return None
        return rank_dict.get(metric)

    @staticmethod
    def _write(target: DisplayTarget, text: str, color: ColorTier, settings: RankSettings) -> None:
        target.set_rank_text(text, color if settings.use_percentile_colours else None)

    def _mark_pending(self, player_key: str, metric: RankMetric) -> int | None:
        pending_key = key_service.get_pending_key(player_key, metric)
        with self._pending_lock:
            if pending_key in self._pending:
                return None
            self._pending.add(pending_key)
            return self._epoch

    def _release_pending(self, player_key: str, metric: RankMetric, epoch: int) -> None:
        with self._pending_lock:
            if epoch == self._epoch:
                self._pending.discard(key_service.get_pending_key(player_key, metric))

    def _store(self, player_key: str, metric: RankMetric, rank_text: str, epoch: int) -> None:
        with self._pending_lock:
            if epoch != self._epoch:
                logger.debug(f"Discarding rank for {player_key} resolved before a cache refresh.")
                return
            ranks = self._player_ranks_text
        ranks.setdefault(player_key, {})[metric] = rank_text

    # --- Worker-side resolution ---

    async def _resolve_rank(
        self, player_key: str, player_name: str, world_name: str, settings: RankSettings, epoch: int
    ) -> None:
        metric = settings.rank_metric
        try:
            outcome = await self._fetch_outcome(player_key, player_name, world_name, settings)
            if outcome is not None:
                self._store(player_key, metric, outcome.to_text(settings.rank_separator), epoch)
        except Exception as e:
            logger.error(f"Failed to resolve rank for {player_key}: {e!r}", exc_info=True)
        finally:
            self._release_pending(player_key, metric, epoch)

    async def _fetch_outcome(
        self, player_key: str, player_name: str, world_name: str, settings: RankSettings
    ) -> RankOutcome | None:
        lodestone_id = await self._id_finder.get_lodestone_id(player_name, world_name)

        # TODO: a network failure lands here too and is cached as NotFound; retry with backoff instead.
        if not lodestone_id:
            logger.debug(f"Marking {player_key} as {RankStatus.NOT_FOUND.value}.")
            return RankOutcome.not_found()

        provider = self._providers.get(settings.ranking_source)
        if provider is None:
            logger.error(f"No ranking provider configured for {settings.ranking_source.value}.")
            return None

        record = await provider.get_character_data(lodestone_id)
        rank_value = record.get_rank(settings.rank_metric, settings.rank_scope) if record else None
        if rank_value is None or rank_value < 0:
            logger.debug(
                f"{player_key} ({lodestone_id}) has no {settings.rank_scope.value} "
                f"{settings.rank_metric.value} rank on {settings.ranking_source.value}."
            )
            return RankOutcome.private()
        return RankOutcome.ranked(rank_value)
