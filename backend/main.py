import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Response, status

import config
import key_service
from context import RankContext
from rank_formatter import LOADING_TEXT, ColorTier
from schemas import (
    CachedRankState,
    DisabledRankState,
    PendingRankState,
    RankLookupState,
    RankSettings,
    SettingsUpdate,
)

# --- APP INITIALIZATION ---
rank_context: RankContext | None = None
logging.basicConfig(level=config.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global rank_context
    logging.info("Rank service starting up...")
    rank_context = RankContext().start()

    yield  # Application runs here

    logging.info("Rank service shutting down.")
    rank_context.close()
    rank_context = None


app = FastAPI(lifespan=lifespan)


# --- DEPENDENCY ---
def get_context() -> RankContext:
    """Dependency to provide the rank context to routes."""
    if rank_context is None:
        raise HTTPException(status_code=503, detail="Rank service not available")
    return rank_context


class LookupTarget:
    """A display target that records what would have been drawn on a nameplate."""

    def __init__(self, player_name: str, world_name: str):
        self.player_name = player_name
        self.world_name = world_name
        self.text: str | None = None
        self.color: ColorTier | None = None

    def player_details(self) -> tuple[str, str]:
        return self.player_name, self.world_name

    def set_rank_text(self, text: str, color: ColorTier | None) -> None:
        self.text = text
        self.color = color


# --- ENDPOINTS ---
@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check(ctx: RankContext = Depends(get_context)):
    if not ctx.worker.is_running:
        raise HTTPException(status_code=503, detail="Rank worker is not running.")
    manager = ctx.rank_manager
    return {
        "status": "ok",
        "cached_players": manager.cached_player_count(),
        "pending_lookups": manager.pending_count(),
        "ranking_source": ctx.settings.ranking_source.value,
    }


@app.get("/ranks/{world_name}/{player_name}", response_model=RankLookupState)
async def get_rank(world_name: str, player_name: str, response: Response, ctx: RankContext = Depends(get_context)):
    """
    Looks a player up the same way a nameplate refresh does.
    - Returns 200 with the text if it is cached.
    - Returns 202 if a lookup was started (or is already running); poll again later.
    """
    settings = ctx.settings
    if not settings.rank_display_enabled:
        return DisabledRankState()

    target = LookupTarget(player_name, world_name)
    ctx.rank_manager.process_refresh([target])
    player = key_service.get_player_key(player_name, world_name)

    if target.text is None or target.text == LOADING_TEXT:
        response.status_code = status.HTTP_202_ACCEPTED
        return PendingRankState(player=player, metric=settings.rank_metric)
    return CachedRankState(player=player, metric=settings.rank_metric, text=target.text, color=target.color)


@app.post("/cache/refresh")
async def refresh_cache(ctx: RankContext = Depends(get_context)):
    ctx.rank_manager.refresh_cache()
    return {"status": "cleared"}


@app.get("/settings", response_model=RankSettings)
async def read_settings(ctx: RankContext = Depends(get_context)):
    return ctx.settings


@app.patch("/settings", response_model=RankSettings)
async def update_settings(update: SettingsUpdate, ctx: RankContext = Depends(get_context)):
    changes = update.model_dump(exclude_none=True)
    if not changes:
        return ctx.settings
    enabled_before = ctx.settings.rank_display_enabled
    settings = ctx.update_settings(**changes)
    if settings.rank_display_enabled != enabled_before:
        logging.info(f"Rank display is now {'enabled' if settings.rank_display_enabled else 'disabled'}")
    return settings


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
