import asyncio
import threading
from collections import Counter

import httpx
import pytest

from context import RankContext
from schemas import RankSettings


def search_page(lodestone_ids) -> str:
    entries = "".join(
        f'<div class="entry"><a href="/lodestone/character/{lodestone_id}/" class="entry__link">'
        f'<div class="entry__chara__face"><img src="x.jpg"></div></a></div>'
        for lodestone_id in lodestone_ids
    )
    return (
        '<html><body><a href="/lodestone/character/999/">My character</a>'
        f'<div class="ldst__window">{entries}</div></body></html>'
    )


class FakeUpstream:
    """Stands in for the Lodestone, FFXIV Collect and Lalachievements."""

    def __init__(self):
        self.search_results: dict[tuple[str, str], list[str]] = {}
        self.collect: dict[str, dict] = {}
        self.lala: dict[str, dict] = {}
        self.errors: dict[str, Exception] = {}
        self.delay = 0.0
        self.calls = Counter()
        self._lock = threading.Lock()

    def _count(self, name):
        with self._lock:
            self.calls[name] += 1

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.delay:
            await asyncio.sleep(self.delay)
        path = request.url.path
        if path.endswith("/lodestone/character/"):
            self._count("search")
            if "search" in self.errors:
                raise self.errors["search"]
            key = (request.url.params["q"], request.url.params["worldname"])
            return httpx.Response(200, text=search_page(self.search_results.get(key, [])))
        if path.startswith("/api/characters/"):
            self._count("collect")
            if "collect" in self.errors:
                raise self.errors["collect"]
            lodestone_id = path.rsplit("/", 1)[-1]
            if lodestone_id not in self.collect:
                return httpx.Response(404, json={"status": 404, "error": "Not Found"})
            return httpx.Response(200, json=self.collect[lodestone_id])
        if path.startswith("/api/charrealtime/"):
            self._count("lala")
            lodestone_id = path.rsplit("/", 1)[-1]
            if lodestone_id not in self.lala:
                return httpx.Response(404)
            return httpx.Response(200, json=self.lala[lodestone_id])
        return httpx.Response(500)


class FakeTarget:
    """A nameplate that remembers every text/color written to it."""

    def __init__(self, player_name=None, world_name=None):
        self.player_name = player_name
        self.world_name = world_name
        self.writes = []

    def player_details(self):
        if self.player_name is None:
            return None
        return self.player_name, self.world_name

    def set_rank_text(self, text, color):
        self.writes.append((text, color))

    @property
    def last_write(self):
        return self.writes[-1] if self.writes else None


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def make_context(upstream):
    contexts = []

    def _make(**settings) -> RankContext:
        settings.setdefault("rank_separator", "=")
        ctx = RankContext(
            settings=RankSettings(**settings),
            transport=httpx.MockTransport(upstream.handler),
        ).start()
        contexts.append(ctx)
        return ctx

    yield _make
    for ctx in contexts:
        ctx.close()


@pytest.fixture
def rank_context(make_context):
    return make_context()
