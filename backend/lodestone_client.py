import logging
import re

import httpx

import config
import key_service
from request_coalescing import InFlightRequests

logger = logging.getLogger(__name__)

# Each search result is an anchor like
# <a href="/lodestone/character/12345678/" class="entry__link">
ENTRY_LINK_RE = re.compile(r"<a\s[^>]*>", re.IGNORECASE)
CHARACTER_HREF_RE = re.compile(r'href="/lodestone/character/(\d+)/"')
RESULTS_CONTAINER_CLASS = "ldst__window"


class CharacterNotFound(Exception):
    """Raised when a Lodestone character search returns no results."""

    pass


class LodestoneLayoutError(ValueError):
    """Raised when a search page does not look like a Lodestone search page."""

    pass


def parse_search_results(html: str) -> list[str]:
    """Returns the Lodestone IDs on a character search page, in page order."""
    lodestone_ids = []
    for match in ENTRY_LINK_RE.finditer(html):
        tag = match.group(0)
        if "entry__link" not in tag:
            continue
        href = CHARACTER_HREF_RE.search(tag)
        if href and href.group(1) not in lodestone_ids:
            lodestone_ids.append(href.group(1))
    return lodestone_ids


async def search_character(
    client: httpx.AsyncClient,
    character_name: str,
    world_name: str,
    base_url: str = config.LODESTONE_BASE_URL,
) -> list[str]:
    """
    Searches the Lodestone for a character on a world.
    Raises CharacterNotFound if nothing matches, LodestoneLayoutError if the
    page has no results list at all.
    """
    url = f"{base_url}/character/"
    params = {"q": character_name, "worldname": world_name}
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise CharacterNotFound(
                f"Lodestone search for {character_name} on {world_name} returned 404."
            ) from e
        raise  # Re-raise other HTTP errors

    lodestone_ids = parse_search_results(response.text)
    if not lodestone_ids and RESULTS_CONTAINER_CLASS not in response.text:
        raise LodestoneLayoutError(
            f"Lodestone search page for {character_name} on {world_name} has no results container."
        )
    if not lodestone_ids:
        raise CharacterNotFound(f"No Lodestone results for {character_name} on {world_name}.")
    return lodestone_ids


class LodestoneIdFinder:
    """Resolves (name, world) to a Lodestone ID, one upstream search per pair at a time."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = config.LODESTONE_BASE_URL):
        self._client = client
        self._base_url = base_url
        self._active_requests = InFlightRequests()

    def is_resolving(self, character_name: str, world_name: str) -> bool:
        return key_service.get_player_key(character_name, world_name) in self._active_requests

    async def get_lodestone_id(self, character_name: str, world_name: str) -> str | None:
        player_key = key_service.get_player_key(character_name, world_name)
        return await self._active_requests.run(
            player_key, lambda: self._fetch_lodestone_id(character_name, world_name)
        )

    async def _fetch_lodestone_id(self, character_name: str, world_name: str) -> str | None:
        try:
            lodestone_ids = await search_character(
                self._client, character_name, world_name, self._base_url
            )
        except CharacterNotFound as e:
            logger.debug(str(e))
            return None
        except LodestoneLayoutError as e:
            logger.warning(f"{e} The page layout may have changed.")
            return None
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            logger.error(
                f"Network error while fetching Lodestone ID for {character_name} on {world_name}: {e!r}"
            )
            return None
        except Exception as e:
            logger.error(
                f"Unexpected error while fetching Lodestone ID for {character_name} on {world_name}: {e!r}",
                exc_info=True,
            )
            return None

        # First match wins; the Lodestone orders exact name matches first.
        return lodestone_ids[0]
