# --- Static Keys ---
# Reserved separator between the character name and the home world.
PLAYER_KEY_SEPARATOR = "@"


# --- Dynamic Key Generators ---
# These functions ensure a consistent format for all player-specific keys.

def get_player_key(player_name: str, world_name: str) -> str:
    """Creates the standardized player identifier string (case-sensitive)."""
    return f"{player_name}{PLAYER_KEY_SEPARATOR}{world_name}"


def get_pending_key(player_key: str, metric) -> tuple[str, str]:
    """Returns the key used to mark an in-flight rank resolution."""
    return player_key, str(metric.value)
