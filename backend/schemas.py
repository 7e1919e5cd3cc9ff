from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

import config
from rank_formatter import DEFAULT_RANK_THRESHOLDS, ColorTier


# 1. Selectors driven by configuration

class RankMetric(str, Enum):
    ACHIEVEMENTS = "Achievements"
    MOUNTS = "Mounts"
    MINIONS = "Minions"


class RankScope(str, Enum):
    GLOBAL = "Global"
    SERVER = "Server"


class RankingSource(str, Enum):
    FFXIV_COLLECT = "FFXIVCollect"
    LALACHIEVEMENTS = "Lalachievements"


class RankSettings(BaseModel):
    """Read-only view of the user's configuration, swapped atomically on change."""

    model_config = ConfigDict(frozen=True)

    rank_metric: RankMetric = RankMetric.ACHIEVEMENTS
    rank_scope: RankScope = RankScope.GLOBAL
    ranking_source: RankingSource = RankingSource.FFXIV_COLLECT
    use_percentile_colours: bool = True
    rank_separator: str = Field(default="♯", min_length=1)
    rank_thresholds: tuple[tuple[int, ColorTier], ...] = DEFAULT_RANK_THRESHOLDS
    show_loading_placeholder: bool = True
    rank_display_enabled: bool = True

    @classmethod
    def from_config(cls) -> "RankSettings":
        return cls(
            rank_metric=config.RANK_METRIC,
            rank_scope=config.RANK_SCOPE,
            ranking_source=config.RANKING_SOURCE,
            use_percentile_colours=config.USE_PERCENTILE_COLOURS,
            rank_separator=config.RANK_SEPARATOR,
            show_loading_placeholder=config.SHOW_LOADING_PLACEHOLDER,
        )


# 2. Upstream payloads

class RankingDetail(BaseModel):
    server: int | None = None
    data_center: int | None = None
    global_: int | None = Field(default=None, alias="global")

    model_config = ConfigDict(populate_by_name=True)

    def for_scope(self, scope: RankScope) -> int | None:
        return self.global_ if scope == RankScope.GLOBAL else self.server


class RankingData(BaseModel):
    achievements: RankingDetail | None = None
    mounts: RankingDetail | None = None
    minions: RankingDetail | None = None


class FFXIVCollectCharacter(BaseModel):
    """Subset of the FFXIV Collect character profile. Everything but rankings is ignored."""

    id: int | str | None = None
    name: str | None = None
    server: str | None = None
    rankings: RankingData | None = None

    def get_rank(self, metric: RankMetric, scope: RankScope) -> int | None:
        # A null rankings object means the profile is private.
        if self.rankings is None:
            return None
        detail = {
            RankMetric.ACHIEVEMENTS: self.rankings.achievements,
            RankMetric.MOUNTS: self.rankings.mounts,
            RankMetric.MINIONS: self.rankings.minions,
        }[metric]
        return detail.for_scope(scope) if detail else None


def _parse_rank(value: str | None) -> int | None:
    """Parses a string-encoded rank, returning None ("unknown") on failure."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class LalachievementsCharacter(BaseModel):
    """Flat realtime record from Lalachievements. Ranks arrive as strings."""

    achievement_rank: str | None = Field(default=None, alias="achievementRank")
    global_achievement_rank: str | None = Field(default=None, alias="globalAchievementRank")
    mount_rank: str | None = Field(default=None, alias="mountRank")
    global_mount_rank: str | None = Field(default=None, alias="globalMountRank")
    minion_rank: str | None = Field(default=None, alias="minionRank")
    global_minion_rank: str | None = Field(default=None, alias="globalMinionRank")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value):
        # The API is inconsistent about quoting; keep the raw text either way.
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def get_rank(self, metric: RankMetric, scope: RankScope) -> int | None:
        fields = {
            (RankMetric.ACHIEVEMENTS, RankScope.GLOBAL): self.global_achievement_rank,
            (RankMetric.ACHIEVEMENTS, RankScope.SERVER): self.achievement_rank,
            (RankMetric.MOUNTS, RankScope.GLOBAL): self.global_mount_rank,
            (RankMetric.MOUNTS, RankScope.SERVER): self.mount_rank,
            (RankMetric.MINIONS, RankScope.GLOBAL): self.global_minion_rank,
            (RankMetric.MINIONS, RankScope.SERVER): self.minion_rank,
        }
        return _parse_rank(fields[(metric, scope)])


RankRecord = Union[FFXIVCollectCharacter, LalachievementsCharacter]


# 3. API response contract

class CachedRankState(BaseModel):
    status: Literal["cached"] = "cached"
    player: str
    metric: RankMetric
    text: str
    color: ColorTier | None = None


class PendingRankState(BaseModel):
    status: Literal["pending"] = "pending"
    player: str
    metric: RankMetric


class DisabledRankState(BaseModel):
    status: Literal["disabled"] = "disabled"


RankLookupState = Union[CachedRankState, PendingRankState, DisabledRankState]


class SettingsUpdate(BaseModel):
    """Partial settings payload; unset fields keep their current value."""

    model_config = ConfigDict(extra="forbid")

    rank_metric: RankMetric | None = None
    rank_scope: RankScope | None = None
    ranking_source: RankingSource | None = None
    use_percentile_colours: bool | None = None
    rank_separator: str | None = Field(default=None, min_length=1)
    show_loading_placeholder: bool | None = None
    rank_display_enabled: bool | None = None
