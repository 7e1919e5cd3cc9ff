from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict


class RankStatus(str, Enum):
    FOUND = "Found"
    NOT_FOUND = "NotFound"
    PRIVATE = "Private"


class ColorTier(BaseModel):
    """A named RGBA color applied to a nameplate label."""

    model_config = ConfigDict(frozen=True)

    name: str
    rgba: tuple[float, float, float, float]


# --- Fixed tiers ---
FOUND_COLOR = ColorTier(name="found", rgba=(1.0, 1.0, 1.0, 1.0))  # White
PRIVATE_COLOR = ColorTier(name="private", rgba=(1.0, 0.0, 0.0, 1.0))  # Red
NOT_FOUND_COLOR = ColorTier(name="not_found", rgba=(1.0, 0.647, 0.0, 1.0))  # Orange
LOADING_COLOR = ColorTier(name="loading", rgba=(0.5, 0.5, 0.5, 1.0))  # Grey

LOADING_TEXT = "..."

STATUS_COLORS = {
    RankStatus.FOUND: FOUND_COLOR,
    RankStatus.PRIVATE: PRIVATE_COLOR,
    RankStatus.NOT_FOUND: NOT_FOUND_COLOR,
}

# (lower bound, tier); a rank strictly greater than the bound gets the tier.
DEFAULT_RANK_THRESHOLDS: tuple[tuple[int, ColorTier], ...] = (
    (1_000_000, ColorTier(name="white", rgba=(0.9, 0.9, 0.9, 1.0))),
    (500_000, ColorTier(name="grey", rgba=(0.7, 0.7, 0.7, 1.0))),
    (250_000, ColorTier(name="white", rgba=(0.9, 0.9, 0.9, 1.0))),
    (100_000, ColorTier(name="pink", rgba=(1.0, 0.85, 0.9, 1.0))),
    (10_000, ColorTier(name="blue", rgba=(0.3, 0.3, 1.0, 1.0))),
    (1_000, ColorTier(name="purple", rgba=(0.7, 0.3, 0.7, 1.0))),
    (100, ColorTier(name="black", rgba=(0.0, 0.0, 0.0, 1.0))),
)


@dataclass(frozen=True)
class RankOutcome:
    """Result of a rank lookup. Only FOUND carries a rank."""

    status: RankStatus
    rank: int | None = None

    @classmethod
    def ranked(cls, rank: int) -> "RankOutcome":
        if rank < 0:
            raise ValueError(f"Rank must be non-negative, got {rank}")
        return cls(RankStatus.FOUND, rank)

    @classmethod
    def not_found(cls) -> "RankOutcome":
        return cls(RankStatus.NOT_FOUND)

    @classmethod
    def private(cls) -> "RankOutcome":
        return cls(RankStatus.PRIVATE)

    def to_text(self, separator: str) -> str:
        if self.status == RankStatus.FOUND and self.rank is not None:
            return format_rank(self.rank, separator)
        return self.status.value

    @classmethod
    def from_text(cls, rank_text: str, separator: str) -> "RankOutcome":
        """
        Reverses to_text. Text that is neither a status nor a valid
        separator-prefixed rank is treated as FOUND without a rank.
        """
        if rank_text == RankStatus.PRIVATE.value:
            return cls.private()
        if rank_text == RankStatus.NOT_FOUND.value:
            return cls.not_found()
        return cls(RankStatus.FOUND, parse_rank_text(rank_text, separator))


def format_rank(rank: int, separator: str) -> str:
    """Renders a rank as the separator glyph followed by the decimal rank, e.g. '♯4821'."""
    return f"{separator}{rank}"


def parse_rank_text(rank_text: str, separator: str) -> int | None:
    """Returns the rank encoded by format_rank, or None if the text isn't one."""
    if not separator or not rank_text.startswith(separator):
        return None
    digits = rank_text.lstrip(separator)
    if not digits.isdecimal():
        return None
    return int(digits)


def color_for_rank(rank: int, thresholds: Iterable[tuple[int, ColorTier]] = DEFAULT_RANK_THRESHOLDS) -> ColorTier:
    for bound, tier in sorted(thresholds, key=lambda item: item[0], reverse=True):
        if rank > bound:
            return tier
    return FOUND_COLOR


def color_for(outcome: RankOutcome, thresholds: Iterable[tuple[int, ColorTier]] = DEFAULT_RANK_THRESHOLDS) -> ColorTier:
    if outcome.status == RankStatus.FOUND and outcome.rank is not None:
        return color_for_rank(outcome.rank, thresholds)
    return STATUS_COLORS[outcome.status]


def color_for_text(
    rank_text: str, separator: str, thresholds: Iterable[tuple[int, ColorTier]] = DEFAULT_RANK_THRESHOLDS
) -> ColorTier:
    return color_for(RankOutcome.from_text(rank_text, separator), thresholds)
