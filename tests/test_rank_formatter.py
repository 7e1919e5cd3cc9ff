import pytest

from rank_formatter import (
    DEFAULT_RANK_THRESHOLDS,
    FOUND_COLOR,
    NOT_FOUND_COLOR,
    PRIVATE_COLOR,
    ColorTier,
    RankOutcome,
    RankStatus,
    color_for,
    color_for_rank,
    color_for_text,
    format_rank,
    parse_rank_text,
)

TIER_A = ColorTier(name="a", rgba=(1.0, 0.0, 0.0, 1.0))
TIER_B = ColorTier(name="b", rgba=(0.0, 1.0, 0.0, 1.0))
TIER_C = ColorTier(name="c", rgba=(0.0, 0.0, 1.0, 1.0))
THRESHOLDS = [(1_000_000, TIER_A), (500_000, TIER_B), (100, TIER_C)]


def test_first_threshold_below_rank_wins():
    assert color_for_rank(600_000, THRESHOLDS) is TIER_B


def test_thresholds_are_evaluated_highest_first_regardless_of_input_order():
    assert color_for_rank(600_000, list(reversed(THRESHOLDS))) is TIER_B
    assert color_for_rank(2_000_000, list(reversed(THRESHOLDS))) is TIER_A


def test_threshold_comparison_is_strict():
    assert color_for_rank(100, THRESHOLDS) == FOUND_COLOR
    assert color_for_rank(101, THRESHOLDS) is TIER_C
    assert color_for_rank(500_000, THRESHOLDS) is TIER_C
    assert color_for_rank(0, THRESHOLDS) == FOUND_COLOR


def test_default_thresholds_put_4821_in_the_thousands_bracket():
    assert color_for_rank(4821).name == "purple"


def test_format_rank():
    assert format_rank(4821, "=") == "=4821"
    assert format_rank(0, "♯") == "♯0"


@pytest.mark.parametrize(
    "rank_text, expected",
    [
        ("=4821", 4821),
        ("==12", 12),
        ("=", None),
        ("=abc", None),
        ("= 5", None),
        ("=+5", None),
        ("=-5", None),
        ("4821", None),
        ("Private", None),
    ],
)
def test_parse_rank_text(rank_text, expected):
    assert parse_rank_text(rank_text, "=") == expected


def test_unparseable_rank_text_falls_back_to_found_color():
    assert color_for_text("=abc", "=", THRESHOLDS) == FOUND_COLOR
    assert color_for_text("#600000", "=", THRESHOLDS) == FOUND_COLOR


def test_status_texts_map_to_fixed_tiers():
    assert color_for_text("Private", "=") == PRIVATE_COLOR
    assert color_for_text("NotFound", "=") == NOT_FOUND_COLOR
    assert color_for(RankOutcome.private()) == PRIVATE_COLOR
    assert color_for(RankOutcome.not_found()) == NOT_FOUND_COLOR


def test_color_decision_survives_format_and_parse():
    for rank in (0, 1, 100, 101, 999, 1_001, 4_821, 250_000, 250_001, 1_000_000, 7_654_321):
        rank_text = format_rank(rank, "♯")
        assert color_for(RankOutcome.from_text(rank_text, "♯")) == color_for(RankOutcome.ranked(rank))
        assert color_for_text(rank_text, "♯") == color_for_rank(rank, DEFAULT_RANK_THRESHOLDS)


def test_outcome_text():
    assert RankOutcome.ranked(42).to_text("=") == "=42"
    assert RankOutcome.private().to_text("=") == "Private"
    assert RankOutcome.not_found().to_text("=") == "NotFound"
    assert RankOutcome.from_text("=42", "=") == RankOutcome(RankStatus.FOUND, 42)


def test_ranked_outcome_rejects_negative_rank():
    with pytest.raises(ValueError):
        RankOutcome.ranked(-1)
