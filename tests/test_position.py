import math

import pytest

from position import (
    ANCHOR_POSITION,
    AnchorNotFoundError,
    InvalidStoryPointsError,
    adjust_stories_relative_to_new_anchor,
    calculate_axis_score,
    calculate_distance,
    calculate_position_score,
    calculate_story_points,
    normalize_position_2d,
    position_to_percentage,
    round_position,
    sort_by_distance_from_anchor,
)
from schemas import FIBONACCI_NUMBERS, Position2D

GRID = range(-100, 101, 10)


def test_normalize_clamps_each_axis():
    assert normalize_position_2d(Position2D(x=150, y=-150)) == Position2D(x=100, y=-100)
    assert normalize_position_2d(Position2D(x=-50, y=50)) == Position2D(x=-50, y=50)


def test_normalize_is_bounded_and_idempotent():
    for x in range(-1000, 1001, 50):
        for y in range(-1000, 1001, 50):
            once = normalize_position_2d(Position2D(x=x, y=y))
            assert -100 <= once.x <= 100
            assert -100 <= once.y <= 100
            assert normalize_position_2d(once) == once


def test_axis_score_extremes():
    assert calculate_axis_score(-100, lower_is_better=True) == pytest.approx(5)
    assert calculate_axis_score(100, lower_is_better=True) == 0
    assert calculate_axis_score(100, lower_is_better=False) == pytest.approx(5)
    assert calculate_axis_score(-100, lower_is_better=False) == 0


def test_axis_score_out_of_domain_is_zero():
    assert calculate_axis_score(float("nan"), lower_is_better=True) == 0
    # negative base after inversion
    assert calculate_axis_score(300, lower_is_better=True) == 0


def test_position_score_at_origin():
    score = calculate_position_score(Position2D(x=0, y=0))
    assert score == pytest.approx(10 * 0.5 ** 1.65)
    assert 0 < score <= 10


def test_position_score_range():
    for x in GRID:
        for y in GRID:
            score = calculate_position_score(Position2D(x=x, y=y))
            assert 0 <= score <= 10
    assert calculate_position_score(Position2D(x=-100, y=100)) == pytest.approx(10)
    assert calculate_position_score(Position2D(x=100, y=-100)) == 0


def test_position_score_is_monotonic():
    for y in GRID:
        scores = [calculate_position_score(Position2D(x=x, y=y)) for x in reversed(GRID)]
        assert scores == sorted(scores)
    for x in GRID:
        scores = [calculate_position_score(Position2D(x=x, y=y)) for y in GRID]
        assert scores == sorted(scores)


def test_story_points_need_anchor_points(make_story):
    assert calculate_story_points(make_story("a", is_anchor=True), None) is None
    assert calculate_story_points(make_story("b", x=50), None) is None


@pytest.mark.parametrize("points", FIBONACCI_NUMBERS)
def test_anchor_keeps_its_points(make_story, points):
    assert calculate_story_points(make_story("a", x=80, y=-80, is_anchor=True), points) == points


def test_story_at_anchor_position_gets_anchor_points(make_story):
    assert calculate_story_points(make_story("b"), 5) == 5


def test_story_points_follow_complexity(make_story):
    results = [calculate_story_points(make_story(str(x), x=x), 8) for x in (-60, -10, 30, 70)]
    assert results == [3, 8, 13, 21]
    assert results == sorted(results)


def test_uncertainty_moves_estimate_up(make_story):
    assert calculate_story_points(make_story("b", y=-60), 8) == 13


def test_story_points_clamp_to_scale(make_story):
    assert calculate_story_points(make_story("b", x=100, y=-100), 55) == 89
    assert calculate_story_points(make_story("b", x=-100, y=100), 2) == 1


def test_story_points_are_on_scale(make_story):
    for points in FIBONACCI_NUMBERS:
        for x in range(-100, 101, 25):
            for y in range(-100, 101, 25):
                assert calculate_story_points(make_story("b", x=x, y=y), points) in FIBONACCI_NUMBERS


def test_unknown_anchor_points_raise(make_story):
    with pytest.raises(InvalidStoryPointsError):
        calculate_story_points(make_story("b", x=10), 4)


def test_reanchor_shifts_stories_to_new_anchor(make_story):
    stories = [
        make_story("anchor", x=10, y=20, is_anchor=True),
        make_story("story1", x=30, y=40),
        make_story("story2", x=50, y=60),
    ]

    result = adjust_stories_relative_to_new_anchor(stories, "story1")

    assert [s.id for s in result] == ["anchor", "story1", "story2"]
    assert [s.id for s in result if s.is_anchor] == ["story1"]
    assert result[1].position == ANCHOR_POSITION
    assert result[0].position == Position2D(x=-20, y=-20)
    assert result[2].position == Position2D(x=20, y=20)


def test_reanchor_does_not_modify_input(make_story):
    stories = [make_story("a", x=10, y=20, is_anchor=True), make_story("b", x=30, y=40)]

    adjust_stories_relative_to_new_anchor(stories, "b")

    assert stories[0].is_anchor and stories[0].position == Position2D(x=10, y=20)
    assert not stories[1].is_anchor and stories[1].position == Position2D(x=30, y=40)


def test_reanchor_without_previous_anchor(make_story):
    stories = [make_story("story1", x=10, y=20), make_story("story2", x=30, y=40)]

    result = adjust_stories_relative_to_new_anchor(stories, "story1")

    assert result[0].is_anchor
    assert result[0].position == ANCHOR_POSITION
    assert not result[1].is_anchor
    assert result[1].position == Position2D(x=20, y=20)


def test_reanchor_custom_anchor_position(make_story):
    stories = [make_story("anchor", x=10, y=20, is_anchor=True), make_story("story1", x=30, y=40)]

    result = adjust_stories_relative_to_new_anchor(stories, "story1", Position2D(x=50, y=60))

    assert result[1].position == Position2D(x=50, y=60)
    assert result[1].is_anchor
    assert result[0].position == Position2D(x=-20, y=-20)
    assert not result[0].is_anchor


def test_reanchor_clamps_shifted_positions(make_story):
    stories = [make_story("a", is_anchor=True), make_story("far", x=90, y=-90), make_story("b", x=-50, y=50)]

    result = adjust_stories_relative_to_new_anchor(stories, "b")

    assert result[1].position == Position2D(x=100, y=-100)
    assert result[0].position == Position2D(x=50, y=-50)


def test_reanchor_to_current_anchor_keeps_positions(make_story):
    stories = [make_story("a", is_anchor=True), make_story("b", x=-30, y=15)]

    result = adjust_stories_relative_to_new_anchor(stories, "a")

    assert result == stories


def test_reanchor_unknown_story(make_story):
    with pytest.raises(AnchorNotFoundError):
        adjust_stories_relative_to_new_anchor([make_story("a", is_anchor=True)], "missing")


def test_position_to_percentage():
    origin = position_to_percentage(Position2D(x=0, y=0))
    assert (origin.left, origin.top) == ("50%", "50%")

    top_left = position_to_percentage(Position2D(x=-100, y=100))
    assert (top_left.left, top_left.top) == ("0%", "0%")

    point = position_to_percentage(Position2D(x=50, y=50))
    assert (point.left, point.top) == ("75%", "25%")

    clamped = position_to_percentage(Position2D(x=300, y=-300))
    assert (clamped.left, clamped.top) == ("100%", "100%")


def test_round_position():
    assert round_position(Position2D(x=10.4, y=-10.6)) == Position2D(x=10, y=-11)
    assert round_position(Position2D(x=150.2, y=0.5)) == Position2D(x=100, y=1)


def test_distance_helpers(make_story):
    assert calculate_distance(Position2D(x=0, y=0), Position2D(x=3, y=4)) == 5
    stories = [make_story("a", x=50, y=50), make_story("b", x=10, y=0), make_story("c", x=-10, y=0)]

    assert [s.id for s in sort_by_distance_from_anchor(stories)] == ["b", "c", "a"]
    assert math.isclose(calculate_distance(stories[0].position, ANCHOR_POSITION), math.hypot(50, 50))


def test_sort_by_distance_from_custom_anchor(make_story):
    stories = [make_story("a", x=0, y=0), make_story("b", x=40, y=40), make_story("c", x=60, y=60)]

    ordered = sort_by_distance_from_anchor(stories, Position2D(x=50, y=50))

    assert [s.id for s in ordered] == ["b", "c", "a"]
