import logging
import math
from typing import Iterable, List, Optional

from schemas import (
    FIBONACCI_NUMBERS,
    POSITION_MAX,
    POSITION_MIN,
    POSITION_RANGE,
    Position2D,
    ScreenPosition,
    Story,
)

logger = logging.getLogger(__name__)

ANCHOR_POSITION = Position2D(x=0, y=0)

MAX_SCORE = 10
BASE_SCORE = MAX_SCORE / 2
SCORE_EXPONENT = 1.65

# Complexity dominates uncertainty when deriving story points
COMPLEXITY_WEIGHT = 0.7
UNCERTAINTY_WEIGHT = 0.3

# Percentage points of score difference per Fibonacci step
PERCENT_PER_STAGE = 10


class InvalidStoryPointsError(ValueError):
    """Anchor story points are not a value on the Fibonacci scale."""


class AnchorNotFoundError(ValueError):
    """The story chosen as the new anchor is not in the collection."""


def normalize_position_2d(position: Position2D) -> Position2D:
    """Clamp each axis of a position into [POSITION_MIN, POSITION_MAX]."""
    return Position2D(
        x=max(POSITION_MIN, min(POSITION_MAX, position.x)),
        y=max(POSITION_MIN, min(POSITION_MAX, position.y)),
    )


def calculate_axis_score(value: float, lower_is_better: bool) -> float:
    """
    Score a single axis value in [0, BASE_SCORE].

    The value is mapped to [0, 1], flipped when lower values are preferred,
    and raised to SCORE_EXPONENT so that positions near the favourable end
    are rewarded more than linearly.
    """
    normalized = (value - POSITION_MIN) / POSITION_RANGE
    adjusted = 1 - normalized if lower_is_better else normalized
    try:
        score = BASE_SCORE * adjusted ** SCORE_EXPONENT
    except (TypeError, ValueError):
        return 0
    # a negative base yields a complex number instead of NaN
    if isinstance(score, complex) or math.isnan(score):
        return 0
    return score


def calculate_position_score(position: Position2D) -> float:
    """Quality indicator in [0, MAX_SCORE]: simple and certain scores high."""
    return calculate_axis_score(position.x, lower_is_better=True) + calculate_axis_score(
        position.y, lower_is_better=False
    )


def _weighted_badness(position: Position2D) -> float:
    # 0 = simplest and most certain, 1 = most complex and least certain
    x_score = (position.x + POSITION_RANGE / 2) / POSITION_RANGE
    y_score = (POSITION_RANGE / 2 - position.y) / POSITION_RANGE
    return COMPLEXITY_WEIGHT * x_score + UNCERTAINTY_WEIGHT * y_score


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_story_points(story: Story, anchor_points: Optional[int]) -> Optional[int]:
    """
    Derive a Fibonacci estimate for a story from its offset to the anchor.

    Returns None while the team has not assigned points to the anchor.
    Every PERCENT_PER_STAGE points of weighted score difference moves one
    step along FIBONACCI_NUMBERS, clamped to the ends of the scale.
    """
    if anchor_points is None:
        return None

    if story.is_anchor:
        return anchor_points

    try:
        anchor_index = FIBONACCI_NUMBERS.index(anchor_points)
    except ValueError:
        raise InvalidStoryPointsError(
            f"Anchor story points {anchor_points} are not one of {list(FIBONACCI_NUMBERS)}"
        )

    position_score = _weighted_badness(story.position)
    anchor_score = _weighted_badness(ANCHOR_POSITION)

    percentage_change = (position_score - anchor_score) * 100
    stages_to_move = _round_half_up(percentage_change / PERCENT_PER_STAGE)

    new_index = max(0, min(len(FIBONACCI_NUMBERS) - 1, anchor_index + stages_to_move))
    return FIBONACCI_NUMBERS[new_index]


def adjust_stories_relative_to_new_anchor(
    stories: List[Story],
    new_anchor_id: str,
    new_anchor_position: Optional[Position2D] = None,
) -> List[Story]:
    """
    Re-express every story position relative to a newly designated anchor.

    Stories are shifted by the new anchor's current position so their
    geometry relative to it is unchanged; the new anchor itself is placed at
    ``new_anchor_position`` (the origin by default). Input order is kept and
    the input stories are not modified.
    """
    if new_anchor_position is None:
        new_anchor_position = ANCHOR_POSITION

    new_anchor = next((s for s in stories if s.id == new_anchor_id), None)
    if new_anchor is None:
        raise AnchorNotFoundError(f"Story {new_anchor_id} not found")

    old_anchor = next((s for s in stories if s.is_anchor), None)
    old_anchor_position = old_anchor.position if old_anchor else ANCHOR_POSITION
    logger.debug(
        "Reanchoring from %s at (%s, %s) to %s at (%s, %s)",
        old_anchor.id if old_anchor else None,
        old_anchor_position.x,
        old_anchor_position.y,
        new_anchor.id,
        new_anchor.position.x,
        new_anchor.position.y,
    )

    origin = new_anchor.position
    adjusted = []
    for story in stories:
        if story.id == new_anchor_id:
            adjusted.append(
                story.model_copy(
                    update={"position": new_anchor_position.model_copy(), "is_anchor": True}
                )
            )
            continue
        shifted = Position2D(x=story.position.x - origin.x, y=story.position.y - origin.y)
        adjusted.append(
            story.model_copy(
                update={"position": normalize_position_2d(shifted), "is_anchor": False}
            )
        )
    return adjusted


def _format_percent(value: float) -> str:
    return f"{value:g}%"


def position_to_percentage(position: Position2D) -> ScreenPosition:
    """Map a position onto CSS offsets; the origin lands in the centre."""
    normalized = normalize_position_2d(position)
    left = (normalized.x - POSITION_MIN) / POSITION_RANGE * 100
    top = (POSITION_MAX - normalized.y) / POSITION_RANGE * 100
    return ScreenPosition(left=_format_percent(left), top=_format_percent(top))


def calculate_distance(first: Position2D, second: Position2D) -> float:
    return math.hypot(first.x - second.x, first.y - second.y)


def sort_by_distance_from_anchor(
    stories: Iterable[Story], anchor_position: Position2D = ANCHOR_POSITION
) -> List[Story]:
    # Stable, so stories at equal distance keep their creation order
    return sorted(stories, key=lambda s: calculate_distance(s.position, anchor_position))


def round_position(position: Position2D) -> Position2D:
    """Normalize and round to whole units, the precision positions are stored at."""
    normalized = normalize_position_2d(position)
    return Position2D(x=_round_half_up(normalized.x), y=_round_half_up(normalized.y))
