from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from helper import to_camel_case

POSITION_MIN = -100
POSITION_MAX = 100
POSITION_RANGE = POSITION_MAX - POSITION_MIN

STORY_TITLE_MAX_LENGTH = 100
STORY_DESCRIPTION_MAX_LENGTH = 500
SESSION_NAME_MAX_LENGTH = 50
SESSION_CODE_LENGTH = 6

# Fibonacci scale for story points. Anchors in the 5-13 range give the
# best spread of relative estimates.
FIBONACCI_NUMBERS = (1, 2, 3, 5, 8, 13, 21, 34, 55, 89)


def parse_story_points(v):
    """Accept a Fibonacci number (or its string form); blank means not set."""
    if v is None or v == "" or v == "null":
        return None
    if isinstance(v, str):
        try:
            v = int(v)
        except ValueError:
            raise ValueError("Story points must be a number")
    if v not in FIBONACCI_NUMBERS:
        raise ValueError(
            f"Story points must be a Fibonacci number: {list(FIBONACCI_NUMBERS)}")
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel_case,
        populate_by_name=True,
    )


class Position2D(CamelModel):
    x: float = Field(default=0, description="Complexity, higher is more complex")
    y: float = Field(default=0, description="Certainty, higher is less uncertain")


class Story(CamelModel):
    id: str
    title: str
    description: str = ""
    position: Position2D = Field(default_factory=Position2D)
    is_anchor: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlanningSession(CamelModel):
    id: str
    name: str
    code: str
    stories: List[Story] = Field(default_factory=list)
    anchor_story_id: Optional[str] = None
    anchor_story_points: Optional[int] = None
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    @field_validator("anchor_story_points", mode="before")
    @classmethod
    def validate_anchor_story_points(cls, v):
        return parse_story_points(v)

    @model_validator(mode="after")
    def validate_single_anchor(self):
        """A session with stories has exactly one anchor."""
        anchors = [s for s in self.stories if s.is_anchor]
        if len(anchors) > 1:
            raise ValueError("Session must not have more than one anchor story")
        if self.stories and not anchors:
            raise ValueError(
                "Session must have exactly one anchor story when stories exist")
        return self


class SessionCreate(BaseModel):
    name: str = Field(..., description="Name of the planning session")

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Session name is required")
        v = v.strip()
        if len(v) > SESSION_NAME_MAX_LENGTH:
            raise ValueError(
                f"Session name must be {SESSION_NAME_MAX_LENGTH} characters or less")
        return v


def _clean_title(v):
    if not isinstance(v, str) or not v.strip():
        raise ValueError("Story title is required")
    v = v.strip()
    if len(v) > STORY_TITLE_MAX_LENGTH:
        raise ValueError(
            f"Story title must be {STORY_TITLE_MAX_LENGTH} characters or less")
    return v


def _clean_description(v):
    if v is None:
        return ""
    v = str(v).strip()
    if len(v) > STORY_DESCRIPTION_MAX_LENGTH:
        raise ValueError(
            f"Story description must be {STORY_DESCRIPTION_MAX_LENGTH} characters or less")
    return v


class StoryCreate(BaseModel):
    title: str = Field(..., description="Title of the story")
    description: str = Field(default="", description="Description of the story")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v):
        return _clean_title(v)

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v):
        return _clean_description(v)


class StoryUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v):
        if v is None:
            return None
        return _clean_title(v)

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v):
        if v is None:
            return None
        return _clean_description(v)


class PositionUpdate(Position2D):
    """Drag result; clamped into range before it is stored."""


class AnchorUpdate(CamelModel):
    story_id: str = Field(..., description="Story to promote to anchor")
    position: Optional[Position2D] = Field(
        default=None, description="Where to place the new anchor, origin if omitted")


class AnchorPointsUpdate(BaseModel):
    points: Optional[int] = Field(
        default=None, description="Story points for the anchor, null to reset")

    @field_validator("points", mode="before")
    @classmethod
    def validate_points(cls, v):
        return parse_story_points(v)


class ScreenPosition(BaseModel):
    left: str
    top: str


class StoryEstimate(CamelModel):
    story_id: str
    title: str
    is_anchor: bool
    position: Position2D
    position_score: float
    story_points: Optional[int] = None
    screen_position: ScreenPosition


class SessionEstimates(CamelModel):
    session_id: str
    code: str
    anchor_story_points: Optional[int] = None
    estimates: List[StoryEstimate]


class ExportStory(CamelModel):
    title: str
    description: str
    story_points: Optional[int] = None
    relative_position: float


class ExportData(CamelModel):
    session_name: str
    exported_at: datetime
    stories: List[ExportStory]
    total_stories: int = Field(..., ge=0)
