from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from database import Base
from helper import generate_id


def utcnow():
    return datetime.now(timezone.utc)


class PlanningSession(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(50), nullable=False)
    code = Column(String(6), nullable=False, unique=True, index=True)
    anchor_story_id = Column(String(36), nullable=True)
    anchor_story_points = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_modified = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    stories = relationship(
        "Story",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Story.created_at",
    )

    def touch(self):
        self.last_modified = utcnow()


class Story(Base):
    __tablename__ = "stories"

    id = Column(String(36), primary_key=True, default=generate_id)
    session_id = Column(
        String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)
    is_anchor = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    session = relationship("PlanningSession", back_populates="stories")

    @property
    def position(self):
        # Read by schemas.Story when validating from attributes
        return {"x": self.position_x, "y": self.position_y}
