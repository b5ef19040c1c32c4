import logging
import os
from datetime import datetime, timezone

import models
import position
import schemas
from database import SessionLocal
from helper import generate_id, generate_session_code
from store import DEFAULT_MAX_SESSIONS, PlanningStore
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Depends, HTTPException, Request, status
from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="StoryScape")
app.state.store = PlanningStore(
    max_sessions=int(os.getenv("STORE_MAX_SESSIONS", DEFAULT_MAX_SESSIONS)))

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

origins = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
] or DEFAULT_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SESSION_CODE_ATTEMPTS = 5


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(request: Request) -> PlanningStore:
    return request.app.state.store


def get_session_or_404(db: Session, store: PlanningStore, session_id: str) -> models.PlanningSession:
    """
    Fetch a session row and refresh its cached snapshot.
    The snapshot is what an optimistic update rolls back to.
    """
    row = db.query(models.PlanningSession).filter(
        models.PlanningSession.id == session_id).first()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    load_or_500(store, row)
    return row


def get_session_by_code_or_404(db: Session, code: str) -> models.PlanningSession:
    row = db.query(models.PlanningSession).filter(
        models.PlanningSession.code == code.strip().upper()).first()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return row


def get_story_or_404(db: Session, store: PlanningStore, story_id: str) -> models.Story:
    story = db.query(models.Story).filter(models.Story.id == story_id).first()
    if not story:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found"
        )
    load_or_500(store, story.session)
    return story


def load_or_500(store: PlanningStore, row: models.PlanningSession) -> schemas.PlanningSession:
    try:
        return store.load(row)
    except ValidationError:
        logger.exception("Session %s failed validation", row.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session data is inconsistent"
        )


def commit_session(db: Session, store: PlanningStore, row: models.PlanningSession) -> schemas.PlanningSession:
    """
    Commit pending changes to a session and its stories.

    The pending state is validated and cached before the commit; a failed
    commit restores the previous snapshot.
    """
    row.touch()
    try:
        with store.optimistic(row.code, lambda _: row):
            db.commit()
    except ValidationError:
        db.rollback()
        logger.exception("Refusing to save inconsistent session %s", row.id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session must have exactly one anchor story when stories exist"
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to save session %s", row.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save session"
        )
    db.refresh(row)
    return load_or_500(store, row)


@app.post("/sessions", response_model=schemas.PlanningSession, status_code=status.HTTP_201_CREATED)
def create_session(request: schemas.SessionCreate, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    code = None
    for _ in range(SESSION_CODE_ATTEMPTS):
        candidate = generate_session_code(schemas.SESSION_CODE_LENGTH)
        taken = db.query(models.PlanningSession).filter_by(code=candidate).first()
        if not taken:
            code = candidate
            break
    if code is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session"
        )

    session = models.PlanningSession(
        id=generate_id(),
        name=request.name,
        code=code,
    )
    db.add(session)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create session %s", request.name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session"
        )
    db.refresh(session)
    logger.info("Created session %s (%s)", session.code, session.name)
    return load_or_500(store, session)


@app.get("/sessions/{code}", response_model=schemas.PlanningSession)
def get_session(code: str, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    """
    Session with its stories in creation order.
    Clients poll this to pick up changes made by others.
    """
    row = get_session_by_code_or_404(db, code)
    return load_or_500(store, row)


@app.post("/sessions/{session_id}/stories", response_model=schemas.PlanningSession, status_code=status.HTTP_201_CREATED)
def add_story(session_id: str, request: schemas.StoryCreate, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    row = get_session_or_404(db, store, session_id)

    # The first story of a session becomes its anchor
    is_first_story = len(row.stories) == 0
    now = models.utcnow()
    story = models.Story(
        id=generate_id(),
        title=request.title,
        description=request.description,
        position_x=int(position.ANCHOR_POSITION.x),
        position_y=int(position.ANCHOR_POSITION.y),
        is_anchor=is_first_story,
        created_at=now,
        updated_at=now,
    )
    row.stories.append(story)
    if is_first_story:
        row.anchor_story_id = story.id

    logger.info("Adding story %s to session %s", story.id, row.code)
    return commit_session(db, store, row)


@app.patch("/stories/{story_id}")
def update_story(story_id: str, request: schemas.StoryUpdate, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    story = get_story_or_404(db, store, story_id)

    if request.title is not None:
        story.title = request.title
    if request.description is not None:
        story.description = request.description
    story.updated_at = models.utcnow()

    commit_session(db, store, story.session)
    db.refresh(story)
    return {"message": "Story updated successfully", "story": schemas.Story.model_validate(story)}


@app.put("/stories/{story_id}/position")
def update_story_position(story_id: str, request: schemas.PositionUpdate, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    story = get_story_or_404(db, store, story_id)

    stored = position.round_position(request)
    story.position_x = int(stored.x)
    story.position_y = int(stored.y)
    story.updated_at = models.utcnow()

    commit_session(db, store, story.session)
    db.refresh(story)
    return {"message": "Story position updated successfully", "story": schemas.Story.model_validate(story)}


@app.delete("/stories/{story_id}")
def delete_story(story_id: str, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    story = get_story_or_404(db, store, story_id)
    row = story.session

    if story.is_anchor and len(row.stories) > 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete anchor story when other stories exist"
        )

    row.stories.remove(story)
    if story.is_anchor:
        row.anchor_story_id = None

    commit_session(db, store, row)
    logger.info("Deleted story %s from session %s", story_id, row.code)
    return {"message": "Story deleted successfully", "id": story_id}


@app.put("/sessions/{session_id}/anchor", response_model=schemas.PlanningSession)
def set_anchor_story(session_id: str, request: schemas.AnchorUpdate, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    """
    Make another story the anchor and move every story so that positions
    stay the same relative to it.
    """
    row = get_session_or_404(db, store, session_id)
    current = store.get(row.code)

    try:
        adjusted = position.adjust_stories_relative_to_new_anchor(
            current.stories, request.story_id, request.position)
    except position.AnchorNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found"
        )

    rows_by_id = {s.id: s for s in row.stories}
    now = models.utcnow()
    for story in adjusted:
        stored = position.round_position(story.position)
        story_row = rows_by_id[story.id]
        story_row.position_x = int(stored.x)
        story_row.position_y = int(stored.y)
        story_row.is_anchor = story.is_anchor
        story_row.updated_at = now
    row.anchor_story_id = request.story_id

    logger.info("Session %s anchor set to story %s", row.code, request.story_id)
    return commit_session(db, store, row)


@app.put("/sessions/{session_id}/anchor-points", response_model=schemas.PlanningSession)
def set_anchor_story_points(session_id: str, request: schemas.AnchorPointsUpdate, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    row = get_session_or_404(db, store, session_id)
    row.anchor_story_points = request.points
    return commit_session(db, store, row)


def load_session_by_code(db: Session, store: PlanningStore, code: str) -> schemas.PlanningSession:
    # The database is authoritative; other workers may have written since the last load
    return load_or_500(store, get_session_by_code_or_404(db, code))


def story_points_or_500(session: schemas.PlanningSession, story: schemas.Story):
    try:
        return position.calculate_story_points(story, session.anchor_story_points)
    except position.InvalidStoryPointsError:
        logger.exception("Session %s has invalid anchor points", session.code)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Anchor story points are not a Fibonacci number"
        )


@app.get("/sessions/{code}/estimates", response_model=schemas.SessionEstimates)
def get_estimates(code: str, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    session = load_session_by_code(db, store, code)

    estimates = [
        schemas.StoryEstimate(
            story_id=story.id,
            title=story.title,
            is_anchor=story.is_anchor,
            position=story.position,
            position_score=position.calculate_position_score(story.position),
            story_points=story_points_or_500(session, story),
            screen_position=position.position_to_percentage(story.position),
        )
        for story in session.stories
    ]

    return schemas.SessionEstimates(
        session_id=session.id,
        code=session.code,
        anchor_story_points=session.anchor_story_points,
        estimates=estimates,
    )


@app.get("/sessions/{code}/export", response_model=schemas.ExportData)
def export_session(code: str, db: Session = Depends(get_db), store: PlanningStore = Depends(get_store)):
    """Stories ordered by distance from the anchor, nearest first."""
    session = load_session_by_code(db, store, code)
    anchor = next((s for s in session.stories if s.is_anchor), None)
    origin = anchor.position if anchor else position.ANCHOR_POSITION

    stories = [
        schemas.ExportStory(
            title=story.title,
            description=story.description,
            story_points=story_points_or_500(session, story),
            relative_position=round(position.calculate_distance(story.position, origin), 2),
        )
        for story in position.sort_by_distance_from_anchor(session.stories, origin)
    ]
    return schemas.ExportData(
        session_name=session.name,
        exported_at=datetime.now(timezone.utc),
        stories=stories,
        total_stories=len(stories),
    )
