import logging
from collections import OrderedDict
from contextlib import contextmanager
from typing import Callable, Optional

import schemas

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 256


def _validate(data) -> schemas.PlanningSession:
    # model_validate passes model instances through untouched
    if isinstance(data, schemas.PlanningSession):
        data = data.model_dump()
    return schemas.PlanningSession.model_validate(data)


class PlanningStore:
    """
    Cache of validated planning sessions keyed by join code.

    One instance lives on the application and is handed to request handlers
    as a dependency. A session enters the cache when it is loaded and leaves
    it when cleared or when it is the least recently used of more than
    ``max_sessions`` cached sessions.
    """

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, schemas.PlanningSession]" = OrderedDict()

    def __len__(self):
        return len(self._sessions)

    def get(self, code: str) -> Optional[schemas.PlanningSession]:
        session = self._sessions.get(code)
        if session is not None:
            self._sessions.move_to_end(code)
        return session

    def load(self, data) -> schemas.PlanningSession:
        """Validate raw session data (dict, ORM row or model) and cache it."""
        session = _validate(data)
        self._put(session)
        return session

    def clear_session(self, code: str) -> None:
        self._sessions.pop(code, None)

    def clear(self) -> None:
        self._sessions.clear()

    def _put(self, session: schemas.PlanningSession) -> None:
        self._sessions[session.code] = session
        self._sessions.move_to_end(session.code)
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug("Evicted session %s from the store", evicted)

    @contextmanager
    def optimistic(
        self,
        code: str,
        update: Callable[[schemas.PlanningSession], schemas.PlanningSession],
    ):
        """
        Apply a speculative update to a cached session.

        The updated session is cached and yielded while the caller persists
        the change. If the block raises, the previous snapshot is put back
        and the exception propagates.
        """
        previous = self.get(code)
        if previous is None:
            raise KeyError(f"Session {code} is not loaded")

        speculative = _validate(update(previous))
        self._put(speculative)
        try:
            yield speculative
        except Exception:
            logger.warning("Rolling back optimistic update of session %s", code)
            self._put(previous)
            raise
