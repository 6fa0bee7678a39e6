from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from ..practice import InvalidSessionConfiguration, PracticeScheduler


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/practice", tags=["practice"])


class StartRequest(BaseModel):
    words: List[str] = Field(default_factory=list, description="Words confirmed by the user after extraction")


class SessionRequest(BaseModel):
    session_id: str


class SessionStatus(BaseModel):
    session_id: str
    total: int
    spoken: int
    remaining: int
    can_repeat: bool
    counter_label: str


class WordResponse(SessionStatus):
    word: Optional[str] = None


class PracticeSessionState:
    def __init__(self, scheduler: PracticeScheduler) -> None:
        self.session_id: str = uuid.uuid4().hex
        self.scheduler: PracticeScheduler = scheduler
        self.lock: asyncio.Lock = asyncio.Lock()
        self.created_at: float = time.time()
        self.last_activity_at: float = self.created_at

    def touch(self) -> None:
        self.last_activity_at = time.time()


_sessions: Dict[str, PracticeSessionState] = {}


def counter_label(spoken: int, total: int) -> str:
    return f"Word {spoken} of {total}"


def _status(state: PracticeSessionState) -> SessionStatus:
    s = state.scheduler
    return SessionStatus(
        session_id=state.session_id,
        total=s.total_word_count(),
        spoken=s.spoken(),
        remaining=s.remaining_in_cycle(),
        can_repeat=s.has_current_word(),
        counter_label=counter_label(s.spoken(), s.total_word_count()),
    )


def _with_word(state: PracticeSessionState, word: Optional[str]) -> WordResponse:
    return WordResponse(word=word, **_status(state).model_dump())


def _get_session(session_id: str) -> PracticeSessionState:
    state = _sessions.get(session_id)
    if not state:
        raise HTTPException(status_code=404, detail="Session not found or expired")
    state.touch()
    return state


@router.post("/start", response_model=SessionStatus)
async def start(req: StartRequest):
    # Words were already filtered at extraction and confirmed by the user; only normalise them
    words = [w.strip().lower() for w in req.words if w.strip()]
    try:
        scheduler = PracticeScheduler(words)
    except InvalidSessionConfiguration as e:
        raise HTTPException(status_code=400, detail=str(e))
    state = PracticeSessionState(scheduler)
    _sessions[state.session_id] = state
    logger.info("Started practice session %s with %d words", state.session_id, len(words))
    return _status(state)


@router.post("/next", response_model=WordResponse)
async def next_word(req: SessionRequest):
    state = _get_session(req.session_id)
    async with state.lock:
        word = state.scheduler.next_word()
        return _with_word(state, word)


@router.post("/repeat", response_model=WordResponse)
async def repeat_word(req: SessionRequest):
    # word is null until the first /next; the client keeps its repeat button disabled
    state = _get_session(req.session_id)
    async with state.lock:
        return _with_word(state, state.scheduler.repeat_current_word())


@router.post("/reset", response_model=SessionStatus)
async def reset(req: SessionRequest):
    state = _get_session(req.session_id)
    async with state.lock:
        logger.debug("Resetting session %s from %s", state.session_id, state.scheduler.snapshot())
        state.scheduler.reset()
        return _status(state)


@router.get("/{session_id}", response_model=SessionStatus)
async def status(session_id: str):
    return _status(_get_session(session_id))


@router.delete("/{session_id}", status_code=204)
async def discard(session_id: str):
    try:
        del _sessions[session_id]
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found or expired")
    logger.info("Discarded practice session %s", session_id)
    return Response(status_code=204)
