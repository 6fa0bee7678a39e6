from __future__ import annotations
import logging
import time
from typing import Dict, Optional

from .routers.practice import PracticeSessionState

logger = logging.getLogger(__name__)


def purge_idle_sessions(sessions: Dict[str, PracticeSessionState], max_idle_seconds: float, now: Optional[float] = None) -> int:
	current = time.time() if now is None else now
	threshold = current - max_idle_seconds
	stale = [sid for sid, state in sessions.items() if state.last_activity_at < threshold]
	for sid in stale:
		sessions.pop(sid, None)
	if stale:
		logger.info("Purged %d idle practice sessions", len(stale))
	return len(stale)
