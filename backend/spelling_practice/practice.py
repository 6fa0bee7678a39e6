"""
Practice word scheduler.

Words are drawn in random order without repeats until every word of the list
has been drawn once; the pool is then refilled with a fresh shuffle and the
drill carries on. The "words spoken" counter keeps counting across cycles, so
callers rendering "Word N of M" will see N grow past M after the first cycle.

Not thread-safe: callers that share one scheduler must serialise access.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class InvalidSessionConfiguration(ValueError):
    """Raised when a practice session cannot be built from the given words."""


def shuffle_words(words: Sequence[str], rng: random.Random) -> List[str]:
    # Fisher-Yates, walking down from the last index
    shuffled = list(words)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class PracticeScheduler:
    def __init__(self, words: Optional[Sequence[str]], rng: Optional[random.Random] = None) -> None:
        if not words:
            raise InvalidSessionConfiguration("Cannot create practice session with empty word list")
        self._rng: random.Random = rng if rng is not None else random.Random()
        self.all_words: tuple[str, ...] = tuple(words)
        self.pool: List[str] = shuffle_words(self.all_words, self._rng)
        self.spoken_count: int = 0
        self.current_word: Optional[str] = None

    def next_word(self) -> str:
        if not self.pool:
            self.pool = shuffle_words(self.all_words, self._rng)
            logger.debug("All %d words used - reshuffling", len(self.all_words))

        # Swap-remove a uniformly chosen remaining entry
        index = self._rng.randrange(len(self.pool))
        self.pool[index], self.pool[-1] = self.pool[-1], self.pool[index]
        word = self.pool.pop()

        self.spoken_count += 1
        self.current_word = word
        return word

    def repeat_current_word(self) -> Optional[str]:
        """Return the last drawn word, or None before the first draw."""
        return self.current_word

    def has_current_word(self) -> bool:
        return self.current_word is not None

    def total_word_count(self) -> int:
        return len(self.all_words)

    def spoken(self) -> int:
        return self.spoken_count

    def remaining_in_cycle(self) -> int:
        return len(self.pool)

    def reset(self) -> None:
        self.pool = shuffle_words(self.all_words, self._rng)
        self.spoken_count = 0
        self.current_word = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "spoken": self.spoken_count,
            "total": self.total_word_count(),
            "remaining": self.remaining_in_cycle(),
            "current_word": self.current_word,
        }
