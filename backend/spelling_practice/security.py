from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence


RATE_LIMIT_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"]


def is_origin_allowed(origin: Optional[str], allowed: Sequence[str]) -> bool:
	if not origin:
		return False
	for entry in allowed:
		if entry == origin:
			return True
		# "*.vercel.app" style wildcard
		if entry.startswith("*."):
			domain = entry[2:]
			if origin.endswith(domain) and "://" in origin:
				return True
	return False


def cors_options(allowed: Sequence[str]) -> Dict[str, Any]:
	"""Keyword arguments for ``CORSMiddleware`` built from the origin allow-list."""
	exact = [entry for entry in allowed if not entry.startswith("*.")]
	# Same rule as is_origin_allowed: a scheme, then anything ending in the domain
	patterns = [f".+://.*{re.escape(entry[2:])}$" for entry in allowed if entry.startswith("*.")]
	return {
		"allow_origins": exact,
		"allow_origin_regex": "|".join(f"(?:{p})" for p in patterns) or None,
		"allow_methods": ["GET", "POST", "DELETE", "OPTIONS"],
		"allow_headers": ["Content-Type"],
		"expose_headers": RATE_LIMIT_HEADERS,
		"max_age": 86400,
	}


def client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
	forwarded = headers.get("x-forwarded-for")
	if forwarded:
		first = forwarded.split(",")[0].strip()
		if first:
			return first
	return headers.get("x-real-ip") or fallback or "unknown"


@dataclass
class RateLimitResult:
	allowed: bool
	remaining: int
	reset_in: int


class RateLimiter:
	"""Sliding-window request counter keyed by client address.

	State is per process; with several workers each one counts on its own.
	"""

	def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
		self.limit = limit
		self.window_seconds = window_seconds
		self._clock = clock
		self._hits: Dict[str, List[float]] = {}

	def _prune(self, now: float) -> None:
		window_start = now - self.window_seconds
		for key in list(self._hits):
			recent = [t for t in self._hits[key] if t > window_start]
			if recent:
				self._hits[key] = recent
			else:
				del self._hits[key]

	def check(self, key: str) -> RateLimitResult:
		now = self._clock()
		self._prune(now)
		hits = self._hits.setdefault(key, [])
		if len(hits) >= self.limit:
			oldest = hits[0] if hits else now
			reset_in = math.ceil(oldest + self.window_seconds - now)
			return RateLimitResult(allowed=False, remaining=0, reset_in=reset_in)
		hits.append(now)
		return RateLimitResult(allowed=True, remaining=self.limit - len(hits), reset_in=math.ceil(self.window_seconds))

	def clear(self) -> None:
		self._hits.clear()
