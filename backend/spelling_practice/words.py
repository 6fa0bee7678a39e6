from __future__ import annotations

import json
import re
from typing import Any, Iterable, List, Optional


LOW_WORD_COUNT_THRESHOLD = 10
LOW_WORD_COUNT_WARNING = "Low word count detected. Consider retaking if this seems incorrect."

EXTRACTION_PROMPT = """
You are analyzing an image of a spelling word practice sheet.

Extract ALL spelling words from this image. The sheet may contain:
- Numbered words (e.g., "1. apple", "2. banana")
- Challenge words (labeled as "Challenge Word:")
- Content words (labeled as "Content Word:")
- Bonus words (labeled as "Bonus Word:" or "bonus:")

IMPORTANT:
- Extract ONLY the spelling words themselves, not the numbers or labels
- Return the words as a valid JSON array of strings
- Each word should be lowercase
- Do not include any explanatory text, just the JSON array

Example output format:
["apple", "banana", "challenge", "telephone", "dictionary"]
""".strip()

_LEADING_PUNCT = re.compile(r"^[.,:;!?]+")
_TRAILING_PUNCT = re.compile(r"[.,:;!?]+$")
_LETTER = re.compile(r"[a-zA-Z]")


class WordListParseError(ValueError):
	"""Model output did not contain a JSON word array."""


class NotAWordArray(WordListParseError):
	"""Model output parsed, but to something other than an array."""


def clean_word(value: Any) -> str:
	if not isinstance(value, str):
		return ""
	word = value.strip()
	word = _LEADING_PUNCT.sub("", word)
	word = _TRAILING_PUNCT.sub("", word)
	return word.lower()


def is_valid_word(word: str) -> bool:
	if not word or len(word) < 2:
		return False
	letters = len(_LETTER.findall(word))
	if letters == 0:
		return False
	# At least half of the characters must be letters
	return letters >= len(word) / 2


def clean_words(values: Iterable[Any]) -> List[str]:
	cleaned = (clean_word(v) for v in values)
	return [w for w in cleaned if is_valid_word(w)]


def parse_word_array(text: str) -> List[Any]:
	data: Any
	try:
		data = json.loads(text)
	except Exception:
		# Models sometimes wrap the array in prose or a code fence
		match = re.search(r"\[[\s\S]*\]", text or "")
		if not match:
			raise WordListParseError("Could not parse word list from API response")
		try:
			data = json.loads(match.group(0))
		except Exception as e:
			raise WordListParseError("Could not parse word list from API response") from e
	if not isinstance(data, list):
		raise NotAWordArray("API did not return a valid word array")
	return data


def low_count_warning(words: List[str]) -> Optional[str]:
	if len(words) < LOW_WORD_COUNT_THRESHOLD:
		return LOW_WORD_COUNT_WARNING
	return None
