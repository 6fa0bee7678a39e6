from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings
from .words import EXTRACTION_PROMPT, clean_words, parse_word_array

logger = logging.getLogger(__name__)


class GeminiError(RuntimeError):
	pass


class GeminiConfigurationError(GeminiError):
	pass


class GeminiAuthError(GeminiError):
	pass


class GeminiQuotaError(GeminiError):
	pass


class GeminiResponseError(GeminiError):
	pass


def _classify_status_error(err: httpx.HTTPStatusError) -> GeminiError:
	status = err.response.status_code
	body = err.response.text or ""
	if status in (401, 403) or "API key" in body:
		return GeminiAuthError(f"Gemini rejected the API key ({status})")
	if status == 429 or "quota" in body.lower():
		return GeminiQuotaError(f"Gemini quota exceeded ({status})")
	return GeminiError(f"Gemini request failed ({status})")


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise GeminiConfigurationError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=settings.gemini_timeout_seconds, transport=transport)

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def generate_multimodal(self, parts: List[Dict[str, Any]], *, role: str = "user") -> str:
		payload: Dict[str, Any] = {"contents": [{"role": role, "parts": parts}]}
		return await self._post_payload(payload)

	async def extract_words(self, image_base64: str, mime_type: str = "image/png") -> List[str]:
		parts: List[Dict[str, Any]] = [
			{"text": EXTRACTION_PROMPT},
			{"inline_data": {"mime_type": mime_type, "data": image_base64}},
		]
		text = await self.generate_multimodal(parts)
		raw_words = parse_word_array(text)
		words = clean_words(raw_words)
		logger.info("Extracted %d words (%d returned by model)", len(words), len(raw_words))
		return words

	async def _post_payload(self, payload: Dict[str, Any]) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			raise _classify_status_error(http_err) from http_err
		except httpx.RequestError as net_err:
			raise GeminiError(f"Gemini request failed: {net_err}") from net_err
		try:
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except Exception as e:
			raise GeminiResponseError(f"Unexpected Gemini response: {r.text}") from e

	async def aclose(self) -> None:
		await self._client.aclose()
