from __future__ import annotations
import logging
from typing import Callable, Dict, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from ..gemini_client import (
	GeminiAuthError,
	GeminiClient,
	GeminiConfigurationError,
	GeminiQuotaError,
)
from ..imaging import InvalidImageData, preprocess_image, split_data_url, to_base64
from ..security import RateLimiter, client_ip, is_origin_allowed
from ..settings import settings
from ..words import NotAWordArray, WordListParseError, low_count_warning

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["extract"])

_rate_limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)

ClientFactory = Callable[[], GeminiClient]


def get_client_factory() -> ClientFactory:
	return GeminiClient


class ExtractRequest(BaseModel):
	imageData: Optional[str] = None


def _error(status_code: int, message: str, headers: Dict[str, str], **extra) -> JSONResponse:
	return JSONResponse(status_code=status_code, content={"error": message, **extra}, headers=headers)


def _guard(request: Request) -> tuple[Dict[str, str], Optional[JSONResponse]]:
	"""Origin validation and rate limiting shared by both extraction routes.

	CORS response headers come from the middleware; this only decides whether
	the request is served, and returns the rate limit headers to attach.
	"""
	origin = request.headers.get("origin")
	allowed = settings.allowed_origins
	headers: Dict[str, str] = {}

	# Browsers always send Origin on cross-origin fetches; anything without one is refused
	if not origin:
		return headers, _error(403, "Forbidden: Missing origin header", headers)
	if not is_origin_allowed(origin, allowed):
		logger.warning("Blocked request from unauthorized origin: %s", origin)
		return headers, _error(403, "Forbidden: Unauthorized origin", headers)

	ip = client_ip(request.headers, request.client.host if request.client else None)
	limit = _rate_limiter.check(ip)
	headers.update({
		"X-RateLimit-Limit": str(_rate_limiter.limit),
		"X-RateLimit-Remaining": str(limit.remaining),
		"X-RateLimit-Reset": str(limit.reset_in),
	})
	if not limit.allowed:
		logger.warning("Rate limited IP: %s", ip)
		return headers, _error(
			429,
			"Too many requests. Please wait a minute before trying again.",
			headers,
			retryAfter=limit.reset_in,
		)
	return headers, None


async def _extract(factory: ClientFactory, image_base64: str, headers: Dict[str, str]) -> JSONResponse:
	try:
		client = factory()
	except GeminiConfigurationError:
		logger.error("Gemini API key is not configured")
		return _error(500, "Server configuration error: Missing API key", headers)

	try:
		words = await client.extract_words(image_base64)
	except NotAWordArray:
		return _error(500, "API did not return a valid word array", headers)
	except WordListParseError:
		return _error(500, "Could not parse word list from API response", headers)
	except GeminiAuthError:
		logger.exception("Extract words error")
		return _error(500, "Invalid API key", headers)
	except GeminiQuotaError:
		logger.exception("Extract words error")
		return _error(429, "API quota exceeded. Please try again later", headers)
	except Exception:
		logger.exception("Extract words error")
		return _error(500, "Failed to process image", headers)
	finally:
		await client.aclose()

	return JSONResponse(
		status_code=200,
		content={"words": words, "count": len(words), "warning": low_count_warning(words)},
		headers=headers,
	)


@router.post("/extract-words")
async def extract_words(request: Request, factory: ClientFactory = Depends(get_client_factory)):
	headers, rejected = _guard(request)
	if rejected is not None:
		return rejected

	try:
		body = await request.json()
		req = ExtractRequest.model_validate(body if isinstance(body, dict) else {})
	except (ValueError, ValidationError):
		req = ExtractRequest()
	if not req.imageData:
		return _error(400, "Missing imageData in request body", headers)

	try:
		image_base64 = split_data_url(req.imageData)
	except InvalidImageData:
		return _error(400, "Invalid image data", headers)

	return await _extract(factory, image_base64, headers)


@router.post("/extract-words/upload")
async def extract_words_upload(
	request: Request,
	file: Optional[UploadFile] = File(None),
	factory: ClientFactory = Depends(get_client_factory),
):
	headers, rejected = _guard(request)
	if rejected is not None:
		return rejected

	# Checked after the gate so unauthorised callers get 403 rather than a form error
	if file is None or not (file.content_type or "").startswith("image/"):
		return _error(400, "Please select an image file.", headers)
	content = await file.read()
	try:
		processed = await run_in_threadpool(preprocess_image, content)
	except InvalidImageData as e:
		logger.warning("Rejected upload %s: %s", file.filename, e)
		return _error(400, "Invalid image data", headers)

	return await _extract(factory, to_base64(processed), headers)
