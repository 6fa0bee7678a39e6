from __future__ import annotations

import base64
from io import BytesIO
from typing import List

from PIL import Image, UnidentifiedImageError

from .settings import settings

# Contrast/brightness boost applied before extraction; helps with phone photos of paper sheets
CONTRAST = 50
BRIGHTNESS = 10


class InvalidImageData(ValueError):
	pass


def split_data_url(image_data: str) -> str:
	"""Strip a ``data:image/...;base64,`` prefix if present and return the base64 payload."""
	payload = image_data.split(",", 1)[1] if "," in image_data else image_data
	payload = payload.strip()
	if not payload:
		raise InvalidImageData("Invalid image data")
	return payload


def _channel_table() -> List[int]:
	factor = (259 * (CONTRAST + 255)) / (255 * (259 - CONTRAST))
	table: List[int] = []
	for value in range(256):
		contrasted = max(0, min(255, round(factor * (value - 128) + 128)))
		table.append(max(0, min(255, contrasted + BRIGHTNESS)))
	return table


def _fit_within(width: int, height: int, limit: int) -> tuple[int, int]:
	if width <= limit and height <= limit:
		return width, height
	if width > height:
		return limit, max(1, round(height / width * limit))
	return max(1, round(width / height * limit)), limit


def preprocess_image(raw: bytes, *, max_dimension: int | None = None) -> bytes:
	"""Downscale, boost contrast and brightness, and re-encode as PNG."""
	limit = max_dimension or settings.max_image_dimension
	try:
		img = Image.open(BytesIO(raw))
		img.load()
	except (UnidentifiedImageError, OSError) as e:
		raise InvalidImageData(f"Failed to read image: {e}") from e

	has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
	img = img.convert("RGBA" if has_alpha else "RGB")

	size = _fit_within(img.width, img.height, limit)
	if size != (img.width, img.height):
		img = img.resize(size, Image.Resampling.LANCZOS)

	table = _channel_table()
	if has_alpha:
		# Alpha passes through untouched
		img = img.point(table * 3 + list(range(256)))
	else:
		img = img.point(table * 3)

	out = BytesIO()
	img.save(out, format="PNG")
	return out.getvalue()


def to_base64(raw: bytes) -> str:
	return base64.b64encode(raw).decode("ascii")

