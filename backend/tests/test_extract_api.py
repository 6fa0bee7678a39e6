import json
from io import BytesIO

from PIL import Image

from spelling_practice.routers import extract
from spelling_practice.security import RateLimiter
from spelling_practice.settings import settings
from spelling_practice.words import LOW_WORD_COUNT_WARNING

from conftest import ORIGIN


URL = "/api/extract-words"
IMAGE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg=="


def test_preflight(client):
    headers = {"Origin": ORIGIN, "Access-Control-Request-Method": "POST", "Access-Control-Request-Headers": "Content-Type"}
    r = client.options(URL, headers=headers)
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == ORIGIN
    assert "POST" in r.headers["access-control-allow-methods"]
    assert r.headers["access-control-max-age"] == "86400"


def test_preflight_from_unknown_origin(client):
    headers = {"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"}
    r = client.options(URL, headers=headers)
    assert r.status_code == 400
    assert "access-control-allow-origin" not in r.headers


def test_framework_errors_carry_cors_headers(client):
    r = client.get(URL, headers={"Origin": ORIGIN})
    assert r.status_code == 405
    assert r.headers["access-control-allow-origin"] == ORIGIN


def test_missing_origin_is_forbidden(client, fake_gemini):
    r = client.post(URL, json={"imageData": IMAGE})
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden: Missing origin header"}
    assert fake_gemini.requests == []


def test_unknown_origin_is_forbidden(client, fake_gemini):
    r = client.post(URL, json={"imageData": IMAGE}, headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden: Unauthorized origin"
    assert "access-control-allow-origin" not in r.headers


def test_wildcard_origin(client, fake_gemini, monkeypatch):
    monkeypatch.setattr(settings, "allowed_origins_raw", "https://myapp.com, *.vercel.app")
    origin = "https://spelling-words.vercel.app"
    r = client.post(URL, json={"imageData": IMAGE}, headers={"Origin": origin})
    assert r.status_code == 200


def test_extracts_and_cleans_words(client, fake_gemini, origin_headers):
    fake_gemini.respond_with('```json\n["Apple.", "banana", "42", "b", "Challenge!"]\n```')
    r = client.post(URL, json={"imageData": IMAGE}, headers=origin_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["words"] == ["apple", "banana", "challenge"]
    assert body["count"] == 3
    assert body["warning"] == LOW_WORD_COUNT_WARNING
    assert r.headers["x-ratelimit-limit"] == str(extract._rate_limiter.limit)
    assert r.headers["access-control-allow-origin"] == ORIGIN
    assert "X-RateLimit-Remaining" in r.headers["access-control-expose-headers"]

    image_part = fake_gemini.last_payload["contents"][0]["parts"][1]
    assert image_part["inline_data"]["data"] == "iVBORw0KGgoAAAANSUhEUg=="


def test_no_warning_for_full_sheet(client, fake_gemini, origin_headers):
    words = [f"word{chr(97 + i)}" for i in range(12)]
    fake_gemini.respond_with(json.dumps(words))
    r = client.post(URL, json={"imageData": IMAGE}, headers=origin_headers)
    assert r.json()["warning"] is None
    assert r.json()["count"] == 12


def test_missing_image_data(client, fake_gemini, origin_headers):
    r = client.post(URL, json={}, headers=origin_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing imageData in request body"}


def test_empty_data_url(client, fake_gemini, origin_headers):
    r = client.post(URL, json={"imageData": "data:image/png;base64,"}, headers=origin_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid image data"}


def test_missing_api_key(client, origin_headers, monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)
    r = client.post(URL, json={"imageData": IMAGE}, headers=origin_headers)
    assert r.status_code == 500
    assert r.json() == {"error": "Server configuration error: Missing API key"}


def test_unparseable_model_output(client, fake_gemini, origin_headers):
    fake_gemini.respond_with("Sorry, I cannot read this sheet.")
    r = client.post(URL, json={"imageData": IMAGE}, headers=origin_headers)
    assert r.status_code == 500
    assert r.json() == {"error": "Could not parse word list from API response"}


def test_model_output_not_an_array(client, fake_gemini, origin_headers):
    fake_gemini.respond_with('{"words": ["apple"]}')
    r = client.post(URL, json={"imageData": IMAGE}, headers=origin_headers)
    assert r.status_code == 500
    assert r.json() == {"error": "API did not return a valid word array"}


def test_upstream_errors(client, fake_gemini, origin_headers):
    cases = [
        (401, 500, "Invalid API key"),
        (429, 429, "API quota exceeded. Please try again later"),
        (503, 500, "Failed to process image"),
    ]
    for upstream, expected_status, message in cases:
        fake_gemini.respond_with("upstream", status_code=upstream)
        r = client.post(URL, json={"imageData": IMAGE}, headers=origin_headers)
        assert r.status_code == expected_status
        assert r.json() == {"error": message}


def test_rate_limit(client, fake_gemini, origin_headers, monkeypatch):
    monkeypatch.setattr(extract, "_rate_limiter", RateLimiter(2, 60))

    for remaining in ("1", "0"):
        r = client.post(URL, json={}, headers=origin_headers)
        assert r.status_code == 400
        assert r.headers["x-ratelimit-remaining"] == remaining

    r = client.post(URL, json={}, headers=origin_headers)
    assert r.status_code == 429
    assert r.json()["error"].startswith("Too many requests")
    assert 0 < r.json()["retryAfter"] <= 60

    # a different forwarded client is counted separately
    other = {**origin_headers, "X-Forwarded-For": "203.0.113.9"}
    assert client.post(URL, json={}, headers=other).status_code == 400


def _png_bytes():
    out = BytesIO()
    Image.new("RGB", (64, 32), (200, 200, 200)).save(out, format="PNG")
    return out.getvalue()


def test_upload_image(client, fake_gemini, origin_headers):
    files = {"file": ("sheet.png", _png_bytes(), "image/png")}
    r = client.post(URL + "/upload", files=files, headers=origin_headers)

    assert r.status_code == 200
    assert r.json()["words"] == ["apple", "banana"]
    image_part = fake_gemini.last_payload["contents"][0]["parts"][1]
    assert image_part["inline_data"]["mime_type"] == "image/png"
    assert image_part["inline_data"]["data"]


def test_upload_rejects_non_images(client, fake_gemini, origin_headers):
    files = {"file": ("words.txt", b"apple banana", "text/plain")}
    r = client.post(URL + "/upload", files=files, headers=origin_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Please select an image file."}
    assert fake_gemini.requests == []


def test_upload_without_file(client, fake_gemini, origin_headers):
    r = client.post(URL + "/upload", headers=origin_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Please select an image file."}


def test_upload_checks_origin_before_the_form(client, fake_gemini):
    r = client.post(URL + "/upload")
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden: Missing origin header"}

    r = client.post(URL + "/upload", headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden: Unauthorized origin"}


def test_upload_is_rate_limited(client, fake_gemini, origin_headers, monkeypatch):
    monkeypatch.setattr(extract, "_rate_limiter", RateLimiter(1, 60))
    files = {"file": ("sheet.png", _png_bytes(), "image/png")}

    assert client.post(URL + "/upload", files=files, headers=origin_headers).status_code == 200
    r = client.post(URL + "/upload", files=files, headers=origin_headers)
    assert r.status_code == 429
    assert r.headers["x-ratelimit-remaining"] == "0"
    assert len(fake_gemini.requests) == 1


def test_upload_unreadable_image(client, fake_gemini, origin_headers):
    files = {"file": ("sheet.png", b"not really a png", "image/png")}
    r = client.post(URL + "/upload", files=files, headers=origin_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid image data"}
    assert fake_gemini.requests == []
