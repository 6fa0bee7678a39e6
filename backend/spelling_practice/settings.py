from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000"


class Settings(BaseSettings):
	# Either name is accepted; GOOGLE_GENERATIVE_AI_API_KEY is what the AI SDK deployments used
	gemini_api_key: str | None = Field(
		default=None,
		validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
	)
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Vision-capable model used for word extraction
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	gemini_timeout_seconds: float = Field(default=30.0, validation_alias="GEMINI_TIMEOUT_SECONDS")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Comma-separated; "*.example.app" entries match any subdomain
	allowed_origins_raw: str = Field(default=DEFAULT_ALLOWED_ORIGINS, validation_alias="ALLOWED_ORIGINS")

	# Per-IP limit on the extraction endpoint
	rate_limit_max_requests: int = Field(default=10, validation_alias="RATE_LIMIT_MAX_REQUESTS")
	rate_limit_window_seconds: float = Field(default=60.0, validation_alias="RATE_LIMIT_WINDOW_SECONDS")

	# Practice sessions live in memory only
	session_idle_seconds: int = Field(default=6 * 60 * 60, validation_alias="SESSION_IDLE_SECONDS")
	session_cleanup_interval_seconds: int = Field(default=15 * 60, validation_alias="SESSION_CLEANUP_INTERVAL_SECONDS")

	# Uploaded images are downscaled so the longest side fits
	max_image_dimension: int = Field(default=1920, validation_alias="MAX_IMAGE_DIMENSION")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def allowed_origins(self) -> List[str]:
		return [o.strip() for o in self.allowed_origins_raw.split(",") if o.strip()]


settings = Settings()
