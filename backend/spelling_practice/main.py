import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .cleanup import purge_idle_sessions
from .security import cors_options
from .settings import settings
from .routers import health, extract, practice

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Spelling Practice API")
# Wraps every response, including the 405/422 ones FastAPI produces itself
app.add_middleware(CORSMiddleware, **cors_options(settings.allowed_origins))
app.include_router(health.router)
app.include_router(extract.router)
app.include_router(practice.router)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


def _purge_sessions() -> None:
	try:
		purge_idle_sessions(practice._sessions, settings.session_idle_seconds)
	except Exception:
		logger.exception("Practice session cleanup failed")


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(settings.session_cleanup_interval_seconds)
		_purge_sessions()


@app.on_event("startup")
async def startup_event():
	if not settings.gemini_api_key:
		logger.warning("GEMINI_API_KEY is not set; /api/extract-words will return 500")
	# Run once at startup, then on the interval
	_purge_sessions()
	app.state.cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	task = getattr(app.state, "cleanup_task", None)
	if task is None:
		return
	task.cancel()
	try:
		await task
	except asyncio.CancelledError:
		pass
