import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .api import api_router
from .services import AuthService


# Reuse uvicorn's logger so startup diagnostics are visible in normal dev logs.
logger = logging.getLogger("uvicorn.error")


def configuration_status() -> dict[str, bool]:
    """Which external identities are configured; missing ones degrade specific features."""
    return {
        "firebase": AuthService.is_configured(),
        "youtube_refresh": bool(settings.google_client_id and settings.google_client_secret),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    status = configuration_status()
    app.state.configuration = status
    if not status["firebase"]:
        logger.warning("DUALPOST_FIREBASE_PROJECT_ID is not set; every API call will be rejected as unauthorized")
    if not status["youtube_refresh"]:
        logger.warning("Google OAuth client is not configured; expired YouTube tokens cannot be refreshed")
    logger.info(
        "Dualpost ready (graph=%s, deadline=%ss, data_dir=%s)",
        settings.meta_graph_base,
        settings.publish_deadline_seconds,
        settings.data_dir,
    )
    yield


app = FastAPI(
    title="Dualpost",
    description="Publish one video to YouTube Shorts and Facebook Reels in a single action",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "configuration": configuration_status()}
