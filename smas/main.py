# smas/main.py
import os
import uvicorn
from fastapi import FastAPI
from smas.routers.auth_router import router as auth_router
from smas.routers.user_router import router as user_router
from smas.routers.playlists_router import router as playlists_router
from smas.routers.sharing_router import router as sharing_router
from smas.routers.contribute_router import router as contribute_router
from smas.routers.spotify_router import router as spotify_router
from smas.infrastructure.database import init_db
from smas.middleware.logging import RequestIdMiddleware
import structlog


def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
    )


configure_structlog()
logger = structlog.get_logger()

app = FastAPI(title="Send Me a Song")

app.add_middleware(RequestIdMiddleware)

app.include_router(auth_router)
app.include_router(user_router)
app.include_router(playlists_router)
app.include_router(sharing_router)
app.include_router(contribute_router)
app.include_router(spotify_router)


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("app_startup")


if __name__ == "__main__":
    uvicorn.run("smas.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
