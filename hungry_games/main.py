import logging
import os

from fastapi import FastAPI

from hungry_games.api.routes import router
from hungry_games.templates.startup import init_templates_for_app

app = FastAPI(title="hungry-games", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=os.environ.get("HUNGRY_GAMES_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_templates_for_app()
    logger.info("Event templates loaded")


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "hungry-games", "version": "0.1.0"}
