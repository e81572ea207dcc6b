import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI

from database import init_models
from settings import LOGGING_CONFIG
from turnier.router import router as turnier_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.config.dictConfig(LOGGING_CONFIG)
    await init_models()
    logger.info("State tables ready")
    yield


app = FastAPI(title="Holland-Turnier", lifespan=lifespan)
app.include_router(turnier_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
