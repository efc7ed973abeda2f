import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import create_tables
from app.dependencies import get_dispatcher, verify_api_key
from app.routers.analyses import router as analyses_router
from app.routers.photos import router as photos_router, public_router as photo_files_router
from app.utils.exceptions import register_exception_handlers

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    yield
    dispatcher = get_dispatcher()
    drain = getattr(dispatcher, "drain", None)
    if drain is not None:
        await drain()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Yard Analysis API",
    description="Photo-based yard analysis with plant recommendations",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

_api_key_dep = [Depends(verify_api_key)]

app.include_router(analyses_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(photos_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(photo_files_router)


@app.get("/health")
async def health_check():
    return {"status": "success", "data": {"service": "yard-analysis-api", "version": APP_VERSION}, "message": None}
