import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import __version__
from .config import CONFIG, configure_logging
from .database import init_db
from .errors import BootseeError, bootsee_error_handler
from .routers import ALL_ROUTERS
from .security import init_firebase

logger = logging.getLogger(__name__)


def setup_dirs():
    for subdir in ("documents", "faces"):
        os.makedirs(os.path.join(CONFIG["UPLOADS_DIR"], subdir), exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    init_firebase()
    logger.info("%s %s started", CONFIG["PROJECT_NAME"], __version__)
    yield


def create_app(use_lifespan: bool = True) -> FastAPI:
    configure_logging()
    setup_dirs()
    app = FastAPI(title=CONFIG["PROJECT_NAME"], version=__version__, lifespan=lifespan if use_lifespan else None)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                       allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(BootseeError, bootsee_error_handler)
    app.mount("/static", StaticFiles(directory=CONFIG["UPLOADS_DIR"]), name="static")
    for router in ALL_ROUTERS:
        app.include_router(router)

    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok", "name": CONFIG["PROJECT_NAME"], "time": datetime.utcnow().isoformat()}

    return app


app = create_app()
