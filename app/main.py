import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.routes import cars, users
from app.db.sessions import init_db, close_db
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.services.asset_manager import AssetManager


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,
)
logger = logging.getLogger("app.main")

assets = AssetManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("%s v%s starting...", settings.APP_NAME, settings.APP_VERSION)
    init_db()
    assets.ensure_directory()
    app.state.assets = assets
    logger.info("Serving uploads from %s at %s", assets.upload_dir, assets.url_prefix)

    yield

    # Shutdown
    close_db()
    logger.info("%s shutdown complete", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Car listing manager with per-user listings and image uploads",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, ms)
    return response


register_exception_handlers(app)

# Register routers
app.include_router(users.router)
app.include_router(cars.router)

# Uploaded images, read-only; the directory is created during startup
app.mount(assets.url_prefix, StaticFiles(directory=str(assets.upload_dir), check_dir=False), name="uploads")


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
