import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request

from portal.database import DB_NAME, init_db
from portal.models.config import Settings
from portal.routes import health, openlist_api, subscribe
from portal.services.auth_service import AuthService
from portal.services.config_service import ConfigService
from portal.services.http_client import HttpClientService
from portal.services.live_service import LiveService
from portal.services.openlist_client import OpenListClient
from portal.services.openlist_service import OpenListService
from portal.services.site_service import SiteService
from portal.services.subscription_service import SubscriptionService

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown"""
    settings: Settings = app.state.settings

    # Startup
    os.makedirs(settings.data_dir, exist_ok=True)
    init_db(os.path.join(settings.data_dir, DB_NAME))
    app.state.config_service.load()
    logger.info(f"Portal {APP_VERSION} started with data dir {settings.data_dir}")

    yield

    # Shutdown
    await app.state.http_client.close()
    logger.info("Application shutdown complete")


def create_app(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Build the app with every service attached to ``app.state``."""
    db_path = os.path.join(settings.data_dir, DB_NAME)

    cfg = ConfigService(settings.data_dir)
    http = HttpClientService(transport=transport)
    auth = AuthService(db_path, settings.root_username)
    openlist = OpenListService(cfg, OpenListClient(http))
    sites = SiteService(cfg, db_path)
    lives = LiveService(cfg, http)

    app = FastAPI(title="Media Portal", version=APP_VERSION, lifespan=lifespan)

    # Attach state for DI
    app.state.settings = settings
    app.state.config_service = cfg
    app.state.http_client = http
    app.state.auth_service = auth
    app.state.openlist_service = openlist
    app.state.subscription_service = SubscriptionService(cfg, sites, lives)

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    for r in (health, openlist_api, subscribe):
        app.include_router(r.router)

    return app


app = create_app(Settings.from_env())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "3000")))
