from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nerdtalk.core.errors import NerdTalkError
from nerdtalk.core.settings import S
from nerdtalk.metrics import METRICS_ENABLED, metrics_endpoint, metrics_middleware, set_app_info
from nerdtalk.routers.communities import router as communities_router
from nerdtalk.routers.nerdtalks import router as nerdtalks_router
from nerdtalk.routers.users import router as users_router
from nerdtalk.routers.webhooks import router as webhooks_router

logger = logging.getLogger(__name__)


async def nerdtalk_error_handler(request: Request, exc: NerdTalkError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app() -> FastAPI:
    logging.basicConfig(
        level=S.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="NerdTalk API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if METRICS_ENABLED:
        app.middleware("http")(metrics_middleware)
        set_app_info(app.title, app.version)
        app.get("/metrics")(metrics_endpoint)

    app.add_exception_handler(NerdTalkError, nerdtalk_error_handler)

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    app.include_router(nerdtalks_router)
    app.include_router(users_router)
    app.include_router(communities_router)
    app.include_router(webhooks_router)

    return app

app = create_app()
