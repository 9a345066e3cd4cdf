import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from liffmember.api.routes_chat import router as chat_router
from liffmember.api.routes_faq import router as faq_router
from liffmember.api.routes_rewards import router as rewards_router
from liffmember.config import get_config
from liffmember.middleware.rate_limiter import RateLimitMiddleware
from liffmember.rewards.repository import close_rewards_client

VERSION = "0.1.0"

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)


@asynccontextmanager
async def lifespan(app):
    yield
    await close_rewards_client()


def create_app() -> FastAPI:
    config = get_config()
    app = FastAPI(title="LIFF Membership Backend", version=VERSION, lifespan=lifespan)

    if config.rate_limit.enabled:
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=config.rate_limit.max_requests,
            window_seconds=config.rate_limit.window_seconds,
            paths=config.rate_limit.paths,
            trust_forwarded=config.rate_limit.trust_forwarded,
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(chat_router)
    app.include_router(rewards_router)
    app.include_router(faq_router)

    @app.api_route("/api/health", methods=["GET", "HEAD"])
    async def health_check(response: Response):
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
