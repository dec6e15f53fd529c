"""FastAPI application: lifespan owns the database, captcha store and sweeper."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from notely.api import auth, captcha
from notely.api.routes import router
from notely.config import settings
from notely.database import close_db, get_db
from notely.middleware.rate_limit import RateLimitMiddleware
from notely.services.captcha import CaptchaService
from notely.services.challenge_store import ChallengeStore
from notely.services.sweeper import CaptchaSweeper

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Notely starting, initialising database")
    await get_db()
    try:
        store = ChallengeStore()
        app.state.captcha = CaptchaService(
            store,
            ttl_s=settings.captcha_ttl_s,
            length=settings.captcha_length,
            image_format=settings.captcha_image_format,
        )
        async with CaptchaSweeper(store, interval_s=settings.captcha_sweep_interval_s):
            yield
            logger.info("Notely shutting down, %d captcha(s) discarded", len(store))
    finally:
        await close_db()


app = FastAPI(
    title="Notely",
    description="Note-taking backend with a self-hosted CAPTCHA gate on registration and login",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)
app.include_router(router)
app.include_router(captcha.router)
app.include_router(auth.router)
