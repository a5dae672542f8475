from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import RegisterTortoise

from resort_bookings import settings
from resort_bookings.routers import availability, booking, holidays

TORTOISE_MODULES = {"models": ["resort_bookings.models"]}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting resort bookings service (timezone={})", settings.RESORT_TIMEZONE)
    async with RegisterTortoise(
        app,
        db_url=settings.db_url,
        modules=TORTOISE_MODULES,
        generate_schemas=True,
    ):
        yield


def create_app() -> FastAPI:
    app = FastAPI(title="Resort Bookings", lifespan=lifespan)
    app.include_router(availability.router)
    app.include_router(booking.router)
    app.include_router(holidays.router)
    return app


app = create_app()
