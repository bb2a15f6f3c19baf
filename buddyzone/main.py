import logging

from fastapi import FastAPI

from buddyzone.api.v1.router import api_router
from buddyzone.core.config import settings
from buddyzone.infra.redis_client import redis_available

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title=settings.app_name)


@app.get("/health")
def health():
    return {"status": "ok", "redis": "ok" if redis_available() else "unavailable"}


app.include_router(api_router)
