"""API gateway entrypoint."""

import logging

from fastapi import FastAPI

from services.api_gateway.dependencies import settings
from services.api_gateway.presentation.http.routes import router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="DeepSight Detection API", version="0.1.0")
app.include_router(router)
