from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from harvester.api import harvest, health
from harvester.core.config import get_settings
from harvester.core.logging_config import setup_logging

setup_logging()
settings = get_settings()
app = FastAPI(title=settings.app_name, version="0.1.0")

origins = [origin.strip() for origin in settings.cors_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(harvest.router)
