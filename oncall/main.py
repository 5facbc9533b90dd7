import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ALLOW_ORIGIN_REGEX, CORS_ALLOW_ORIGINS, LOG_LEVEL
from .deps import _get_config, _get_store
from .ical_routes import router as ical_router
from .roster_routes import router as roster_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="On-Call Schedule API", version="0.1.0")

_allowed_origins = [origin.strip() for origin in CORS_ALLOW_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_origin_regex=None if _allowed_origins else CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(roster_router)
app.include_router(ical_router)


@app.on_event("startup")
def _startup() -> None:
    config = _get_config()
    store = _get_store()
    store.count_assignments()
    logger.info("On-call engine ready (timezone=%s, db=%s)", config.timezone, store.path)
