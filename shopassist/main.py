from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from shopassist.core.config import get_settings
from shopassist.core.exception_handlers import register_exception_handlers
from shopassist.core.lifespan import lifespan
from shopassist.core.logging import configure_logging
from shopassist.api.v1.routers.health import router as health_router
from shopassist.api.v1.routers.similar import router as similar_router
from shopassist.api.v1.routers.comparison import router as comparison_router
from shopassist.api.v1.routers.cache import router as cache_router

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV, e.g. "https://shop.example.com,https://www.shop.example.com"
allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

register_exception_handlers(app)

# ------- Routes -------
app.include_router(health_router)
app.include_router(similar_router)           # similar products
app.include_router(comparison_router)        # detailed comparison
app.include_router(cache_router)             # cache invalidation / purge
