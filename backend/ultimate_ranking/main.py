import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from ultimate_ranking.api.api_v1.api import api_router
from ultimate_ranking.core.config import settings
from ultimate_ranking.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    redirect_slashes=False,  # Prevent 307 redirects that break CORS
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)

logger.info(f"{settings.PROJECT_NAME} API ready under {settings.API_V1_STR}")


@app.get("/")
def read_root():
    return {"message": f"Welcome to the {settings.PROJECT_NAME} API"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
