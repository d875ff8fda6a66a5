# medicine_corner/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medicine_corner.core.config import settings
from medicine_corner.api.router import api_router
from medicine_corner.api.exception_handlers import register_exception_handlers

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.PROJECT_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_PREFIX)


# Health
@app.get("/")
def root():
    return {"message": "Medicine Corner API running", "version": "v1"}
