import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config, database
from .api import api_router
from .api.errors import VALIDATION_ERROR_DETAIL
from .gate import SessionGateMiddleware
from .views import router as views_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")
    await database.create_db_and_tables()
    yield
    logger.info("Application shutting down...")
    await database.dispose_engine()


# --- FastAPI app instance ---
app = FastAPI(title="Waterlily Surveys", lifespan=lifespan)

# --- CORS (frontends on other origins call the JSON API) ---
logger.info("CORS: allowed origins: %s", config.ALLOWED_ORIGINS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionGateMiddleware, cookie_name=config.SESSION_COOKIE_NAME)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(
        "Rejected %s %s: %s", request.method, request.url.path, exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": VALIDATION_ERROR_DETAIL},
    )


app.include_router(api_router, prefix="/api")
app.include_router(views_router)


if __name__ == "__main__":
    import uvicorn

    APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
    APP_PORT = int(os.getenv("APP_PORT", "8000"))
    RELOAD_APP = os.getenv("RELOAD_APP", "False").lower() == "true"

    uvicorn.run("waterlily.main:app", host=APP_HOST, port=APP_PORT, reload=RELOAD_APP)
