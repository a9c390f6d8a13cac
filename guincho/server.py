# guincho/server.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.cors import CORSMiddleware

from guincho.api import admin, billing, providers, root, subscriptions, tenant
from guincho.core.config import LOG_LEVEL
from guincho.core.database import init_models
from guincho.core.errors import GuinchoError

# ================== SETUP ==================

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("guincho")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Guincho Fácil API", lifespan=lifespan)


@app.exception_handler(GuinchoError)
async def guincho_error_handler(request: Request, exc: GuinchoError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("%s %s database error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.include_router(root.router)
app.include_router(subscriptions.router)
app.include_router(admin.router)
app.include_router(billing.router)
app.include_router(tenant.router)
app.include_router(providers.router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)
