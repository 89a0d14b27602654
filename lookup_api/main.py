import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import admin_routes, auth_routes, company_routes, order_routes
from .config import get_settings
from .db import engine
from .errors import http_exception_handler, validation_exception_handler
from .mailer import Mailer
from .mirror import build_mirror
from .schema import SchemaCapabilities, ensure_schema
from .search import SearchClient

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting company lookup API")
    # Create tables and add columns older deployments lack. In production the
    # same step can be run ahead of time with `python -m lookup_api.schema`.
    added = ensure_schema(engine)
    if added:
        logger.info("Schema upgraded with columns: %s", ", ".join(added))
    app.state.capabilities = SchemaCapabilities.detect(engine)
    if not app.state.capabilities.has_column("session_active"):
        logger.warning("session_active column unavailable; session tracking disabled")
    app.state.mailer = Mailer(settings)
    app.state.mirror = build_mirror(settings)
    app.state.search = SearchClient.from_settings(settings)
    yield
    logger.info("Shutting down company lookup API")
    app.state.search.session.close()
    engine.dispose()


app = FastAPI(title="Company Lookup API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Bodies are not logged: they carry passwords and tokens
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start
    logger.info("%s %s -> %s in %.3fs", request.method, request.url.path, response.status_code, elapsed)
    return response


@app.get("/")
async def root():
    return {"message": "Company lookup API is running"}


app.include_router(auth_routes.router)
app.include_router(admin_routes.router)
app.include_router(order_routes.router)
app.include_router(company_routes.router)
