"""Request-scoped dependencies.

Process-wide resources (capability cache, mailer, mirror, search client) are
created in the application lifespan and stored on ``app.state``; handlers
receive them through these functions so tests can override each one.
"""
import logging

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from . import crud, models
from .config import Settings, get_settings
from .db import SessionLocal
from .mailer import Mailer
from .schema import SchemaCapabilities
from .search import SearchClient

logger = logging.getLogger(__name__)


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_capabilities(request: Request) -> SchemaCapabilities:
    return request.app.state.capabilities


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_mirror(request: Request):
    return request.app.state.mirror


def get_search_client(request: Request) -> SearchClient:
    return request.app.state.search


def require_admin(email: str | None = Query(default=None), db: Session = Depends(get_db)) -> models.Account:
    """Resolve the calling admin from the ``email`` query parameter.

    There is no session or signed token behind this: whoever knows an admin's
    email address passes. Re-checked against the database on every call.
    """
    if not email:
        raise HTTPException(status_code=401, detail="Admin email is required")
    admin = crud.get_admin(db, email)
    if not admin:
        logger.warning("Admin access denied for %s", email)
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return admin
