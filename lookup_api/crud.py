import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from typing import List, Tuple

from . import models
from .schema import SchemaCapabilities
from .utils import utcnow

logger = logging.getLogger(__name__)

SESSION_COLUMN = "session_active"
RECENT_WINDOW = timedelta(days=7)
GOOGLE_ID_TAKEN = "Google account already linked to another user"

# Business rule: amount stored rounded to 2 decimals, non-negative

def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# -------------------- Accounts --------------------

def get_account_by_email(db: Session, email: str) -> models.Account | None:
    return db.query(models.Account).filter(models.Account.email == email).first()


def get_account(db: Session, account_id: int) -> models.Account | None:
    return db.get(models.Account, account_id)


def get_account_by_google_id(db: Session, google_id: str) -> models.Account | None:
    return db.query(models.Account).filter(models.Account.google_id == google_id).first()


def get_admin(db: Session, email: str) -> models.Account | None:
    return (
        db.query(models.Account)
        .filter(models.Account.email == email, models.Account.is_admin.is_(True))
        .first()
    )


def create_account(
    db: Session,
    *,
    full_name: str,
    email: str,
    password: str | None = None,
    google_id: str | None = None,
    **fields,
) -> models.Account:
    """Insert an account. ``password`` is the already-hashed password."""
    if not password and not google_id:
        raise ValueError("account needs a password or a Google id")
    if SESSION_COLUMN in fields:
        raise ValueError("session_active is written through set_session_active")
    if get_account_by_email(db, email):
        raise ValueError("Email already registered")
    if google_id and get_account_by_google_id(db, google_id):
        raise ValueError(GOOGLE_ID_TAKEN)

    account = models.Account(full_name=full_name, email=email, password=password, google_id=google_id, **fields)
    db.add(account)
    try:
        db.commit()
    except IntegrityError as e:
        # lost a race against a concurrent signup with the same email/google id
        db.rollback()
        raise ValueError("Email already registered") from e
    db.refresh(account)
    return account


def update_account_fields(db: Session, account: models.Account, **fields) -> models.Account:
    if SESSION_COLUMN in fields:
        raise ValueError("session_active is written through set_session_active")
    for name, value in fields.items():
        if not hasattr(models.Account, name):
            raise ValueError(f"unknown account field: {name}")
        setattr(account, name, value)
    try:
        return save_account(db, account)
    except IntegrityError as e:
        db.rollback()
        if "google_id" in fields:
            raise ValueError(GOOGLE_ID_TAKEN) from e
        raise ValueError("Account update conflicts with an existing account") from e


def save_account(db: Session, account: models.Account) -> models.Account:
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def set_session_active(db: Session, caps: SchemaCapabilities, account: models.Account, active: bool) -> bool:
    """Toggle the session flag. Returns False when the column is not there."""
    if not caps.has_column(SESSION_COLUMN):
        logger.debug("session_active column missing; skipping session update for %s", account.id)
        return False
    db.execute(
        update(models.Account)
        .where(models.Account.id == account.id)
        .values(session_active=active)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return True


def get_session_active(db: Session, caps: SchemaCapabilities, account: models.Account) -> bool:
    if not caps.has_column(SESSION_COLUMN):
        return False
    value = (
        db.query(models.Account.session_active)
        .filter(models.Account.id == account.id)
        .scalar()
    )
    return bool(value)


def list_accounts(db: Session, caps: SchemaCapabilities) -> List[Tuple[models.Account, bool]]:
    """All accounts, newest first, each paired with its session flag."""
    order = (models.Account.created_at.desc(), models.Account.id.desc())
    if caps.has_column(SESSION_COLUMN):
        rows = db.query(models.Account, models.Account.session_active).order_by(*order).all()
        return [(account, bool(active)) for account, active in rows]
    return [(account, False) for account in db.query(models.Account).order_by(*order).all()]


def delete_account(db: Session, account: models.Account) -> None:
    db.delete(account)
    db.commit()


def dashboard_stats(db: Session, caps: SchemaCapabilities, now: datetime | None = None) -> dict:
    now = now or utcnow()

    # Counts select only the id so optional columns never appear in the SQL
    def count_accounts(*criteria) -> int:
        return db.query(func.count(models.Account.id)).filter(*criteria).scalar() or 0

    active = 0
    if caps.has_column(SESSION_COLUMN):
        active = count_accounts(models.Account.session_active.is_(True))

    status_counts = dict(
        db.query(models.Order.status, func.count(models.Order.id)).group_by(models.Order.status).all()
    )
    return {
        "totalUsers": count_accounts(),
        "activeUsers": active,
        "verifiedUsers": count_accounts(models.Account.is_verified.is_(True)),
        "adminUsers": count_accounts(models.Account.is_admin.is_(True)),
        "recentUsers": count_accounts(models.Account.created_at >= now - RECENT_WINDOW),
        "totalOrders": sum(status_counts.values()),
        "pendingOrders": status_counts.get("pending", 0),
        "completedOrders": status_counts.get("completed", 0),
        "cancelledOrders": status_counts.get("cancelled", 0),
    }


# -------------------- Orders --------------------

def make_order_reference(company_cin: str, now: datetime) -> str:
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"ORD-{company_cin}-{millis}"


def _day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    start = datetime(moment.year, moment.month, moment.day)
    return start, start + timedelta(days=1)


def find_order_for_day(
    db: Session,
    company_cin: str,
    day: datetime,
    user_id: int | None = None,
    user_email: str | None = None,
) -> models.Order | None:
    start, end = _day_bounds(day)
    q = db.query(models.Order).filter(
        models.Order.company_cin == company_cin,
        models.Order.created_at >= start,
        models.Order.created_at < end,
    )
    if user_id is not None:
        q = q.filter(models.Order.user_id == user_id)
    else:
        q = q.filter(models.Order.user_email == user_email)
    return q.order_by(models.Order.id).first()


def create_order(
    db: Session,
    *,
    company_cin: str,
    company_name: str,
    amount: Decimal,
    user_id: int | None = None,
    user_email: str | None = None,
    now: datetime | None = None,
) -> Tuple[models.Order, bool]:
    """Create an order unless this user already ordered this company today.

    Returns ``(order, is_duplicate)``. The check is a plain read before the
    insert, so two simultaneous requests can still both insert.
    """
    now = now or utcnow()
    if user_id is None and not user_email:
        raise ValueError("user_id or user_email is required")
    if user_id is not None and not get_account(db, user_id):
        raise ValueError("foreign key violation: user does not exist")

    amount = round_amount(amount)
    if amount < 0:
        raise ValueError("amount must be non-negative")

    existing = find_order_for_day(db, company_cin, now, user_id=user_id, user_email=user_email)
    if existing:
        return existing, True

    order = models.Order(
        order_id=make_order_reference(company_cin, now),
        user_id=user_id,
        user_email=user_email,
        company_cin=company_cin,
        company_name=company_name,
        status="pending",
        amount=amount,
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("integrity error") from e
    db.refresh(order)
    return order, False


def list_orders(db: Session) -> List[models.Order]:
    return (
        db.query(models.Order)
        .options(joinedload(models.Order.account))
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


def list_orders_for_email(db: Session, email: str) -> List[models.Order]:
    return (
        db.query(models.Order)
        .options(joinedload(models.Order.account))
        .filter(models.Order.user_email == email)
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


def get_order_by_reference(db: Session, order_id: str) -> models.Order | None:
    return db.query(models.Order).filter(models.Order.order_id == order_id).first()


def update_order_status(db: Session, order: models.Order, status: str) -> models.Order:
    if status not in models.ORDER_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(models.ORDER_STATUSES)}")
    order.status = status
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def cleanup_duplicate_orders(db: Session) -> int:
    """Keep the earliest order per (user, company, day); delete the rest."""
    seen = set()
    duplicates = []
    for order in db.query(models.Order).order_by(models.Order.created_at, models.Order.id).all():
        owner = order.user_id if order.user_id is not None else order.user_email
        key = (owner, order.company_cin, order.created_at.date())
        if key in seen:
            duplicates.append(order)
        else:
            seen.add(key)
    for order in duplicates:
        db.delete(order)
    db.commit()
    return len(duplicates)
