import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .auth import hash_password
from .deps import get_capabilities, get_db, get_mirror, require_admin
from .errors import error_detail, internal_error
from .mirror import MirrorError, forget_account, replicate, sync_account
from .schema import SchemaCapabilities
from .utils import is_valid_email, is_valid_password, sanitize_input

logger = logging.getLogger(__name__)

# Every route re-checks the caller via require_admin (email query parameter).
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users")
async def admin_list_users(
    admin: models.Account = Depends(require_admin),
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
):
    try:
        rows = crud.list_accounts(db, caps)
    except SQLAlchemyError as e:
        raise internal_error("Failed to fetch users", e)
    return {"users": [schemas.admin_account_out(account, active) for account, active in rows]}


@router.get("/stats")
async def admin_stats(
    admin: models.Account = Depends(require_admin),
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
):
    try:
        stats = crud.dashboard_stats(db, caps)
    except SQLAlchemyError as e:
        raise internal_error("Failed to fetch stats", e)
    return {"stats": stats}


@router.delete("/users/{user_id}")
async def admin_delete_user(
    user_id: int,
    admin: models.Account = Depends(require_admin),
    db: Session = Depends(get_db),
    mirror=Depends(get_mirror),
):
    try:
        target = crud.get_account(db, user_id)
        if not target:
            raise HTTPException(status_code=404, detail="User not found")
        if target.is_admin:
            raise HTTPException(status_code=403, detail="Cannot delete admin users")
        crud.delete_account(db, target)
    except SQLAlchemyError as e:
        raise internal_error("Failed to delete user", e)

    logger.info("Admin %s deleted account %s", admin.id, user_id)
    await forget_account(mirror, user_id)
    return {"message": "User deleted successfully", "deleted": user_id}


@router.post("/create-admin", status_code=201)
async def admin_create_admin(
    payload: schemas.SignupRequest,
    admin: models.Account = Depends(require_admin),
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    full_name = sanitize_input(payload.full_name)
    email = (payload.email or "").strip()
    password = payload.password or ""
    if not full_name or not email or not password:
        raise HTTPException(status_code=400, detail="All fields are required")
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    if not is_valid_password(password):
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")

    try:
        account = crud.create_account(
            db,
            full_name=full_name,
            email=email,
            password=hash_password(password),
            is_verified=True,
            is_admin=True,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="An account with this email already exists")
    except SQLAlchemyError as e:
        raise internal_error("Failed to create admin", e)

    logger.info("Admin %s created admin account %s", admin.id, account.id)
    await replicate(mirror, db, caps, account)
    return {"message": "Admin user created successfully", "user": schemas.account_out(account)}


@router.get("/orders")
async def admin_list_orders(admin: models.Account = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        orders = crud.list_orders(db)
        return {"orders": [schemas.order_out(o) for o in orders]}
    except SQLAlchemyError as e:
        raise internal_error("Failed to fetch orders", e)


@router.put("/orders/{order_id}/status")
async def admin_update_order_status(
    order_id: str,
    payload: schemas.OrderStatusUpdate,
    admin: models.Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if payload.status not in models.ORDER_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(models.ORDER_STATUSES)}",
        )
    try:
        order = crud.get_order_by_reference(db, order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        order = crud.update_order_status(db, order, payload.status)
        return {"message": "Order status updated successfully", "order": schemas.order_out(order)}
    except SQLAlchemyError as e:
        raise internal_error("Failed to update order status", e)


@router.post("/orders/cleanup")
async def admin_cleanup_orders(admin: models.Account = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        deleted = crud.cleanup_duplicate_orders(db)
    except SQLAlchemyError as e:
        raise internal_error("Failed to cleanup duplicate orders", e)
    logger.info("Admin %s removed %d duplicate orders", admin.id, deleted)
    return {"message": f"Removed {deleted} duplicate orders", "deletedCount": deleted}


@router.post("/mirror/test")
async def admin_mirror_test(
    payload: schemas.EmailRequest,
    admin: models.Account = Depends(require_admin),
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    """Push one account to the mirror and report the outcome.

    This is the only route where a mirror failure reaches the client.
    """
    email = (payload.email or "").strip()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    try:
        account = crud.get_account_by_email(db, email)
        if not account:
            raise HTTPException(status_code=404, detail="User not found")
    except SQLAlchemyError as e:
        raise internal_error("Failed to load account", e)
    try:
        record = await sync_account(mirror, db, caps, account)
    except MirrorError as e:
        raise HTTPException(status_code=500, detail=error_detail("Mirror sync failed", str(e)))
    return {"message": "Mirror sync succeeded", "table": mirror.table, "record": record}
