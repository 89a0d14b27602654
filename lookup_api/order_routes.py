import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, schemas
from .config import Settings
from .deps import get_app_settings, get_db
from .errors import internal_error
from .utils import sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("/create", status_code=201)
async def create_order(
    payload: schemas.OrderCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    company_cin = (payload.company_cin or "").strip()
    company_name = sanitize_input(payload.company_name)
    user_email = (payload.user_email or "").strip() or None
    if not company_cin or not company_name:
        raise HTTPException(status_code=400, detail="Company CIN and company name are required")
    if payload.user_id is None and not user_email:
        raise HTTPException(status_code=400, detail="User id or email is required")

    try:
        order, duplicate = crud.create_order(
            db,
            user_id=payload.user_id,
            user_email=user_email,
            company_cin=company_cin,
            company_name=company_name,
            amount=settings.order_amount,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        raise internal_error("Failed to create order", e)

    if duplicate:
        logger.info("Duplicate order %s for %s ignored", order.order_id, company_cin)
        return JSONResponse(
            status_code=200,
            content={
                "message": "Order already exists for this company today",
                "order_id": order.order_id,
                "order": schemas.order_out(order),
                "isDuplicate": True,
            },
        )
    logger.info("Order %s created for %s", order.order_id, company_cin)
    return {
        "message": "Order created successfully",
        "order_id": order.order_id,
        "order": schemas.order_out(order),
        "isDuplicate": False,
    }


@router.get("")
async def list_my_orders(email: str | None = Query(default=None), db: Session = Depends(get_db)):
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    try:
        orders = crud.list_orders_for_email(db, email)
        return {"orders": [schemas.order_out(o) for o in orders]}
    except SQLAlchemyError as e:
        raise internal_error("Failed to fetch orders", e)
