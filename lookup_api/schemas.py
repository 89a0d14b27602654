from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict
from typing import Optional

# Request bodies keep every field optional so missing input is reported as a
# 400 with a readable message rather than a schema error.

class SignupRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class SigninRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GoogleCredential(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    sub: Optional[str] = None


class GoogleSigninRequest(BaseModel):
    credential: Optional[GoogleCredential] = None


class EmailRequest(BaseModel):
    email: Optional[str] = None


class TokenRequest(BaseModel):
    email: Optional[str] = None
    token: Optional[str] = None


class ResetPasswordRequest(TokenRequest):
    new_password: Optional[str] = Field(default=None, alias="newPassword")

    model_config = ConfigDict(populate_by_name=True)


class OrderCreate(BaseModel):
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    company_cin: Optional[str] = None
    company_name: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class AccountRead(BaseModel):
    id: int
    full_name: str
    email: str
    is_verified: bool
    is_admin: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AccountAdminRead(AccountRead):
    session_active: bool = False


class OrderRead(BaseModel):
    id: int
    order_id: str
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    user_full_name: Optional[str] = None
    company_cin: str
    company_name: str
    status: str
    amount: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


def account_out(account) -> dict:
    return AccountRead.model_validate(account).model_dump(mode="json")


def admin_account_out(account, session_active: bool) -> dict:
    data = AccountRead.model_validate(account).model_dump()
    return AccountAdminRead(**data, session_active=session_active).model_dump(mode="json")


def order_out(order) -> dict:
    data = OrderRead.model_validate(order).model_dump(mode="json")
    data["user_full_name"] = order.account.full_name if order.account is not None else None
    return data
