import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, schemas, tokens
from .auth import hash_password, needs_rehash, verify_password
from .deps import get_capabilities, get_db, get_mailer, get_mirror
from .errors import error_detail, internal_error
from .mailer import Mailer
from .mirror import replicate
from .schema import SchemaCapabilities
from .tokens import TokenKind
from .utils import is_valid_email, is_valid_password, sanitize_input, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"
PASSWORD_TOO_SHORT = "Password must be at least 6 characters long"
RESET_LINK_SENT = "If an account with that email exists, a password reset link has been sent."


@router.get("/health")
async def health():
    return {"status": "ok", "message": "Server is running successfully", "timestamp": utcnow().isoformat()}


@router.post("/signup", status_code=201)
async def signup(
    payload: schemas.SignupRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mailer: Mailer = Depends(get_mailer),
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
        raise HTTPException(status_code=400, detail=PASSWORD_TOO_SHORT)

    issued = tokens.issue(TokenKind.VERIFICATION)
    try:
        account = crud.create_account(
            db,
            full_name=full_name,
            email=email,
            password=hash_password(password),
            is_verified=False,
            verification_token=issued.token,
            verification_token_expires=issued.expires_at,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        raise internal_error("Failed to create account. Please try again.", e)

    logger.info("Account %s created for %s", account.id, email)
    await replicate(mirror, db, caps, account)

    sent = await mailer.send_verification(account.email, account.full_name, issued.token)
    if not sent.success:
        return {
            "message": "Account created, but we could not send the verification email. "
                       "Please request a new verification link.",
            "userId": account.id,
            "emailSent": False,
        }
    return {
        "message": "Account created successfully! Please check your email to verify your account.",
        "userId": account.id,
        "emailSent": True,
    }


@router.post("/signin")
async def signin(
    payload: schemas.SigninRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    email = (payload.email or "").strip()
    password = payload.password or ""
    if not email or not password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    try:
        account = crud.get_account_by_email(db, email)
        if not account:
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
        # Unverified accounts are turned away before the password is looked at
        if not account.is_verified:
            raise HTTPException(
                status_code=403,
                detail="Please verify your email before signing in. Check your inbox for the verification link.",
            )
        if not verify_password(password, account.password):
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

        if needs_rehash(account.password):
            crud.update_account_fields(db, account, password=hash_password(password))
        crud.set_session_active(db, caps, account, True)
    except SQLAlchemyError as e:
        raise internal_error("Failed to sign in. Please try again.", e)

    await replicate(mirror, db, caps, account)
    logger.info("Account %s signed in", account.id)
    return {"message": "Sign in successful", "user": schemas.account_out(account)}


@router.post("/signin/google")
async def signin_google(
    payload: schemas.GoogleSigninRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    # The credential is trusted as sent; the frontend decoded it from Google.
    credential = payload.credential
    if not credential or not credential.email or not credential.sub:
        raise HTTPException(status_code=400, detail="Invalid Google credential provided")
    email = credential.email.strip()

    try:
        account = crud.get_account_by_email(db, email)
        if account is None:
            account = crud.create_account(
                db,
                full_name=sanitize_input(credential.name) or "Google User",
                email=email,
                google_id=credential.sub,
                is_verified=True,
            )
            logger.info("Account %s created from Google sign-in", account.id)
        else:
            linked = crud.get_account_by_google_id(db, credential.sub)
            if linked is not None and linked.id != account.id:
                raise HTTPException(status_code=400, detail=crud.GOOGLE_ID_TAKEN)
            if not account.is_verified:
                tokens.consume(account, TokenKind.VERIFICATION)
            crud.update_account_fields(db, account, google_id=credential.sub)
        crud.set_session_active(db, caps, account, True)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        raise internal_error("Failed to sign in with Google. Please try again.", e)

    await replicate(mirror, db, caps, account)
    return {"message": "Google Sign-In successful", "user": schemas.account_out(account)}


@router.post("/logout")
async def logout(
    payload: schemas.EmailRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    email = (payload.email or "").strip()
    if email:
        try:
            account = crud.get_account_by_email(db, email)
            if account:
                crud.set_session_active(db, caps, account, False)
        except SQLAlchemyError as e:
            raise internal_error("Failed to log out", e)
        if account:
            await replicate(mirror, db, caps, account)
            logger.info("Account %s logged out", account.id)
    return {"message": "Logged out successfully"}


@router.post("/forgot-password")
async def forgot_password(
    payload: schemas.EmailRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mailer: Mailer = Depends(get_mailer),
    mirror=Depends(get_mirror),
):
    email = (payload.email or "").strip()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    try:
        account = crud.get_account_by_email(db, email)
        if account:
            issued = tokens.issue(TokenKind.RESET)
            tokens.attach(account, TokenKind.RESET, issued)
            crud.save_account(db, account)
    except SQLAlchemyError as e:
        raise internal_error("Failed to process password reset request", e)

    # Same response whether or not the account exists
    if account:
        await replicate(mirror, db, caps, account)
        sent = await mailer.send_password_reset(account.email, account.full_name, issued.token)
        if not sent.success:
            logger.warning("Password reset email for account %s was not delivered", account.id)
    return {"message": RESET_LINK_SENT}


@router.post("/verify-reset-token")
async def verify_reset_token(payload: schemas.TokenRequest, db: Session = Depends(get_db)):
    try:
        account = tokens.validate(db, (payload.email or "").strip(), payload.token or "", TokenKind.RESET)
    except SQLAlchemyError as e:
        raise internal_error("Failed to verify reset token", e)
    if account is None:
        return {"valid": False, "message": "Invalid or expired reset token"}
    return {"valid": True, "user": {"email": account.email, "full_name": account.full_name}}


@router.post("/reset-password")
async def reset_password(
    payload: schemas.ResetPasswordRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    email = (payload.email or "").strip()
    if not email or not payload.token or not payload.new_password:
        raise HTTPException(status_code=400, detail="Email, token and new password are required")
    if not is_valid_password(payload.new_password):
        raise HTTPException(status_code=400, detail=PASSWORD_TOO_SHORT)

    try:
        account = tokens.validate(db, email, payload.token, TokenKind.RESET)
        if account is None:
            raise HTTPException(status_code=400, detail="Invalid or expired reset token")
        tokens.consume(account, TokenKind.RESET)
        crud.update_account_fields(db, account, password=hash_password(payload.new_password))
    except SQLAlchemyError as e:
        raise internal_error("Failed to reset password", e)

    await replicate(mirror, db, caps, account)
    logger.info("Password reset for account %s", account.id)
    return {"message": "Password has been reset successfully. You can now sign in with your new password."}


@router.post("/verify-email")
async def verify_email(
    payload: schemas.TokenRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mirror=Depends(get_mirror),
):
    email = (payload.email or "").strip()
    if not email or not payload.token:
        raise HTTPException(status_code=400, detail="Email and token are required")

    try:
        account = tokens.validate(db, email, payload.token, TokenKind.VERIFICATION)
        if account is None:
            raise HTTPException(status_code=400, detail="Invalid or expired verification link")
        tokens.consume(account, TokenKind.VERIFICATION)
        crud.save_account(db, account)
    except SQLAlchemyError as e:
        raise internal_error("Failed to verify email", e)

    await replicate(mirror, db, caps, account)
    logger.info("Account %s verified", account.id)
    return {"message": "Email verified successfully! You can now sign in.", "user": schemas.account_out(account)}


@router.post("/resend-verification")
async def resend_verification(
    payload: schemas.EmailRequest,
    db: Session = Depends(get_db),
    caps: SchemaCapabilities = Depends(get_capabilities),
    mailer: Mailer = Depends(get_mailer),
    mirror=Depends(get_mirror),
):
    email = (payload.email or "").strip()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    # Unlike forgot-password this reveals whether the account exists.
    try:
        account = crud.get_account_by_email(db, email)
        if account is None:
            raise HTTPException(status_code=404, detail="User not found")
        if account.is_verified:
            raise HTTPException(status_code=400, detail="Email is already verified")
        issued = tokens.issue(TokenKind.VERIFICATION)
        tokens.attach(account, TokenKind.VERIFICATION, issued)
        crud.save_account(db, account)
    except SQLAlchemyError as e:
        raise internal_error("Failed to resend verification email", e)

    await replicate(mirror, db, caps, account)
    sent = await mailer.send_verification(account.email, account.full_name, issued.token)
    if not sent.success:
        raise HTTPException(
            status_code=500,
            detail=error_detail("Failed to send verification email. Please try again later.", sent.error or ""),
        )
    return {"message": "Verification email sent. Please check your inbox."}
