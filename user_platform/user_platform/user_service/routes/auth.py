"""
Auth Router - registration, email confirmation, login/refresh/logout and the
authenticated user's own profile.
"""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from ..account import AccountService
from ..db import get_db
from ..dependencies import (
    AuthContext,
    authenticate,
    get_account_service,
    get_lifecycle,
    get_verification,
    refresh_credentials,
)
from ..errors import InvalidCredentialError, NotFoundError
from ..lifecycle import SessionLifecycle
from ..schemas import (
    AuthConfirmEmail,
    AuthEmailLogin,
    AuthForgotPassword,
    AuthRegister,
    AuthResetPassword,
    AuthUpdate,
    LoginResponse,
    RefreshResponse,
    UserResponse,
)
from ..tokens import RefreshClaims
from ..utils.event_logger import log_auth_event
from ..verification import EmailVerification

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/email/login", response_model=LoginResponse)
def login(
    credentials: AuthEmailLogin,
    request: Request,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
    db: Session = Depends(get_db),
):
    try:
        result = lifecycle.login(credentials.email, credentials.password)
    except (InvalidCredentialError, NotFoundError):
        log_auth_event("login_failure", request, db, email=credentials.email)
        raise

    user = lifecycle.users.find_by_email(credentials.email)
    log_auth_event("login_success", request, db, user=user, email=credentials.email)
    return result


@router.post("/email/register", status_code=status.HTTP_204_NO_CONTENT)
def register(
    payload: AuthRegister,
    request: Request,
    verification: EmailVerification = Depends(get_verification),
    db: Session = Depends(get_db),
):
    user = verification.register(payload.email, payload.password, name=payload.name, last_name=payload.last_name)
    log_auth_event("register", request, db, user=user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/email/confirm", status_code=status.HTTP_204_NO_CONTENT)
def confirm_email(
    payload: AuthConfirmEmail,
    request: Request,
    verification: EmailVerification = Depends(get_verification),
    db: Session = Depends(get_db),
):
    user = verification.confirm_email(payload.hash)
    log_auth_event("email_confirmed", request, db, user=user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/email/confirm/new", status_code=status.HTTP_204_NO_CONTENT)
def confirm_new_email(
    payload: AuthConfirmEmail,
    request: Request,
    verification: EmailVerification = Depends(get_verification),
    db: Session = Depends(get_db),
):
    user = verification.confirm_new_email(payload.hash)
    log_auth_event("email_confirmed", request, db, user=user, metadata={"email_change": True})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/forgot/password", status_code=status.HTTP_204_NO_CONTENT)
def forgot_password(payload: AuthForgotPassword, verification: EmailVerification = Depends(get_verification)):
    verification.forgot_password(payload.email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reset/password", status_code=status.HTTP_204_NO_CONTENT)
def reset_password(
    payload: AuthResetPassword,
    request: Request,
    verification: EmailVerification = Depends(get_verification),
    db: Session = Depends(get_db),
):
    user = verification.reset_password(payload.hash, payload.password)
    log_auth_event("password_reset", request, db, user=user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    request: Request,
    claims: RefreshClaims = Depends(refresh_credentials),
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
    db: Session = Depends(get_db),
):
    tokens = lifecycle.refresh(claims.session_id, claims.hash)
    log_auth_event("token_refresh", request, db, metadata={"session_id": claims.session_id})
    return tokens


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    request: Request,
    ctx: AuthContext = Depends(authenticate),
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
    db: Session = Depends(get_db),
):
    lifecycle.logout(ctx.session_id)
    log_auth_event("logout", request, db, user=ctx.user, metadata={"session_id": ctx.session_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserResponse)
def me(
    ctx: AuthContext = Depends(authenticate),
    account: AccountService = Depends(get_account_service),
):
    return account.me(ctx.user)


@router.patch("/me", response_model=UserResponse)
def update_me(
    payload: AuthUpdate,
    request: Request,
    ctx: AuthContext = Depends(authenticate),
    account: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db),
):
    user = account.update_me(ctx.user, ctx.session_id, **payload.model_dump(exclude_unset=True))
    if payload.password:
        log_auth_event("password_change", request, db, user=user)
    return user
