"""
Auth API routes - login, current identity and password management.

Password reset is a two-step flow: ``forgot-password`` stores a hashed
reset token and emails the raw token; ``reset-password`` redeems it. The
reset token is committed before the email is sent, so a delivery failure
is reported to the caller without undoing the token.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from sims.config import Settings
from sims.database import get_db
from sims.dependencies import get_current_identity, get_mailer, get_settings
from sims.logging_config import get_logger, log_with_context
from sims.models.identity import Identity
from sims.routes.serializers import serialize_identity
from sims.services import identity as identity_service
from sims.services.mailer import Mailer

router = APIRouter()
logger = get_logger("auth")

RESET_EMAIL_BODY = (
    "You are receiving this email because a password reset was requested for "
    "your account.\n\n"
    "Use the link below within one hour to choose a new password:\n\n"
    "{url}?token={token}\n\n"
    "If you did not request this, you can ignore this email."
)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)


@router.post("/api/auth/login")
def login(request: LoginRequest, settings: Settings = Depends(get_settings),
          db: Session = Depends(get_db)):
    """Exchange username and password for a 24h bearer token."""
    identity = identity_service.authenticate(db, request.username, request.password)
    token = identity_service.issue_token(identity, settings)
    return {"token": token, "token_type": "bearer", "user": serialize_identity(identity)}


@router.get("/api/auth/me")
def me(actor: Identity = Depends(get_current_identity)):
    return serialize_identity(actor)


@router.put("/api/auth/password")
def change_password(request: ChangePasswordRequest, actor: Identity = Depends(get_current_identity),
                    db: Session = Depends(get_db)):
    identity_service.change_password(db, actor, request.current_password, request.new_password)
    return {"msg": "Password updated"}


@router.post("/api/auth/forgot-password")
def forgot_password(request: ForgotPasswordRequest, settings: Settings = Depends(get_settings),
                    mailer: Mailer = Depends(get_mailer), db: Session = Depends(get_db)):
    """
    Start a password reset.

    The response is the same whether or not the email belongs to an account.
    """
    identity = db.query(Identity).filter(Identity.email == request.email.strip().lower()).first()
    if identity is None:
        log_with_context(logger, "INFO", "Password reset requested for unknown email")
        return {"msg": "If the email is registered, a reset link has been sent"}

    token = identity_service.generate_password_reset_token(db, identity)
    body = RESET_EMAIL_BODY.format(url=settings.password_reset_url, token=token)
    mailer.send(identity.email, "Password reset", body)

    return {"msg": "If the email is registered, a reset link has been sent"}


@router.post("/api/auth/reset-password")
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    identity_service.reset_password(db, request.token, request.password)
    return {"msg": "Password has been reset"}
