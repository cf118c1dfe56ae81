"""
Identity Service - credentials, lockout, tokens and password reset.

Implements:
1. Registration with unique username / email and role-profile agreement
2. Authentication with lockout: 5 consecutive failures lock the account for
   one hour; an attempt after an expired lock restarts the count at 1
3. Signed 24h auth tokens asserting {sub, role, username}
4. Password reset tokens: only the SHA-256 hash and a 1h expiry are stored

Passwords are hashed with passlib's pbkdf2_sha256 (salted, one-way) and
compared by hash verification only.
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional, Union

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sims.clock import utcnow
from sims.config import Settings
from sims.errors import (
    AccountLocked, Duplicate, Forbidden, InvalidCredentials, NotFound, ValidationError,
)
from sims.logging_config import get_logger, log_with_context
from sims.models.faculty import Faculty
from sims.models.identity import Identity, ProfileRef, ROLES
from sims.models.student import Student

logger = get_logger("auth")

# ──────────────────────────────────────────────────────────────
# Configuration constants
# ──────────────────────────────────────────────────────────────
MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION = timedelta(hours=1)
TOKEN_TTL = timedelta(hours=24)
RESET_TOKEN_TTL = timedelta(hours=1)
RESET_TOKEN_BYTES = 32

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PROFILE_MODELS = {
    "student": Student,
    "faculty": Faculty,
}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def resolve_profile(db: Session, ref: Optional[ProfileRef]) -> Optional[Union[Student, Faculty]]:
    """Load the Student or Faculty record a profile reference points at."""
    if ref is None:
        return None
    model = PROFILE_MODELS.get(ref.kind)
    if model is None:
        raise ValidationError.single("profile_kind", "Unknown profile kind: {}".format(ref.kind))
    return db.get(model, ref.id)


def find_identity_for_profile(db: Session, kind: str, profile_id: str) -> Optional[Identity]:
    return db.query(Identity).filter(
        Identity.profile_kind == kind,
        Identity.profile_id == profile_id
    ).first()


def _check_role_profile(role: str, profile: Optional[ProfileRef]):
    if role not in ROLES:
        raise ValidationError.single("role", "{} is not a valid role".format(role))
    if role == "admin":
        if profile is not None:
            raise ValidationError.single("profile", "Admin accounts have no profile")
    elif profile is None or profile.kind != role:
        raise ValidationError.single("profile", "A {} account needs a {} profile".format(role, role))


def register(db: Session, username: str, email: str, password: str, role: str,
             profile: Optional[ProfileRef] = None, is_verified: bool = False,
             commit: bool = True) -> Identity:
    """
    Create a new identity.

    Args:
        db: Database session
        username: Unique login name
        email: Email address; stored lower-cased
        password: Plaintext password, hashed before it is stored
        role: student | faculty | admin
        profile: Profile reference; must match the role (None for admins)
        is_verified: Initial verification flag
        commit: Commit the session; profile services pass False and commit
            the identity and profile together

    Returns:
        The new Identity

    Raises:
        Duplicate: username or email already registered
        ValidationError: role and profile disagree
    """
    email = email.strip().lower()
    username = username.strip()
    _check_role_profile(role, profile)

    existing = db.query(Identity).filter(
        (Identity.username == username) | (Identity.email == email)
    ).first()
    if existing:
        raise Duplicate("User already exists")

    identity = Identity(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_verified=is_verified,
        verification_token=secrets.token_hex(20),
    )
    identity.profile = profile
    db.add(identity)

    if commit:
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise Duplicate("User already exists")
        log_with_context(logger, "INFO", "Registered identity {}".format(username),
                         context={"identity_id": identity.id}, extra_data={"role": role})
    else:
        db.flush()
    return identity


def _record_failed_login(identity: Identity, now: datetime):
    """Update the failure counter after a wrong password."""
    if identity.lock_until is not None and identity.lock_until <= now:
        # Previous lock expired: restart the window with this attempt
        identity.login_attempts = 1
        identity.lock_until = None
        return

    identity.login_attempts = (identity.login_attempts or 0) + 1
    if identity.login_attempts >= MAX_LOGIN_ATTEMPTS and identity.lock_until is None:
        identity.lock_until = now + LOCK_DURATION
        log_with_context(logger, "WARNING", "Account locked after {} failed logins".format(identity.login_attempts),
                         context={"identity_id": identity.id},
                         extra_data={"lock_until": identity.lock_until.isoformat()})


def authenticate(db: Session, username: str, password: str,
                 now: Optional[datetime] = None) -> Identity:
    """
    Verify a username/password pair.

    Raises:
        InvalidCredentials: unknown username or wrong password
        AccountLocked: the account's lock has not expired yet
        Forbidden: the account is deactivated
    """
    now = now or utcnow()
    identity = db.query(Identity).filter(Identity.username == username.strip()).first()
    if identity is None:
        raise InvalidCredentials()

    if identity.is_locked(now):
        log_with_context(logger, "INFO", "Login attempt on locked account",
                         context={"identity_id": identity.id})
        raise AccountLocked()

    if not verify_password(password, identity.password_hash):
        _record_failed_login(identity, now)
        db.commit()
        log_with_context(logger, "INFO", "Failed login for {}".format(identity.username),
                         context={"identity_id": identity.id},
                         extra_data={"login_attempts": identity.login_attempts})
        raise InvalidCredentials()

    if not identity.is_active:
        raise Forbidden("Account is deactivated")

    identity.login_attempts = 0
    identity.lock_until = None
    identity.last_login = now
    if identity.profile_kind == "faculty":
        faculty = resolve_profile(db, identity.profile)
        if faculty is not None:
            faculty.last_login = now
    db.commit()

    log_with_context(logger, "INFO", "Login succeeded for {}".format(identity.username),
                     context={"identity_id": identity.id})
    return identity


def issue_token(identity: Identity, settings: Settings, now: Optional[datetime] = None) -> str:
    """Signed, time-boxed assertion of {identity id, role, username}."""
    now = now or utcnow()
    payload = {
        "sub": identity.id,
        "role": identity.role,
        "username": identity.username,
        "iat": int((now - datetime(1970, 1, 1)).total_seconds()),
        "exp": int((now + TOKEN_TTL - datetime(1970, 1, 1)).total_seconds()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def set_password(db: Session, identity: Identity, password: str):
    """Re-hash ``password`` onto the identity and, for faculty, the profile copy."""
    identity.password_hash = hash_password(password)
    if identity.profile_kind == "faculty":
        faculty = resolve_profile(db, identity.profile)
        if faculty is not None:
            faculty.password_hash = identity.password_hash


def change_password(db: Session, identity: Identity, current_password: str, new_password: str) -> Identity:
    if not verify_password(current_password, identity.password_hash):
        raise InvalidCredentials("Current password is incorrect")
    set_password(db, identity, new_password)
    db.commit()
    log_with_context(logger, "INFO", "Password changed", context={"identity_id": identity.id})
    return identity


def generate_password_reset_token(db: Session, identity: Identity,
                                  now: Optional[datetime] = None) -> str:
    """
    Create a password reset token for ``identity``.

    Only the token's hash and expiry are persisted; the raw token is
    returned for delivery to the account owner.
    """
    now = now or utcnow()
    token = secrets.token_hex(RESET_TOKEN_BYTES)
    identity.reset_password_token = hash_reset_token(token)
    identity.reset_password_expires = now + RESET_TOKEN_TTL
    db.commit()
    log_with_context(logger, "INFO", "Password reset token issued",
                     context={"identity_id": identity.id})
    return token


def reset_password(db: Session, token: str, new_password: str,
                   now: Optional[datetime] = None) -> Identity:
    """
    Set a new password using a reset token.

    Raises:
        ValidationError: no stored hash matches, or the token has expired
    """
    now = now or utcnow()
    identity = db.query(Identity).filter(
        Identity.reset_password_token == hash_reset_token(token),
        Identity.reset_password_expires > now
    ).first()
    if identity is None:
        raise ValidationError.single("token", "Password reset token is invalid or has expired")

    set_password(db, identity, new_password)
    identity.reset_password_token = None
    identity.reset_password_expires = None
    identity.login_attempts = 0
    identity.lock_until = None
    db.commit()

    log_with_context(logger, "INFO", "Password reset completed", context={"identity_id": identity.id})
    return identity


def get_identity(db: Session, identity_id: str) -> Identity:
    identity = db.get(Identity, identity_id)
    if identity is None:
        raise NotFound("User not found")
    return identity


def ensure_bootstrap_admin(db: Session, settings: Settings) -> Optional[Identity]:
    """Create the configured first admin account when it does not exist yet."""
    username = settings.bootstrap_admin_username
    if not username or not settings.bootstrap_admin_password:
        return None
    existing = db.query(Identity).filter(Identity.username == username).first()
    if existing:
        return existing
    email = settings.bootstrap_admin_email or "{}@sims.local".format(username)
    return register(db, username, email, settings.bootstrap_admin_password, "admin", is_verified=True)
