"""
Identity service tests: registration, lockout timeline, tokens and password reset.
"""
from datetime import datetime, timedelta

import pytest
from jose import jwt

from sims.errors import (
    AccountLocked, Duplicate, Forbidden, InvalidCredentials, ValidationError,
)
from sims.models.identity import Identity, ProfileRef
from sims.services import identity as identity_service

T0 = datetime(2026, 1, 5, 9, 0, 0)


@pytest.fixture
def user(db):
    return identity_service.register(db, "jdoe", "JDoe@Example.com", "correct-horse", "admin")


def test_register_normalizes_email_and_hashes_password(user):
    assert user.email == "jdoe@example.com"
    assert user.password_hash != "correct-horse"
    assert identity_service.verify_password("correct-horse", user.password_hash)
    assert user.profile is None


def test_register_rejects_duplicate_username_or_email(db, user):
    with pytest.raises(Duplicate):
        identity_service.register(db, "jdoe", "other@example.com", "password1", "admin")
    with pytest.raises(Duplicate):
        identity_service.register(db, "other", "jdoe@example.com", "password1", "admin")


def test_register_requires_matching_profile_kind(db):
    with pytest.raises(ValidationError):
        identity_service.register(db, "stud", "stud@example.com", "password1", "student")
    with pytest.raises(ValidationError):
        identity_service.register(db, "stud", "stud@example.com", "password1", "student",
                                  profile=ProfileRef("faculty", "f-1"))
    with pytest.raises(ValidationError):
        identity_service.register(db, "boss", "boss@example.com", "password1", "admin",
                                  profile=ProfileRef("student", "s-1"))


def test_unknown_username_is_invalid_credentials(db):
    with pytest.raises(InvalidCredentials):
        identity_service.authenticate(db, "nobody", "whatever")


def test_lockout_timeline(db, user):
    for attempt in range(4):
        with pytest.raises(InvalidCredentials):
            identity_service.authenticate(db, "jdoe", "wrong", now=T0 + timedelta(minutes=attempt))
    assert user.login_attempts == 4
    assert not user.is_locked(T0 + timedelta(minutes=4))

    fifth = T0 + timedelta(minutes=5)
    with pytest.raises(InvalidCredentials):
        identity_service.authenticate(db, "jdoe", "wrong", now=fifth)
    assert user.lock_until == fifth + timedelta(hours=1)

    # Correct password is refused while the lock holds
    with pytest.raises(AccountLocked):
        identity_service.authenticate(db, "jdoe", "correct-horse", now=fifth + timedelta(minutes=30))

    after_lock = fifth + timedelta(hours=1, seconds=1)
    identity = identity_service.authenticate(db, "jdoe", "correct-horse", now=after_lock)
    assert identity.login_attempts == 0
    assert identity.lock_until is None
    assert identity.last_login == after_lock


def test_failure_after_expired_lock_restarts_count(db, user):
    for attempt in range(5):
        with pytest.raises(InvalidCredentials):
            identity_service.authenticate(db, "jdoe", "wrong", now=T0 + timedelta(minutes=attempt))
    assert user.is_locked(T0 + timedelta(minutes=5))

    with pytest.raises(InvalidCredentials):
        identity_service.authenticate(db, "jdoe", "wrong", now=T0 + timedelta(hours=2))

    assert user.login_attempts == 1
    assert user.lock_until is None


def test_deactivated_account_is_forbidden(db, user):
    user.is_active = False
    db.commit()
    with pytest.raises(Forbidden):
        identity_service.authenticate(db, "jdoe", "correct-horse")


def test_issue_token_claims(user, settings):
    token = identity_service.issue_token(user, settings, now=T0)
    claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
                        options={"verify_exp": False})

    assert claims["sub"] == user.id
    assert claims["role"] == "admin"
    assert claims["username"] == "jdoe"
    assert claims["exp"] - claims["iat"] == 24 * 3600


def test_password_reset_round(db, user):
    token = identity_service.generate_password_reset_token(db, user, now=T0)

    assert user.reset_password_token != token
    assert user.reset_password_token == identity_service.hash_reset_token(token)
    assert user.reset_password_expires == T0 + timedelta(hours=1)

    identity_service.reset_password(db, token, "new-password-1", now=T0 + timedelta(minutes=10))

    db.expire_all()
    refreshed = db.get(Identity, user.id)
    assert refreshed.reset_password_token is None
    assert identity_service.verify_password("new-password-1", refreshed.password_hash)

    # Tokens are single use
    with pytest.raises(ValidationError):
        identity_service.reset_password(db, token, "another-pass-2", now=T0 + timedelta(minutes=11))


def test_expired_reset_token_is_rejected(db, user):
    token = identity_service.generate_password_reset_token(db, user, now=T0)
    with pytest.raises(ValidationError):
        identity_service.reset_password(db, token, "new-password-1", now=T0 + timedelta(hours=1, seconds=1))


def test_reset_clears_lockout(db, user):
    for attempt in range(5):
        with pytest.raises(InvalidCredentials):
            identity_service.authenticate(db, "jdoe", "wrong", now=T0 + timedelta(minutes=attempt))
    token = identity_service.generate_password_reset_token(db, user, now=T0 + timedelta(minutes=6))

    identity_service.reset_password(db, token, "new-password-1", now=T0 + timedelta(minutes=7))

    identity = identity_service.authenticate(db, "jdoe", "new-password-1", now=T0 + timedelta(minutes=8))
    assert identity.login_attempts == 0


def test_change_password(db, user):
    with pytest.raises(InvalidCredentials):
        identity_service.change_password(db, user, "not-it", "new-password-1")

    identity_service.change_password(db, user, "correct-horse", "new-password-1")
    assert identity_service.authenticate(db, "jdoe", "new-password-1").id == user.id


def test_faculty_password_copy_follows_identity(db, make_faculty, account_of):
    member = make_faculty("F900")
    account = account_of(member)

    identity_service.change_password(db, account, "facultypass1", "fresh-pass-99")

    db.expire_all()
    assert identity_service.verify_password("fresh-pass-99", member.password_hash)


def test_bootstrap_admin_is_idempotent(db, settings, admin):
    again = identity_service.ensure_bootstrap_admin(db, settings)
    assert again.id == admin.id
    assert db.query(Identity).filter(Identity.role == "admin").count() == 1
