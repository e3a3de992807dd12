"""Authentication service: accounts, bearer tokens and password resets."""
import hashlib
import secrets
from datetime import datetime, timezone, timedelta
from typing import Optional

import bcrypt
import jwt
from pymongo.database import Database

from tutorhub.domain.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.api_models import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    parse_payload,
)
from tutorhub.domain.models.db_models import User, UserRole, new_id
from tutorhub.infrastructure.config import settings
from tutorhub.infrastructure.database import db as flask_db
from tutorhub.infrastructure.repositories import MongoUserRepository
from tutorhub.services import email_service
from hub_utils.logger_utils import logger

_TUTOR_PROFILE_FIELDS = (
    "subjects",
    "teaching_mode",
    "price",
    "years_of_experience",
    "availability",
    "testimonial",
)


def _get_db(db_conn: Optional[Database] = None) -> Database:
    return db_conn if db_conn is not None else flask_db


# bcrypt only looks at the first 72 bytes and newer releases raise past that
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a hash."""
    if not password_hash or len(password.encode('utf-8')) > BCRYPT_MAX_BYTES:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def _check_password_strength(password: str) -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )
    if len(password.encode('utf-8')) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(identity: Identity) -> str:
    """Sign a bearer token carrying the caller's id and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": identity.id,
        "role": UserRole(identity.role).value,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.jwt_signing_key, algorithm=settings.JWT_ALGORITHM)


def resolve_identity(token: str) -> Optional[Identity]:
    """Decode a bearer token. Returns None for anything invalid or expired."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, settings.jwt_signing_key, algorithms=[settings.JWT_ALGORITHM])
        return Identity(id=str(claims["sub"]), role=UserRole(claims["role"]))
    except (jwt.PyJWTError, KeyError, ValueError) as e:
        logger.info(f"Rejected bearer token: {type(e).__name__}")
        return None


def _session(user: User) -> dict:
    token = issue_token(Identity(id=user.id, role=UserRole(user.role)))
    return {"token": token, "user": user.to_public_dict()}


def signup(payload, db_conn: Optional[Database] = None) -> dict:
    """Create a new account and return a session for it."""
    request = parse_payload(SignupRequest, payload)
    _check_password_strength(request.password)

    role = UserRole(request.role)
    # Admin is never self-selected; it follows the configured address
    is_admin_email = bool(settings.ADMIN_EMAIL) and request.email == settings.ADMIN_EMAIL.lower()
    if role == UserRole.ADMIN and not is_admin_email:
        raise ValidationError("role must be one of: parent, tutor, student")
    if is_admin_email:
        role = UserRole.ADMIN

    repo = MongoUserRepository(_get_db(db_conn))
    if repo.get_by_email(request.email):
        raise ConflictError("User already exists")

    fields = {
        "_id": new_id(),
        "first_name": request.first_name,
        "last_name": request.last_name,
        "email": request.email,
        "phone": request.phone,
        "password_hash": hash_password(request.password),
        "role": role,
        "class_grade": request.class_grade if role == UserRole.STUDENT else None,
    }
    if role == UserRole.TUTOR:
        fields.update({name: getattr(request, name) for name in _TUTOR_PROFILE_FIELDS})
    user = User(**fields)

    repo.create(user)
    logger.info(f"Created new user: {user.email} with role: {user.role}")
    return _session(user)


def login(payload, db_conn: Optional[Database] = None) -> dict:
    """Authenticate by email and password."""
    request = parse_payload(LoginRequest, payload)
    user = MongoUserRepository(_get_db(db_conn)).get_by_email(request.email)
    if user is None or not verify_password(request.password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")

    logger.info(f"User authenticated: {user.email}")
    return _session(user)


def get_profile(identity: Identity, db_conn: Optional[Database] = None) -> dict:
    """Return the caller's account without secrets."""
    user = MongoUserRepository(_get_db(db_conn)).get_by_id(identity.id)
    if user is None:
        raise NotFoundError("User not found")
    return user.to_public_dict()


def request_password_reset(payload, base_url: str = "", db_conn: Optional[Database] = None) -> bool:
    """
    Email a one-time reset link.

    Unknown addresses get the same answer as known ones, so the endpoint
    cannot be used to probe for accounts. Returns whether an email was sent.
    """
    request = parse_payload(ForgotPasswordRequest, payload)
    repo = MongoUserRepository(_get_db(db_conn))
    user = repo.get_by_email(request.email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return False

    token = secrets.token_urlsafe(32)
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES)
    repo.update_fields(user.id, {"reset_password_token": _digest(token), "reset_password_expires": expires})

    url_base = settings.BASE_URL or base_url
    reset_link = f"{url_base.rstrip('/')}/reset-password?token={token}"
    return email_service.send_password_reset_email(user.email, reset_link)


def reset_password(payload, db_conn: Optional[Database] = None) -> None:
    """Set a new password using a token from the reset email."""
    request = parse_payload(ResetPasswordRequest, payload)
    _check_password_strength(request.password)

    repo = MongoUserRepository(_get_db(db_conn))
    user = repo.find_by_reset_token(_digest(request.token), datetime.now(timezone.utc))
    if user is None:
        raise ValidationError("Invalid or expired reset token")

    repo.update_fields(
        user.id,
        {
            "password_hash": hash_password(request.password),
            "reset_password_token": None,
            "reset_password_expires": None,
        },
    )
    logger.info("Password reset completed", extra={"user_id": user.id})
