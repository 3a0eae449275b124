"""Password hashing, JWT tokens and route guards."""

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Optional

from flask import current_app, g, redirect, request, session, url_for
from jose import JWTError, jwt
from passlib.context import CryptContext

from fleet.user import Role, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60


class AuthError(Exception):
    """Missing, invalid or expired credentials (401)."""


class PermissionDenied(Exception):
    """Authenticated, but the role is not allowed (403)."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Unrecognized hash format
        return False


def create_access_token(
    user: User, secret: str, expires_delta: Optional[timedelta] = None
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": user.username, "role": user.role.value, "exp": expire}
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> Any:
    """Decode and verify a token. Raises AuthError when invalid or expired."""
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        raise AuthError("Invalid or expired token") from e


def authenticate(store, username: str, password: str) -> User:
    """Check credentials against the store. Raises AuthError."""
    user = store.get_user(username)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %r from %s", username, request.remote_addr)
        raise AuthError("Invalid credentials")
    return user


def _request_token(allow_query: bool) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    if session.get("token"):
        return session["token"]
    if allow_query:
        return request.args.get("token")
    return None


def current_user(allow_query: bool = False) -> User:
    """Resolve the user for this request. Raises AuthError."""
    token = _request_token(allow_query)
    if not token:
        raise AuthError("Authentication required")
    payload = decode_token(token, current_app.config["SECRET_KEY"])
    store = current_app.extensions["fleet_store"]
    user = store.get_user(payload.get("sub", ""))
    if user is None:
        raise AuthError("User not found")
    return user


def login_required(view: Callable = None, *, allow_query: bool = False) -> Callable:
    """
    Require a valid token (bearer header or session) for an API route.

    `allow_query` also accepts ?token=, for EventSource clients that
    cannot set headers.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.user = current_user(allow_query=allow_query)
            return fn(*args, **kwargs)

        return wrapper

    if view is not None:
        return decorator(view)
    return decorator


def role_required(*allowed_roles: Role) -> Callable:
    """Require one of the given roles. Use inside login_required."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = g.get("user") or current_user()
            if user.role not in allowed_roles:
                raise PermissionDenied("Insufficient role")
            g.user = user
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def page_login_required(fn: Callable) -> Callable:
    """Like login_required, but redirects browsers to the login page."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            g.user = current_user()
        except AuthError:
            session.pop("token", None)
            return redirect(url_for("login_page"))
        return fn(*args, **kwargs)

    return wrapper
