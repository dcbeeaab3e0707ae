# app/core/security.py
import hashlib
import hmac
import logging
import time

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.core.config import get_settings
from app.models.database import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"


class LoginRequired(Exception):
    """Raised by `require_user`; the app turns it into a redirect to /login."""


# --- passwords ---
def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


# --- HMAC signing ---
def _signature(message: str) -> str:
    return hmac.new(
        get_settings().secret_key.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def sign_value(value: str) -> str:
    return f"{value}:{_signature(value)}"


def unsign_value(signed: str) -> str | None:
    """Return the original value, or None if the signature does not match."""
    if not signed or ":" not in signed:
        return None
    value, signature = signed.rsplit(":", 1)
    if not hmac.compare_digest(signature, _signature(value)):
        return None
    return value


# --- download links ---
def create_download_token(purchase_id: int, user_id: int, issued_at: int | None = None) -> str:
    if issued_at is None:
        issued_at = int(time.time())
    return sign_value(f"{purchase_id}.{user_id}.{issued_at}")


def verify_download_token(token: str) -> tuple[int, int] | None:
    """
    Check a download token.

    Returns (purchase_id, user_id) when the signature matches and the token
    is younger than `download_link_ttl` seconds, otherwise None.
    """
    message = unsign_value(token)
    if message is None:
        return None
    try:
        purchase_id, user_id, issued_at = (int(part) for part in message.split("."))
    except ValueError:
        return None

    if int(time.time()) - issued_at > get_settings().download_link_ttl:
        return None
    return purchase_id, user_id


# --- current user ---
def get_current_user_id(request: Request) -> int | None:
    user_id = unsign_value(request.cookies.get(SESSION_COOKIE, ""))
    if not user_id:
        return None
    try:
        return int(user_id)
    except ValueError:
        return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    user_id = get_current_user_id(request)
    if user_id is None:
        return None
    return db.get(User, user_id)


def require_user(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise LoginRequired()
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        logger.warning("User %s denied access to admin area", user.id)
        raise HTTPException(status_code=403, detail="Admins only")
    return user
