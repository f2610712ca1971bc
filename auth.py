import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Response, status
from fastapi.security import APIKeyCookie
from jose import JWTError, jwt

from config import (
    ADMIN_PASSWORD, ADMIN_USERNAME, ALGORITHM, IS_PRODUCTION, SECRET_KEY,
    SESSION_COOKIE, SESSION_MAX_AGE_DAYS,
)
from database import Storage, get_storage
from errors import AdminAlreadySetUpError, ConflictError
from models import User

session_cookie = APIKeyCookie(name=SESSION_COOKIE, auto_error=False)

# Same parameters as Node's crypto.scrypt defaults, so existing hashes keep working
SCRYPT_N, SCRYPT_R, SCRYPT_P, SCRYPT_DKLEN = 16384, 8, 1, 64


def _scrypt(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"), salt=salt.encode("utf-8"),
        n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P, dklen=SCRYPT_DKLEN,
    )


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    return f"{_scrypt(password, salt).hex()}.{salt}"


def verify_password(plain_password: str, stored: str) -> bool:
    hashed, _, salt = (stored or "").partition(".")
    if not hashed or not salt:
        return False
    return hmac.compare_digest(_scrypt(plain_password, salt).hex(), hashed)


def create_session_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=SESSION_MAX_AGE_DAYS))
    return jwt.encode({"sub": str(user_id), "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def set_session_cookie(response: Response, user: User):
    response.set_cookie(
        key=SESSION_COOKIE,
        value=create_session_token(user.id),
        max_age=SESSION_MAX_AGE_DAYS * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=IS_PRODUCTION,
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax", secure=IS_PRODUCTION)


# --------------- Dependencies ---------------------------------------------

def get_current_user(token: Optional[str] = Depends(session_cookie),
                     storage: Storage = Depends(get_storage)) -> Optional[User]:
    """User behind the session cookie, or None for anonymous requests."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None
    return storage.get_user(user_id)


def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_admin(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None or user.role != "admin":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


# --------------- Flows ----------------------------------------------------

def authenticate(storage: Storage, username: str, password: str) -> Optional[User]:
    user = storage.get_user_by_username(username)
    if user is None:
        logging.warning(f"SECURITY: Tentative connexion utilisateur inconnu - {username}")
        return None
    if not verify_password(password, user.password):
        logging.warning(f"SECURITY: Echec mot de passe - User: {username}")
        return None
    logging.info(f"SECURITY: Connexion reussie - User: {username}")
    return user


def register_user(storage: Storage, username: str, password: str) -> User:
    user = storage.create_user(username, hash_password(password), role="user")
    logging.info(f"SECURITY: Nouveau compte cree - User: {username}")
    return user


def setup_admin(storage: Storage, username: str, password: str) -> User:
    """One-time bootstrap from the login page."""
    if storage.get_admin_user() is not None:
        raise AdminAlreadySetUpError()
    hashed = hash_password(password)
    existing = storage.get_user_by_username(username)
    if existing is None:
        admin = storage.create_user(username, hashed, role="admin")
    else:
        admin = storage.update_user(existing.id, password=hashed, role="admin")
    logging.info(f"SECURITY: Compte admin configure - User: {username}")
    return admin


def ensure_admin_user(storage: Storage, username: str = ADMIN_USERNAME,
                      password: str = ADMIN_PASSWORD) -> Optional[User]:
    """Create or reset the admin named by ADMIN_USERNAME / ADMIN_PASSWORD."""
    if not username or not password:
        return None
    hashed = hash_password(password)
    existing = storage.get_user_by_username(username)
    try:
        if existing is None:
            admin = storage.create_user(username, hashed, role="admin")
        else:
            admin = storage.update_user(existing.id, password=hashed, role="admin")
    except ConflictError as e:
        logging.warning(f"SECURITY: Admin {username} non cree - {e.message}")
        return None
    logging.info(f"SECURITY: Admin {username} synchronise depuis l'environnement")
    return admin
