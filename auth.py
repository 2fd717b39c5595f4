import hashlib
import hmac
import logging
import secrets

from fastapi import Depends, Request

from errors import UnauthorizedError
from storage import DatabaseStorage, get_storage
from tables import UserRow

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "producti.sid"
SESSION_USER_KEY = "user_id"

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_KEY_LENGTH = 64


def _scrypt(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=SCRYPT_KEY_LENGTH,
    )


def get_password_hash(password: str) -> str:
    """Hash as ``<hex digest>.<hex salt>``."""
    salt = secrets.token_hex(16)
    return f"{_scrypt(password, salt).hex()}.{salt}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    hashed, _, salt = hashed_password.partition(".")
    if not hashed or not salt:
        return False
    try:
        expected = bytes.fromhex(hashed)
    except ValueError:
        return False
    return hmac.compare_digest(expected, _scrypt(plain_password, salt))


def authenticate_user(storage: DatabaseStorage, email: str, password: str) -> UserRow:
    user = storage.get_user_by_email(email)
    if not user or not verify_password(password, user.password):
        logger.warning("Failed login attempt for %s", email)
        raise UnauthorizedError("Invalid email or password")
    return user


def login_user(request: Request, user: UserRow):
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id


def logout_user(request: Request):
    request.session.clear()


def get_current_user(request: Request, storage: DatabaseStorage = Depends(get_storage)) -> UserRow:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise UnauthorizedError("You must be logged in to access this resource")
    user = storage.get_user(user_id)
    if user is None:
        # session outlived the account
        request.session.clear()
        raise UnauthorizedError("You must be logged in to access this resource")
    return user
