import time
from typing import Optional

import jwt
from passlib.context import CryptContext

from . import config
from .rules import Identity, Role

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
COOKIE_NAME = "token"
EXP_SECONDS = 60 * 60 * 24 * 7  # 7 days
REMEMBER_ME_EXP_SECONDS = 60 * 60 * 24 * 30  # 30 days


def token_lifetime(remember_me: bool = False) -> int:
    return REMEMBER_ME_EXP_SECONDS if remember_me else EXP_SECONDS


def create_access_token(identity: Identity, remember_me: bool = False) -> str:
    now = int(time.time())
    exp = now + token_lifetime(remember_me)
    payload = {
        "sub": str(identity.id),
        "id": identity.id,
        "email": identity.email,
        "role": identity.role.value,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, config.get_settings().jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.get_settings().jwt_secret, algorithms=[ALGORITHM])


def verify_token(token: Optional[str]) -> Optional[Identity]:
    """Return the identity embedded in a valid token, or None for anything else."""
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        return None
    try:
        return Identity(id=int(payload["id"]), email=str(payload["email"]), role=Role(payload["role"]))
    except (KeyError, TypeError, ValueError):
        return None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
