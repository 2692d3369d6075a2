from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from fleet.core.config import JWT_ALG, JWT_EXPIRE_MIN, JWT_SECRET

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict, role: str) -> str:
    payload = data.copy()
    payload["role"] = role
    payload["iat"] = int(datetime.now(timezone.utc).timestamp())
    payload["exp"] = int(
        (datetime.now(timezone.utc) + timedelta(minutes=JWT_EXPIRE_MIN)).timestamp()
    )

    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)
