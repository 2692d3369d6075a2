import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from fleet.core.config import JWT_ALG, JWT_SECRET
from fleet.core.errors import Forbidden, ProfileMissing, Unauthenticated
from fleet.db.users import UserStore
from fleet.policy import Actor

logger = logging.getLogger("fleet.auth")

bearer = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError as err:
        logger.info("Rejected token: %s", err)
        raise Unauthenticated("Invalid token")
    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("Invalid token")
    return {"sub": sub, "role": payload.get("role")}


def get_identity(creds: HTTPAuthorizationCredentials | None = Depends(bearer)):
    if creds is None or not creds.credentials:
        raise Unauthenticated()
    return decode_token(creds.credentials)


async def resolve_actor(identity: dict) -> Actor:
    # the profile, not the token claim, is the source of truth for role
    profile = await UserStore().fetch(identity["sub"])
    if not profile:
        raise ProfileMissing()
    return Actor(id=profile["id"], role=profile["role"], profile=profile)


async def get_actor(identity: dict = Depends(get_identity)) -> Actor:
    return await resolve_actor(identity)


def require_roles(*allowed):
    def _guard(actor: Actor = Depends(get_actor)):
        if actor.role not in allowed:
            raise Forbidden()
        return actor
    return _guard
