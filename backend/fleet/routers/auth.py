import logging

from fastapi import APIRouter, Depends

from fleet.auth.deps import get_actor
from fleet.core.errors import DuplicateKey, Unauthenticated, conflict_for
from fleet.core.security import create_access_token
from fleet.db.users import UserStore
from fleet.policy import Actor
from fleet.routers.common import envelope
from fleet.schemas.user import LoginIn, SignupIn

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger("fleet.auth")


def _token_body(user: dict) -> dict:
    token = create_access_token({"sub": user["id"]}, role=user["role"])
    return {"access_token": token, "token_type": "bearer", "role": user["role"], "user": user}


@router.post("/signup")
async def signup(body: SignupIn):
    # self-registration never grants more than the driver role
    try:
        user = await UserStore().provision(
            body.email, body.password, body.full_name, role="driver", phone=body.phone
        )
    except DuplicateKey as err:
        raise conflict_for(err)
    logger.info("Self-registered user %s", user["id"])
    return envelope(_token_body(user), "Account created successfully")


@router.post("/login")
async def login(body: LoginIn):
    users = UserStore()
    ident = await users.identities.authenticate(body.email, body.password)
    if not ident:
        raise Unauthenticated("Invalid credentials")

    user = await users.fetch(ident["id"])
    if not user:
        # a token for an identity without a profile would only ever yield ProfileMissing
        raise Unauthenticated("Invalid credentials")
    return envelope(_token_body(user))


@router.get("/me")
async def me(actor: Actor = Depends(get_actor)):
    return envelope(actor.profile)
