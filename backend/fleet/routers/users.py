from fastapi import APIRouter, Depends

from fleet.auth.deps import get_actor
from fleet.core.errors import DuplicateKey, NotFound, ValidationFailed, conflict_for
from fleet.db.users import UserStore
from fleet.policy import Actor, enforce, enforce_role_change
from fleet.routers.common import envelope
from fleet.schemas.user import UserCreate, UserUpdate

router = APIRouter(tags=["users"])


@router.get("/users")
async def list_users(actor: Actor = Depends(get_actor)):
    enforce(actor, "user", "list")
    return envelope(await UserStore().fetch_all())


@router.post("/users")
async def create_user(body: UserCreate, actor: Actor = Depends(get_actor)):
    enforce(actor, "user", "create")
    try:
        user = await UserStore().provision(
            body.email, body.password, body.full_name, role=body.role, phone=body.phone
        )
    except DuplicateKey as err:
        raise conflict_for(err)
    return envelope(user, "User created successfully")


@router.get("/users/{user_id}")
async def get_user(user_id: str, actor: Actor = Depends(get_actor)):
    enforce(actor, "user", "read", owner_id=user_id)
    user = await UserStore().fetch(user_id)
    if not user:
        raise NotFound("User not found")
    return envelope(user)


@router.put("/users/{user_id}")
async def update_user(user_id: str, body: UserUpdate, actor: Actor = Depends(get_actor)):
    enforce(actor, "user", "write", owner_id=user_id)

    users = UserStore()
    target = await users.fetch(user_id)
    if not target:
        raise NotFound("User not found")
    enforce_role_change(actor, target, body.role)

    # phone may be cleared; name and role may not
    update = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "phone"}
    if not update:
        raise ValidationFailed("Nothing to update")

    updated = await users.update(user_id, update)
    if not updated:
        raise NotFound("User not found")
    return envelope(updated, "User updated successfully")
