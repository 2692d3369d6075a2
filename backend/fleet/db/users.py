import logging
from typing import Optional

from fleet.core.security import hash_password, verify_password
from fleet.db.store import NO_ID, Store, new_id

logger = logging.getLogger("fleet.db.users")


class IdentityStore(Store):
    """Credentials for the auth side. Never returned over HTTP."""

    collection = "identities"
    unique_fields = ("email",)

    async def fetch_by_email(self, email: str) -> Optional[dict]:
        return await self.coll.find_one({"email": email.lower()}, NO_ID)

    async def authenticate(self, email: str, password: str) -> Optional[dict]:
        ident = await self.fetch_by_email(email)
        if not ident or not verify_password(password, ident.get("password_hash", "")):
            return None
        return ident


class UserStore(Store):
    collection = "users"
    unique_fields = ("email",)

    def __init__(self, database=None):
        super().__init__(database)
        self.identities = IdentityStore(self.db)

    async def provision(self, email: str, password: str, full_name: str, role: str, phone: Optional[str] = None) -> dict:
        """Create the identity and its profile under one id, or neither."""
        email = email.lower()
        user_id = new_id()
        await self.identities.create(
            {"email": email, "password_hash": hash_password(password)}, id=user_id
        )
        try:
            return await self.create(
                {"email": email, "full_name": full_name, "role": role, "phone": phone}, id=user_id
            )
        except Exception:
            await self.identities.delete(user_id)
            raise

    async def remove(self, user_id: str):
        await self.delete(user_id)
        await self.identities.delete(user_id)
        logger.info("Removed user %s", user_id)
