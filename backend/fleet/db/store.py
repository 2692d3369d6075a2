from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from fleet.core.errors import DuplicateKey
from fleet.db.mongo import db

NO_ID = {"_id": 0}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def by_id(docs: list[dict]) -> dict[str, dict]:
    return {d["id"]: d for d in docs}


class Store:
    """Plain CRUD over one collection, keyed by a string ``id``."""

    collection: str = ""
    unique_fields: tuple[str, ...] = ()

    def __init__(self, database=None):
        self.db = database if database is not None else db()

    @property
    def coll(self):
        return self.db[self.collection]

    async def fetch(self, id: str) -> Optional[dict]:
        return await self.coll.find_one({"id": id}, NO_ID)

    async def fetch_all(self, filter: Optional[dict] = None, limit: int = 500) -> list[dict]:
        cursor = self.coll.find(filter or {}, NO_ID).sort("created_at", -1)
        return await cursor.to_list(length=limit)

    async def fetch_many(self, ids) -> dict[str, dict]:
        ids = [i for i in set(ids) if i]
        if not ids:
            return {}
        docs = await self.coll.find({"id": {"$in": ids}}, NO_ID).to_list(length=len(ids))
        return by_id(docs)

    async def create(self, fields: dict, id: Optional[str] = None) -> dict:
        now = utcnow()
        doc = {"id": id or new_id(), **fields, "created_at": now, "updated_at": now}
        try:
            await self.coll.insert_one(doc)
        except DuplicateKeyError as err:
            raise DuplicateKey(await self._duplicate_field(err, doc))
        doc.pop("_id", None)
        return doc

    async def update(self, id: str, fields: dict) -> Optional[dict]:
        update = {**fields, "updated_at": utcnow()}
        try:
            return await self.coll.find_one_and_update(
                {"id": id},
                {"$set": update},
                projection=NO_ID,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as err:
            raise DuplicateKey(await self._duplicate_field(err, {"id": id, **fields}))

    async def delete(self, id: str) -> bool:
        res = await self.coll.delete_one({"id": id})
        return res.deleted_count > 0

    async def _duplicate_field(self, err: DuplicateKeyError, doc: dict) -> str:
        pattern = (err.details or {}).get("keyPattern") or {}
        for name in pattern:
            if name in self.unique_fields:
                return name
        # not every server reports keyPattern; find the colliding value instead
        for name in self.unique_fields:
            if name in doc and await self.coll.find_one({name: doc[name], "id": {"$ne": doc["id"]}}):
                return name
        return self.unique_fields[0] if self.unique_fields else "id"
