"""
Persistence for notifications.

Soft-deleted rows are never filtered implicitly: every read takes a mandatory
``deleted`` keyword so callers that need the deleted rows (restore listing) ask
for them explicitly.
"""

from typing import Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import BulkWriteError

from logging_config import get_logger
from models.notification import NotificationModel

logger = get_logger("notification_store")

NEWEST_FIRST = [("created_at", DESCENDING)]


def _with_deleted(query: Dict, deleted: bool) -> Dict:
    return {**query, "is_deleted": deleted}


class NotificationStore:
    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection

    async def ensure_indexes(self) -> None:
        # List / unread badge
        await self._collection.create_index([("recipient", ASCENDING), ("created_at", DESCENDING)])
        await self._collection.create_index([("recipient", ASCENDING), ("is_read", ASCENDING)])
        await self._collection.create_index([("id", ASCENDING)], unique=True)
        # At most one open (unread, not deleted) row per group
        await self._collection.create_index(
            [
                ("recipient", ASCENDING),
                ("recipient_kind", ASCENDING),
                ("type", ASCENDING),
                ("related_data.group_key", ASCENDING),
            ],
            unique=True,
            name="open_group_unique",
            partialFilterExpression={
                "is_read": False,
                "is_deleted": False,
                "related_data.group_key": {"$exists": True},
            },
        )
        logger.info("Notification indexes ensured")

    async def insert_one(self, notification: NotificationModel) -> NotificationModel:
        await self._collection.insert_one(notification.model_dump())
        return notification

    async def insert_many(self, notifications: List[NotificationModel]) -> Tuple[List[NotificationModel], Dict[int, str]]:
        """Insert independently; returns the stored models and {index: error} for the rest."""
        if not notifications:
            return [], {}
        try:
            await self._collection.insert_many([n.model_dump() for n in notifications], ordered=False)
        except BulkWriteError as exc:
            errors = {e["index"]: e.get("errmsg", "write error") for e in exc.details.get("writeErrors", [])}
            stored = [n for i, n in enumerate(notifications) if i not in errors]
            return stored, errors
        return list(notifications), {}

    async def find(self, query: Dict, *, deleted: bool, page: int = 1, limit: int = 10) -> Tuple[List[NotificationModel], int]:
        scoped = _with_deleted(query, deleted)
        skip = (page - 1) * limit
        docs = await self._collection.find(scoped).sort(NEWEST_FIRST).skip(skip).limit(limit).to_list(limit)
        total = await self._collection.count_documents(scoped)
        return [NotificationModel(**doc) for doc in docs], total

    async def find_one(self, query: Dict, *, deleted: bool) -> Optional[NotificationModel]:
        doc = await self._collection.find_one(_with_deleted(query, deleted))
        return NotificationModel(**doc) if doc else None

    async def count(self, query: Dict, *, deleted: bool) -> int:
        return await self._collection.count_documents(_with_deleted(query, deleted))

    async def find_latest_unread_and_update(self, query: Dict, update: Dict) -> Optional[NotificationModel]:
        """Atomically update the newest unread, non-deleted row matching ``query``."""
        doc = await self._collection.find_one_and_update(
            {**query, "is_read": False, "is_deleted": False},
            update,
            sort=NEWEST_FIRST,
            return_document=ReturnDocument.AFTER,
        )
        return NotificationModel(**doc) if doc else None

    async def update_by_id(self, notification_id: str, query: Dict, update: Dict) -> Optional[NotificationModel]:
        doc = await self._collection.find_one_and_update(
            {**query, "id": notification_id},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return NotificationModel(**doc) if doc else None

    async def update_many(self, query: Dict, update: Dict, *, deleted: bool) -> int:
        result = await self._collection.update_many(_with_deleted(query, deleted), update)
        return result.modified_count
