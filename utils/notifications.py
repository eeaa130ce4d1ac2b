"""
Notification fan-out.

NotificationService is the only writer of notification rows. Each notification is
composed, checked against the recipient directory, persisted and only then pushed
to the realtime stream. Persistence errors propagate to the caller; stream errors
are logged and dropped.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from config import config
from constants import RecipientKinds
from exceptions import (
    InternTrackError,
    NotificationNotFoundError,
    StreamDeliveryWarning,
    TemplateNotFoundError,
    UnknownRecipientError,
)
from logging_config import get_logger
from models.notification import (
    BatchFailure,
    BatchResult,
    NotificationModel,
    NotificationPage,
    NotificationRequest,
)
from models.user import CurrentUser
from utils.directory import RecipientDirectory
from utils.notification_messages import (
    GROUPED_TEMPLATES,
    TemplateRef,
    compose,
    compose_grouped,
    escape_content,
    get_template,
)
from utils.notification_store import NotificationStore
from utils.notification_stream import NotificationBackplane, notification_stream

logger = get_logger("notifications")

Content = Union[str, TemplateRef]


def render_content(content: Content) -> str:
    if isinstance(content, TemplateRef):
        content = compose(content.key, *content.params)
    return escape_content(content)


def unread_badge(count: int) -> str:
    return f"{config.UNREAD_BADGE_CAP}+" if count > config.UNREAD_BADGE_CAP else str(count)


def owner_query(user: CurrentUser) -> dict:
    """Rows addressed to this account; role-scoped kinds also match on role."""
    query = {"recipient": user.id, "recipient_kind": user.kind}
    if user.kind in RecipientKinds.ROLE_SCOPED:
        query["recipient_role"] = user.role
    return query


class NotificationService:
    def __init__(
        self,
        store: NotificationStore,
        directory: RecipientDirectory,
        stream: NotificationBackplane = notification_stream,
    ):
        self._store = store
        self._directory = directory
        self._stream = stream

    # --- Fan-out ---

    async def notify(
        self,
        recipient: str,
        recipient_kind: str,
        type: str,
        content: Content,
        related_id: Optional[str] = None,
        recipient_role: Optional[str] = None,
        related_data: Optional[dict] = None,
    ) -> NotificationModel:
        """Create one notification, persist it, then push it to connected clients."""
        notification = await self._build(recipient, recipient_kind, type, content, related_id, recipient_role, related_data)
        await self._store.insert_one(notification)
        logger.info(
            "Notification created",
            extra={"data": {"id": notification.id, "recipient": recipient, "kind": recipient_kind, "type": type}}
        )
        self._push(notification)
        return notification

    async def notify_many(self, requests: Iterable[Union[NotificationRequest, dict]]) -> BatchResult:
        """Fan out a batch. Every item succeeds or fails on its own; failures are reported, not raised."""
        requests = list(requests)
        result = BatchResult()
        if not requests:
            return result

        built = await asyncio.gather(*(self._try_build(r) for r in requests))

        ready: List[Tuple[int, NotificationModel]] = []
        for index, (item, (notification, error)) in enumerate(zip(requests, built)):
            if error is not None:
                result.failed.append(self._failure(index, item, error))
            else:
                ready.append((index, notification))

        stored, write_errors = await self._store.insert_many([n for _, n in ready])
        stored_ids = {n.id for n in stored}
        for position, (index, notification) in enumerate(ready):
            if notification.id in stored_ids:
                result.succeeded.append(notification)
            else:
                message = write_errors.get(position, "write error")
                logger.error(f"Batch notification write failed: {message}", extra={"data": {"recipient": notification.recipient}})
                result.failed.append(BatchFailure(
                    index=index,
                    recipient=notification.recipient,
                    recipient_kind=notification.recipient_kind,
                    code="PERSISTENCE_ERROR",
                    error=message,
                ))

        for notification in result.succeeded:
            self._push(notification)

        result.failed.sort(key=lambda f: f.index)
        logger.info(
            "Batch fan-out finished",
            extra={"data": {"requested": len(requests), "succeeded": len(result.succeeded), "failed": len(result.failed)}}
        )
        return result

    async def notify_or_group(
        self,
        recipient: str,
        recipient_kind: str,
        group_key: str,
        actor_name: str,
        type: str,
        *,
        actor_id: Optional[str] = None,
        template: str = "account.newRegistration",
        related_id: Optional[str] = None,
        recipient_role: Optional[str] = None,
        related_data: Optional[dict] = None,
    ) -> NotificationModel:
        """Fold a repeated event into the recipient's open (unread) notification for ``group_key``.

        The increment is one atomic find-and-update. When no open row exists a new one
        is inserted with count 1; on MongoDB the ``open_group_unique`` index rejects a
        second concurrent insert, which then falls back to incrementing the winner.
        """
        # Both variants must exist before anything is read or written
        grouped_template = GROUPED_TEMPLATES.get(template)
        if grouped_template is None:
            raise TemplateNotFoundError(f"{template} (grouped)")
        get_template(template)
        get_template(grouped_template)

        resolved = await self._resolve(recipient, recipient_kind)
        match = {
            "recipient": resolved.id,
            "recipient_kind": resolved.kind,
            "type": type,
            "related_data.group_key": group_key,
        }

        notification = await self._increment_group(match, template, actor_id, actor_name)
        if notification is None:
            fresh = NotificationModel(
                recipient=resolved.id,
                recipient_kind=resolved.kind,
                recipient_role=self._role_for(resolved, recipient_role),
                type=type,
                content=escape_content(compose_grouped(template, actor_name, 1)),
                related_id=related_id,
                related_data={
                    **(related_data or {}),
                    "group_key": group_key,
                    "count": 1,
                    "first_actor_name": actor_name,
                    "latest_actor_id": actor_id,
                    "latest_actor_name": actor_name,
                },
            )
            try:
                await self._store.insert_one(fresh)
                notification = fresh
                logger.info("Grouped notification opened", extra={"data": {"id": fresh.id, "group_key": group_key}})
            except DuplicateKeyError:
                logger.info("Group opened concurrently, incrementing instead", extra={"data": {"group_key": group_key}})
                notification = await self._increment_group(match, template, actor_id, actor_name)
                if notification is None:
                    raise

        self._push(notification)
        return notification

    # --- Recipient-side operations ---

    async def list_for(
        self,
        user: CurrentUser,
        page: int = 1,
        limit: int = config.NOTIFICATION_PAGE_SIZE,
        unread_only: bool = False,
        deleted: bool = False,
    ) -> NotificationPage:
        query = owner_query(user)
        if unread_only:
            query["is_read"] = False
        items, total = await self._store.find(query, deleted=deleted, page=page, limit=limit)
        return NotificationPage(
            notifications=items,
            current_page=page,
            total_pages=(total + limit - 1) // limit,
            total=total,
        )

    async def unread_count(self, user: CurrentUser) -> Tuple[int, str]:
        count = await self._store.count({**owner_query(user), "is_read": False}, deleted=False)
        return count, unread_badge(count)

    async def mark_as_read(self, notification_id: str, user: CurrentUser) -> NotificationModel:
        """Idempotent: an already-read notification is returned unchanged."""
        query = owner_query(user)
        existing = await self._store.find_one({**query, "id": notification_id}, deleted=False)
        if existing is None:
            raise NotificationNotFoundError(notification_id)
        if existing.is_read:
            return existing

        updated = await self._store.update_by_id(
            notification_id,
            {**query, "is_read": False},
            {"$set": {"is_read": True, "read_at": datetime.now(timezone.utc)}},
        )
        # None: another request marked it in between
        return updated or await self._store.find_one({**query, "id": notification_id}, deleted=False)

    async def mark_all_as_read(self, user: CurrentUser) -> int:
        return await self._store.update_many(
            {**owner_query(user), "is_read": False},
            {"$set": {"is_read": True, "read_at": datetime.now(timezone.utc)}},
            deleted=False,
        )

    async def soft_delete(self, notification_id: str, user: CurrentUser) -> NotificationModel:
        updated = await self._store.update_by_id(
            notification_id,
            {**owner_query(user), "is_deleted": False},
            {"$set": {"is_deleted": True}},
        )
        if updated is None:
            raise NotificationNotFoundError(notification_id)
        logger.info("Notification soft-deleted", extra={"data": {"id": notification_id}})
        return updated

    async def restore(self, notification_id: str, user: CurrentUser) -> NotificationModel:
        updated = await self._store.update_by_id(
            notification_id,
            {**owner_query(user), "is_deleted": True},
            {"$set": {"is_deleted": False}},
        )
        if updated is None:
            raise NotificationNotFoundError(notification_id)
        logger.info("Notification restored", extra={"data": {"id": notification_id}})
        return updated

    # --- Internals ---

    async def _resolve(self, recipient: str, recipient_kind: str):
        if recipient_kind not in RecipientKinds.ALL:
            raise UnknownRecipientError(recipient, recipient_kind)
        resolved = await self._directory.resolve_recipient(recipient, recipient_kind)
        if resolved is None:
            raise UnknownRecipientError(recipient, recipient_kind)
        return resolved

    def _role_for(self, resolved, requested: Optional[str]) -> Optional[str]:
        role = resolved.scope_role
        if requested and requested != role:
            logger.warning(
                "Requested recipient role ignored",
                extra={"data": {"recipient": resolved.id, "requested": requested, "resolved": role}}
            )
        return role

    async def _build(self, recipient, recipient_kind, type, content, related_id, recipient_role, related_data) -> NotificationModel:
        text = render_content(content)
        resolved = await self._resolve(recipient, recipient_kind)
        return NotificationModel(
            recipient=resolved.id,
            recipient_kind=resolved.kind,
            recipient_role=self._role_for(resolved, recipient_role),
            type=type,
            content=text,
            related_id=related_id,
            related_data=related_data or {},
        )

    async def _try_build(self, item: Union[NotificationRequest, dict]):
        """Validate and build one batch item; any failure is returned, not raised."""
        try:
            request = item if isinstance(item, NotificationRequest) else NotificationRequest(**item)
            notification = await self._build(
                request.recipient,
                request.recipient_kind,
                request.type,
                request.content,
                request.related_id,
                request.recipient_role,
                request.related_data,
            )
            return notification, None
        except Exception as exc:
            return None, exc

    def _failure(self, index: int, item: Union[NotificationRequest, dict], error: Exception) -> BatchFailure:
        if isinstance(error, InternTrackError):
            code = error.code
        elif isinstance(error, ValidationError):
            code = "VALIDATION_ERROR"
        else:
            code = type(error).__name__

        if isinstance(item, NotificationRequest):
            recipient, recipient_kind = item.recipient, item.recipient_kind
        elif isinstance(item, dict):
            recipient, recipient_kind = item.get("recipient"), item.get("recipient_kind")
        else:
            recipient = recipient_kind = None
        logger.warning(
            f"Batch notification rejected: {error}",
            extra={"data": {"index": index, "recipient": recipient, "kind": recipient_kind}}
        )
        return BatchFailure(
            index=index,
            recipient=recipient if isinstance(recipient, str) else None,
            recipient_kind=recipient_kind if isinstance(recipient_kind, str) else None,
            code=code,
            error=str(error),
        )

    async def _increment_group(self, match: dict, template: str, actor_id, actor_name) -> Optional[NotificationModel]:
        updated = await self._store.find_latest_unread_and_update(
            match,
            {
                "$inc": {"related_data.count": 1},
                "$set": {
                    "related_data.latest_actor_id": actor_id,
                    "related_data.latest_actor_name": actor_name,
                },
            },
        )
        if updated is None:
            return None

        count = updated.related_data.get("count", 1)
        content = escape_content(compose_grouped(template, actor_name, count))
        # Only render if no later increment landed in between; that one renders itself
        rendered = await self._store.update_by_id(
            updated.id,
            {"related_data.count": count},
            {"$set": {"content": content}},
        )
        if rendered is None:
            return updated.model_copy(update={"content": content})
        logger.info("Grouped notification incremented", extra={"data": {"id": updated.id, "count": count}})
        return rendered

    def _push(self, notification: NotificationModel) -> None:
        try:
            self._stream.publish(notification)
        except Exception as exc:
            warning = StreamDeliveryWarning(f"Stream push failed for notification {notification.id}: {exc}")
            logger.warning(str(warning), exc_info=True)
