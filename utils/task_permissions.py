"""
Task access control.

Permission resolution for a (user, task) pair, first match wins:

1. the mentor who owns the task's project     -> full permission
2. public task and the user is a project member -> the task's default access
3. an explicit share grant for the user        -> the grant's access
4. otherwise                                   -> None (no permission)

Project members are the project's selected students and the accounts of the
project's company. Only the owning mentor can manage sharing; every grant is
checked against project membership at the moment it is made.
"""

from typing import Optional

from constants import AccessTypes, NotificationTypes, RecipientKinds, TaskActions
from exceptions import IneligibleGranteeError, PermissionDeniedError, ShareNotFoundError
from logging_config import get_logger
from models.notification import BatchResult, NotificationRequest
from models.project import ProjectModel
from models.task import (
    ACCESS_PERMISSIONS,
    FULL_PERMISSION,
    PermissionResult,
    TaskModel,
    TaskShareGrant,
)
from utils.directory import RecipientDirectory, TaskDirectory
from utils.notification_messages import message
from utils.notifications import NotificationService

logger = get_logger("task_permissions")


def covers(permission: PermissionResult, action: str) -> bool:
    if action == TaskActions.VIEW:
        return True
    if action == TaskActions.EDIT:
        return permission.can_add_files
    if action == TaskActions.ADMIN:
        return permission.can_manage_sharing
    raise ValueError(f"Unknown task action: {action}")


def is_owner(project: ProjectModel, user_id: str, user_kind: str) -> bool:
    return user_kind == RecipientKinds.COMPANY_ACCOUNT and user_id == project.mentor_id


class TaskAccessControl:
    def __init__(self, tasks: TaskDirectory, directory: RecipientDirectory, notifier: NotificationService):
        self._tasks = tasks
        self._directory = directory
        self._notifier = notifier

    # --- Resolution ---

    async def is_member(self, project: ProjectModel, user_id: str, user_kind: str) -> bool:
        if user_kind == RecipientKinds.STUDENT:
            return project.has_member(user_id)
        if user_kind == RecipientKinds.COMPANY_ACCOUNT:
            account = await self._directory.resolve_recipient(user_id, user_kind)
            return account is not None and account.company_id == project.company_id
        return False

    async def permission_for(self, task: TaskModel, project: ProjectModel, user_id: str, user_kind: str) -> Optional[PermissionResult]:
        if is_owner(project, user_id, user_kind):
            return FULL_PERMISSION

        sharing = task.sharing
        if sharing.is_public and await self.is_member(project, user_id, user_kind):
            return ACCESS_PERMISSIONS[sharing.default_access_type]

        grant = sharing.grant_for(user_id, user_kind)
        if grant is not None:
            return ACCESS_PERMISSIONS[grant.access_type]

        return None

    async def check_permission(
        self,
        task: TaskModel,
        user_id: str,
        user_kind: str,
        action: str,
        role: Optional[str] = None,
    ) -> Optional[PermissionResult]:
        """Permission covering ``action``, or None when the user has none.

        Lookup failures (missing project) raise instead of returning None, so a
        denial is never confused with an error.
        """
        project = await self._tasks.get_project(task.project_id)
        permission = await self.permission_for(task, project, user_id, user_kind)
        if permission is None or not covers(permission, action):
            logger.debug(
                "Task permission denied",
                extra={"data": {"task_id": task.id, "user_id": user_id, "kind": user_kind, "role": role, "action": action}}
            )
            return None
        return permission

    # --- Sharing management ---

    async def _authorize_manager(self, task: TaskModel, actor_id: str, actor_kind: str) -> ProjectModel:
        project = await self._tasks.get_project(task.project_id)
        permission = await self.permission_for(task, project, actor_id, actor_kind)
        if permission is None or not permission.can_manage_sharing:
            logger.warning(
                "Sharing change refused",
                extra={"data": {"task_id": task.id, "actor_id": actor_id, "actor_kind": actor_kind}}
            )
            raise PermissionDeniedError("Only the task's mentor can manage sharing", details={"task_id": task.id})
        return project

    async def share_with_user(
        self,
        task: TaskModel,
        actor_id: str,
        actor_kind: str,
        user_id: str,
        user_kind: str,
        access_type: str = AccessTypes.VIEW,
    ) -> TaskShareGrant:
        project = await self._authorize_manager(task, actor_id, actor_kind)

        # Eligibility is re-checked here, at grant time
        if is_owner(project, user_id, user_kind) or not await self.is_member(project, user_id, user_kind):
            raise IneligibleGranteeError(user_id, user_kind, task.id)

        grant = TaskShareGrant(user_id=user_id, user_kind=user_kind, access_type=access_type, shared_by=actor_id)
        sharing = task.sharing.model_copy(update={
            "shared_with": [g for g in task.sharing.shared_with if not (g.user_id == user_id and g.user_kind == user_kind)] + [grant]
        })
        await self._tasks.save_sharing(task.id, sharing)
        task.sharing = sharing
        logger.info("Task shared", extra={"data": {"task_id": task.id, "user_id": user_id, "kind": user_kind, "access": access_type}})

        await self._notifier.notify(
            user_id,
            user_kind,
            NotificationTypes.TASK,
            message("task.sharedWithYou", task.name, access_type),
            related_id=task.id,
        )
        return grant

    async def remove_share(self, task: TaskModel, actor_id: str, actor_kind: str, user_id: str, user_kind: str) -> None:
        await self._authorize_manager(task, actor_id, actor_kind)

        if task.sharing.grant_for(user_id, user_kind) is None:
            raise ShareNotFoundError(task.id, user_id)

        sharing = task.sharing.model_copy(update={
            "shared_with": [g for g in task.sharing.shared_with if not (g.user_id == user_id and g.user_kind == user_kind)]
        })
        await self._tasks.save_sharing(task.id, sharing)
        task.sharing = sharing
        logger.info("Task share removed", extra={"data": {"task_id": task.id, "user_id": user_id, "kind": user_kind}})

        await self._notifier.notify(
            user_id,
            user_kind,
            NotificationTypes.TASK,
            message("task.shareRemoved", task.name),
            related_id=task.id,
        )

    async def update_share_settings(
        self,
        task: TaskModel,
        actor_id: str,
        actor_kind: str,
        is_public: bool,
        default_access_type: Optional[str] = None,
    ) -> Optional[BatchResult]:
        """Toggle visibility. Individual grants are left in place either way.

        Returns the fan-out result when the task just became public, else None.
        """
        project = await self._authorize_manager(task, actor_id, actor_kind)

        was_public = task.sharing.is_public
        sharing = task.sharing.model_copy(update={
            "is_public": is_public,
            "default_access_type": default_access_type or task.sharing.default_access_type,
        })
        await self._tasks.save_sharing(task.id, sharing)
        task.sharing = sharing
        logger.info(
            "Task visibility updated",
            extra={"data": {"task_id": task.id, "is_public": is_public, "default_access": sharing.default_access_type}}
        )

        if was_public or not is_public:
            return None
        return await self._announce_public(task, project, actor_id, actor_kind)

    async def _announce_public(self, task: TaskModel, project: ProjectModel, actor_id: str, actor_kind: str) -> BatchResult:
        content = message("task.madePublic", task.name, task.sharing.default_access_type)
        members = [(a.student_id, RecipientKinds.STUDENT) for a in project.selected_applicants]
        members += [(account.id, account.kind) for account in await self._directory.company_accounts(project.company_id)]
        requests = [
            NotificationRequest(
                recipient=member_id,
                recipient_kind=member_kind,
                type=NotificationTypes.TASK,
                content=content,
                related_id=task.id,
            )
            for member_id, member_kind in members
            if not (member_id == actor_id and member_kind == actor_kind)
        ]
        return await self._notifier.notify_many(requests)

    async def sharing_overview(self, task: TaskModel) -> dict:
        return {
            "task_id": task.id,
            "is_public": task.sharing.is_public,
            "default_access_type": task.sharing.default_access_type,
            "shared_with": [grant.model_dump() for grant in task.sharing.shared_with],
        }
