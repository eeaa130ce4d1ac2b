from fastapi import APIRouter, Body, Depends
from typing import Literal

from constants import TaskActions
from models.task import ShareRequest, ShareSettingsRequest
from routes.deps import TaskAccess, get_task_access, require_task_permission
from utils.task_permissions import TaskAccessControl
from logging_config import get_logger

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])
logger = get_logger("tasks")


@router.get("/{task_id}/permissions")
async def get_task_permissions(ctx: TaskAccess = Depends(require_task_permission(TaskActions.VIEW))):
    """Resolved permission flags of the current user on this task."""
    return {"task_id": ctx.task.id, "permission": ctx.permission}


@router.get("/{task_id}/sharing")
async def get_task_sharing(
    ctx: TaskAccess = Depends(require_task_permission(TaskActions.ADMIN)),
    access: TaskAccessControl = Depends(get_task_access),
):
    return await access.sharing_overview(ctx.task)


@router.post("/{task_id}/share", status_code=201)
async def share_task(
    body: ShareRequest = Body(...),
    ctx: TaskAccess = Depends(require_task_permission(TaskActions.ADMIN)),
    access: TaskAccessControl = Depends(get_task_access),
):
    """Grant one project member view/edit access to a private task (mentor only)."""
    grant = await access.share_with_user(
        ctx.task, ctx.user.id, ctx.user.kind, body.user_id, body.user_kind, body.access_type
    )
    return {"message": "Task shared", "grant": grant}


@router.delete("/{task_id}/share/{user_kind}/{user_id}")
async def unshare_task(
    user_kind: Literal['Student', 'CompanyAccount'],
    user_id: str,
    ctx: TaskAccess = Depends(require_task_permission(TaskActions.ADMIN)),
    access: TaskAccessControl = Depends(get_task_access),
):
    await access.remove_share(ctx.task, ctx.user.id, ctx.user.kind, user_id, user_kind)
    return {"message": "Share removed"}


@router.patch("/{task_id}/share-settings")
async def update_share_settings(
    body: ShareSettingsRequest = Body(...),
    ctx: TaskAccess = Depends(require_task_permission(TaskActions.ADMIN)),
    access: TaskAccessControl = Depends(get_task_access),
):
    """Switch public/private visibility and the default access for project members."""
    result = await access.update_share_settings(
        ctx.task, ctx.user.id, ctx.user.kind, body.is_public, body.default_access_type
    )
    response = await access.sharing_overview(ctx.task)
    if result is not None:
        response["notified"] = len(result.succeeded)
        response["notify_failed"] = len(result.failed)
    return response
