import pytest

from exceptions import (
    IneligibleGranteeError,
    PermissionDeniedError,
    ProjectNotFoundError,
    ShareNotFoundError,
    TaskNotFoundError,
)
from models.task import EDIT_PERMISSION, FULL_PERMISSION, VIEW_PERMISSION, TaskModel
from utils.task_permissions import covers

pytestmark = pytest.mark.asyncio


async def load_task(task_directory, world):
    return await task_directory.get_task(world["task"])


async def notifications_for(store, user_id):
    rows, _ = await store.find({"recipient": user_id}, deleted=False, limit=100)
    return rows


# ─── resolution ──────────────────────────────────────────────────────────────

async def test_private_task_without_grant_denies_member(access, task_directory, world):
    task = await load_task(task_directory, world)
    assert await access.check_permission(task, world["member"], "Student", "view") is None
    assert await access.check_permission(task, world["member"], "Student", "edit") is None


async def test_assignee_has_no_implicit_access(access, task_directory, world):
    task = await load_task(task_directory, world)
    assert await access.check_permission(task, world["assignee"], "Student", "view") is None


async def test_owner_mentor_has_full_permission(access, task_directory, world):
    task = await load_task(task_directory, world)
    for action in ("view", "edit", "admin"):
        assert await access.check_permission(task, world["mentor"], "CompanyAccount", action) == FULL_PERMISSION


async def test_same_company_account_is_not_owner(access, task_directory, world):
    task = await load_task(task_directory, world)
    assert await access.check_permission(task, world["company_admin"], "CompanyAccount", "view") is None


async def test_share_edit_grants_edit_permission(access, task_directory, store, world):
    task = await load_task(task_directory, world)
    grant = await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "edit")
    assert grant.access_type == "edit"
    assert grant.shared_by == world["mentor"]

    reloaded = await load_task(task_directory, world)
    permission = await access.check_permission(reloaded, world["member"], "Student", "edit")
    assert permission == EDIT_PERMISSION
    assert permission.can_add_files is True
    assert permission.can_manage_sharing is False
    assert await access.check_permission(reloaded, world["member"], "Student", "admin") is None

    rows = await notifications_for(store, world["member"])
    assert [n.content for n in rows] == ["Task **Build login** was shared with you (edit access)."]
    assert rows[0].related_id == world["task"]


async def test_view_grant_does_not_cover_edit(access, task_directory, world):
    task = await load_task(task_directory, world)
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "view")

    assert await access.check_permission(task, world["member"], "Student", "view") == VIEW_PERMISSION
    assert await access.check_permission(task, world["member"], "Student", "edit") is None


async def test_resharing_replaces_the_grant(access, task_directory, world):
    task = await load_task(task_directory, world)
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "view")
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "edit")

    reloaded = await load_task(task_directory, world)
    assert len(reloaded.sharing.shared_with) == 1
    assert reloaded.sharing.shared_with[0].access_type == "edit"


async def test_same_company_account_can_be_granted(access, task_directory, world):
    task = await load_task(task_directory, world)
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["other_mentor"], "CompanyAccount", "edit")
    assert await access.check_permission(task, world["other_mentor"], "CompanyAccount", "edit") == EDIT_PERMISSION


# ─── grant eligibility and manager checks ────────────────────────────────────

@pytest.mark.parametrize("grantee,kind", [
    ("student-outsider", "Student"),
    ("outsider-mentor", "CompanyAccount"),
    ("mentor-1", "CompanyAccount"),
    ("ghost", "CompanyAccount"),
])
async def test_ineligible_grantee_is_rejected(access, task_directory, store, world, grantee, kind):
    task = await load_task(task_directory, world)
    with pytest.raises(IneligibleGranteeError) as exc_info:
        await access.share_with_user(task, world["mentor"], "CompanyAccount", grantee, kind, "view")
    assert exc_info.value.status_code == 422

    reloaded = await load_task(task_directory, world)
    assert reloaded.sharing.shared_with == []
    assert await notifications_for(store, grantee) == []


@pytest.mark.parametrize("actor,kind", [
    ("student-member", "Student"),
    ("company-admin-1", "CompanyAccount"),
    ("mentor-2", "CompanyAccount"),
    ("admin-1", "Admin"),
])
async def test_only_owner_can_manage_sharing(access, task_directory, world, actor, kind):
    task = await load_task(task_directory, world)
    with pytest.raises(PermissionDeniedError):
        await access.share_with_user(task, actor, kind, world["member"], "Student", "view")
    with pytest.raises(PermissionDeniedError):
        await access.update_share_settings(task, actor, kind, True, "edit")


async def test_edit_grantee_cannot_reshare(access, task_directory, world):
    task = await load_task(task_directory, world)
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "edit")
    with pytest.raises(PermissionDeniedError):
        await access.share_with_user(task, world["member"], "Student", world["assignee"], "Student", "view")


# ─── public visibility ───────────────────────────────────────────────────────

async def test_public_task_applies_default_access_to_members(access, task_directory, world):
    task = await load_task(task_directory, world)
    await access.update_share_settings(task, world["mentor"], "CompanyAccount", True, "view")

    assert await access.check_permission(task, world["member"], "Student", "view") == VIEW_PERMISSION
    assert await access.check_permission(task, world["member"], "Student", "edit") is None
    assert await access.check_permission(task, world["other_mentor"], "CompanyAccount", "view") == VIEW_PERMISSION
    assert await access.check_permission(task, world["outsider"], "Student", "view") is None
    assert await access.check_permission(task, world["outsider_mentor"], "CompanyAccount", "view") is None


async def test_making_public_notifies_members_except_actor(access, task_directory, store, world):
    task = await load_task(task_directory, world)
    result = await access.update_share_settings(task, world["mentor"], "CompanyAccount", True, "edit")

    assert result.ok
    notified = {(n.recipient, n.recipient_kind) for n in result.succeeded}
    assert notified == {
        (world["assignee"], "Student"),
        (world["member"], "Student"),
        (world["company_admin"], "CompanyAccount"),
        (world["other_mentor"], "CompanyAccount"),
    }
    rows = await notifications_for(store, world["member"])
    assert rows[0].content == "Task **Build login** is now visible to all project members (edit access)."
    assert await notifications_for(store, world["mentor"]) == []
    assert await notifications_for(store, world["outsider"]) == []


async def test_only_private_to_public_flip_notifies(access, task_directory, world):
    task = await load_task(task_directory, world)
    assert await access.update_share_settings(task, world["mentor"], "CompanyAccount", False, "edit") is None
    assert await access.update_share_settings(task, world["mentor"], "CompanyAccount", True) is not None
    assert await access.update_share_settings(task, world["mentor"], "CompanyAccount", True, "edit") is None
    assert await access.update_share_settings(task, world["mentor"], "CompanyAccount", False) is None


async def test_grants_are_dormant_while_public(access, task_directory, world):
    task = await load_task(task_directory, world)
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "view")

    await access.update_share_settings(task, world["mentor"], "CompanyAccount", True, "edit")
    assert await access.check_permission(task, world["member"], "Student", "edit") == EDIT_PERMISSION

    await access.update_share_settings(task, world["mentor"], "CompanyAccount", False)
    reloaded = await load_task(task_directory, world)
    assert reloaded.sharing.grant_for(world["member"], "Student") is not None
    assert await access.check_permission(reloaded, world["member"], "Student", "edit") is None
    assert await access.check_permission(reloaded, world["member"], "Student", "view") == VIEW_PERMISSION


# ─── removal ─────────────────────────────────────────────────────────────────

async def test_remove_share_revokes_and_notifies(access, task_directory, store, world):
    task = await load_task(task_directory, world)
    await access.share_with_user(task, world["mentor"], "CompanyAccount", world["member"], "Student", "edit")
    await access.remove_share(task, world["mentor"], "CompanyAccount", world["member"], "Student")

    reloaded = await load_task(task_directory, world)
    assert await access.check_permission(reloaded, world["member"], "Student", "view") is None
    rows = await notifications_for(store, world["member"])
    assert "Your access to task **Build login** was removed." in [n.content for n in rows]

    with pytest.raises(ShareNotFoundError):
        await access.remove_share(reloaded, world["mentor"], "CompanyAccount", world["member"], "Student")


# ─── lookup failures ─────────────────────────────────────────────────────────

async def test_missing_project_raises_instead_of_denying(access, mock_db, world):
    orphan = TaskModel(id="task-orphan", name="Orphan", project_id="project-gone")
    await mock_db["tasks"].insert_one(orphan.model_dump())

    with pytest.raises(ProjectNotFoundError):
        await access.check_permission(orphan, world["member"], "Student", "view")


async def test_deleted_task_is_not_found(task_directory, mock_db, world):
    await mock_db["tasks"].update_one({"id": world["task"]}, {"$set": {"is_deleted": True}})
    with pytest.raises(TaskNotFoundError):
        await task_directory.get_task(world["task"])


async def test_covers_rejects_unknown_action():
    with pytest.raises(ValueError):
        covers(VIEW_PERMISSION, "delete")
