import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_permissions_require_authentication(async_client: AsyncClient, world):
    resp = await async_client.get(f"/api/tasks/{world['task']}/permissions")
    assert resp.status_code == 401


async def test_owner_permissions(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.get(
        f"/api/tasks/{world['task']}/permissions",
        headers=auth_headers(world["mentor"], "CompanyAccount"),
    )
    assert resp.status_code == 200
    permission = resp.json()["permission"]
    assert all(permission.values())


async def test_member_without_access_is_forbidden(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.get(
        f"/api/tasks/{world['task']}/permissions",
        headers=auth_headers(world["member"], "Student"),
    )
    assert resp.status_code == 403


async def test_unknown_task_is_not_found(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.get(
        "/api/tasks/task-missing/permissions",
        headers=auth_headers(world["mentor"], "CompanyAccount"),
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


async def test_missing_project_is_a_server_error(async_client: AsyncClient, auth_headers, mock_db, world):
    await mock_db["tasks"].insert_one({"id": "task-orphan", "name": "Orphan", "project_id": "project-gone"})
    resp = await async_client.get(
        "/api/tasks/task-orphan/permissions",
        headers=auth_headers(world["mentor"], "CompanyAccount"),
    )
    assert resp.status_code == 500
    assert resp.json()["code"] == "PERMISSION_CHECK_FAILED"


async def test_share_flow(async_client: AsyncClient, auth_headers, world):
    mentor = auth_headers(world["mentor"], "CompanyAccount")
    member = auth_headers(world["member"], "Student")

    resp = await async_client.post(
        f"/api/tasks/{world['task']}/share",
        json={"user_id": world["member"], "user_kind": "Student", "access_type": "edit"},
        headers=mentor,
    )
    assert resp.status_code == 201
    assert resp.json()["grant"]["access_type"] == "edit"

    resp = await async_client.get(f"/api/tasks/{world['task']}/permissions", headers=member)
    assert resp.status_code == 200
    assert resp.json()["permission"]["can_add_files"] is True
    assert resp.json()["permission"]["can_manage_sharing"] is False

    resp = await async_client.get("/api/notifications", headers=member)
    assert resp.json()["notifications"][0]["content"] == "Task **Build login** was shared with you (edit access)."

    resp = await async_client.get(f"/api/tasks/{world['task']}/sharing", headers=mentor)
    assert [g["user_id"] for g in resp.json()["shared_with"]] == [world["member"]]

    resp = await async_client.delete(f"/api/tasks/{world['task']}/share/Student/{world['member']}", headers=mentor)
    assert resp.status_code == 200

    resp = await async_client.delete(f"/api/tasks/{world['task']}/share/Student/{world['member']}", headers=mentor)
    assert resp.status_code == 404

    resp = await async_client.get(f"/api/tasks/{world['task']}/permissions", headers=member)
    assert resp.status_code == 403


async def test_share_with_non_member_is_rejected(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.post(
        f"/api/tasks/{world['task']}/share",
        json={"user_id": world["outsider"], "user_kind": "Student"},
        headers=auth_headers(world["mentor"], "CompanyAccount"),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "INELIGIBLE_GRANTEE"


async def test_non_owner_cannot_share(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.post(
        f"/api/tasks/{world['task']}/share",
        json={"user_id": world["member"], "user_kind": "Student"},
        headers=auth_headers(world["company_admin"], "CompanyAccount"),
    )
    assert resp.status_code == 403


async def test_share_rejects_unknown_access_type(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.post(
        f"/api/tasks/{world['task']}/share",
        json={"user_id": world["member"], "user_kind": "Student", "access_type": "owner"},
        headers=auth_headers(world["mentor"], "CompanyAccount"),
    )
    assert resp.status_code == 422


async def test_make_public(async_client: AsyncClient, auth_headers, world):
    resp = await async_client.patch(
        f"/api/tasks/{world['task']}/share-settings",
        json={"is_public": True, "default_access_type": "view"},
        headers=auth_headers(world["mentor"], "CompanyAccount"),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_public"] is True
    assert data["default_access_type"] == "view"
    assert data["notified"] == 4
    assert data["notify_failed"] == 0

    resp = await async_client.get(
        f"/api/tasks/{world['task']}/permissions",
        headers=auth_headers(world["member"], "Student"),
    )
    assert resp.status_code == 200
    assert resp.json()["permission"]["can_add_files"] is False
